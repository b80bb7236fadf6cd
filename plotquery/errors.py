class PlotQueryError(Exception):
    """Base class for every error the app surfaces to the user."""


class DatasetLoadError(PlotQueryError):
    """Fetching or parsing a dataset CSV failed."""


class QueryError(PlotQueryError):
    """A query could not be evaluated."""


class InvalidQuery(QueryError):
    """No SELECT ... FROM pattern found in the query text."""


class EngineNotReady(PlotQueryError):
    """An operation needs a state the session has not reached yet."""
