"""Per-user session: active dataset, query, result and chart.

State moves uninitialized -> engine-ready -> dataset-loaded -> query-executed.
Every load or query takes a token from a generation counter; when it finishes
with a token that is no longer current, its result is dropped instead of
overwriting newer state.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

import pandas as pd

from . import config, ingest
from .charts import ChartSpec, infer_chart
from .engine import SqlEngine
from .errors import EngineNotReady, PlotQueryError, QueryError
from .query import execute
from .relation import Relation

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    ENGINE_READY = "engine-ready"
    DATASET_LOADED = "dataset-loaded"
    QUERY_EXECUTED = "query-executed"


def default_query(dataset: config.Dataset) -> str:
    return f"SELECT * FROM {dataset.table_name} LIMIT 100"


class Session:
    def __init__(self, engine_mode: str = None,
                 loader: Callable[[config.Dataset], pd.DataFrame] = ingest.load_dataset,
                 engine_factory: Callable[[], SqlEngine] = SqlEngine):
        self.engine_mode = (engine_mode or config.QUERY_ENGINE).lower()
        self.loader = loader
        self.engine_factory = engine_factory
        self.engine: Optional[SqlEngine] = None
        self.state = SessionState.UNINITIALIZED
        self._generation = 0
        self._reset_dataset()

    def _reset_dataset(self):
        self.dataset: Optional[config.Dataset] = None
        self.frame: Optional[pd.DataFrame] = None
        self.relation: Optional[Relation] = None
        self.columns: List[str] = []
        self.row_count = 0
        self._reset_query("")

    def _reset_query(self, sql: str):
        self.query = sql
        self.result: Optional[Relation] = None
        self.chart: Optional[ChartSpec] = None

    # ---- tokens ----
    def begin(self) -> int:
        self._generation += 1
        return self._generation

    def is_current(self, token: int) -> bool:
        return token == self._generation

    @property
    def uses_engine(self) -> bool:
        return self.engine_mode == "duckdb"

    # ---- transitions ----
    def start(self):
        if self.uses_engine and self.engine is None:
            self.engine = self.engine_factory()
        if self.state is SessionState.UNINITIALIZED:
            self.state = SessionState.ENGINE_READY
        logger.info("Session ready (engine mode: %s)", self.engine_mode)

    def set_engine_mode(self, mode: str):
        """Switch query engines; if the new engine cannot start or load, the old mode stays."""
        mode = mode.lower()
        if mode == self.engine_mode:
            return
        previous, self.engine_mode = self.engine_mode, mode
        try:
            self.start()
            if self.uses_engine and self.dataset is not None:
                self.row_count = self._require_engine().load(
                    self.dataset.table_name, ingest.typed_frame(self.frame))
        except PlotQueryError:
            logger.warning("Could not switch engine mode to %s, staying on %s", mode, previous)
            self.engine_mode = previous
            raise
        self._reset_query(self.query)
        if self.dataset is not None:
            if not self.uses_engine:
                self.row_count = len(self.relation)
            self.state = SessionState.DATASET_LOADED

    def _require_engine(self) -> SqlEngine:
        if self.engine is None:
            raise EngineNotReady("SQL engine not initialized")
        return self.engine

    def load_dataset(self, dataset: config.Dataset) -> bool:
        """Fetch and install ``dataset``; False when a newer operation superseded it.

        On DatasetLoadError the previous dataset, query and result stay in place.
        """
        if self.state is SessionState.UNINITIALIZED:
            raise EngineNotReady("SQL engine not initialized")
        token = self.begin()
        frame = self.loader(dataset)
        if not self.is_current(token):
            logger.info("Discarding stale load of %s", dataset.id)
            return False

        relation = ingest.to_relation(frame)
        if self.uses_engine:
            engine = self._require_engine()
            row_count = engine.load(dataset.table_name, ingest.typed_frame(frame))
            columns = engine.columns(dataset.table_name)
        else:
            row_count, columns = len(relation), list(frame.columns)

        self._reset_dataset()
        self.dataset, self.frame, self.relation = dataset, frame, relation
        self.columns, self.row_count = columns, row_count
        self.query = default_query(dataset)
        self.state = SessionState.DATASET_LOADED
        return True

    def run_query(self, sql: str = None) -> Optional[Relation]:
        """Execute ``sql`` (or the current query); returns None when superseded."""
        if self.dataset is None:
            raise EngineNotReady("Load a dataset before running a query")
        if sql is not None:
            self.query = sql
        sql = self.query
        token = self.begin()
        try:
            if self.uses_engine:
                result = self._require_engine().execute(sql)
            else:
                result = execute(sql, self.relation)
        except QueryError:
            if self.is_current(token):
                self._reset_query(sql)
                self.state = SessionState.DATASET_LOADED
            raise
        if not self.is_current(token):
            logger.info("Discarding stale result for %r", sql)
            return None

        self.result = result
        self.chart = infer_chart(result, sql)
        self.state = SessionState.QUERY_EXECUTED
        logger.info("Query returned %d rows", len(result))
        return result

    def close(self):
        if self.engine is not None:
            self.engine.close()
            self.engine = None
        self.state = SessionState.UNINITIALIZED
