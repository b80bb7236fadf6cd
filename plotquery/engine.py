"""Embedded DuckDB engine holding the active dataset as a table."""

import logging

import duckdb
import pandas as pd

from .errors import DatasetLoadError, EngineNotReady, QueryError
from .relation import Relation

logger = logging.getLogger(__name__)


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SqlEngine:
    def __init__(self, database: str = ":memory:"):
        try:
            self.con = duckdb.connect(database)
        except duckdb.Error as exc:
            raise EngineNotReady(f"Failed to initialize SQL engine: {exc}") from exc

    def load(self, table: str, frame: pd.DataFrame) -> int:
        """Replace ``table`` with the contents of ``frame``; returns the row count."""
        self.con.register("_incoming", frame)
        try:
            self.con.execute(f"CREATE OR REPLACE TABLE {_quote(table)} AS SELECT * FROM _incoming")
        except duckdb.Error as exc:
            raise DatasetLoadError(f"Could not load {table} into the SQL engine: {exc}") from exc
        finally:
            self.con.unregister("_incoming")
        count = self.row_count(table)
        logger.info("Loaded %d rows into %s", count, table)
        return count

    def columns(self, table: str):
        rows = self.con.execute(
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_name = ? ORDER BY ordinal_position",
            [table],
        ).fetchall()
        return [r[0] for r in rows]

    def row_count(self, table: str) -> int:
        return int(self.con.execute(f"SELECT COUNT(*) FROM {_quote(table)}").fetchone()[0])

    def execute(self, sql: str) -> Relation:
        try:
            frame = self.con.execute(sql).df()
        except duckdb.Error as exc:
            raise QueryError(str(exc)) from exc
        return Relation.from_frame(frame)

    def close(self):
        self.con.close()
