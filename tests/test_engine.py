import unittest

import pandas as pd

from plotquery import ingest
from plotquery.charts import build_context, infer_chart
from plotquery.engine import SqlEngine
from plotquery.errors import QueryError
from plotquery.export import relation_csv

CSV_TEXT = "country,year,coal\nFrance,2019,10\nFrance,2020,8\nChad,2020,\n"


class TestSqlEngine(unittest.TestCase):
    """In-memory DuckDB round trips."""

    def setUp(self):
        self.engine = SqlEngine()
        frame = ingest.typed_frame(ingest.parse_csv(CSV_TEXT))
        self.count = self.engine.load("energy_data", frame)

    def tearDown(self):
        self.engine.close()

    def test_load_reports_rows_and_columns(self):
        self.assertEqual(self.count, 3)
        self.assertEqual(self.engine.columns("energy_data"), ["country", "year", "coal"])
        self.assertEqual(self.engine.row_count("energy_data"), 3)

    def test_reload_replaces_table(self):
        self.engine.load("energy_data", pd.DataFrame({"x": [1]}))
        self.assertEqual(self.engine.columns("energy_data"), ["x"])

    def test_full_sql(self):
        rel = self.engine.execute(
            "SELECT country, AVG(coal) AS avg_coal FROM energy_data "
            "WHERE year >= 2019 GROUP BY country ORDER BY avg_coal DESC NULLS LAST"
        )
        self.assertEqual(rel.columns, ["country", "avg_coal"])
        self.assertEqual(rel.rows[0], {"country": "France", "avg_coal": 9})
        self.assertIsNone(rel.rows[1]["avg_coal"])

    def test_bad_sql_raises_query_error(self):
        with self.assertRaises(QueryError):
            self.engine.execute("SELEC nonsense")
        with self.assertRaises(QueryError):
            self.engine.execute("SELECT missing_col FROM energy_data")

    def test_nullable_integer_nulls_become_none(self):
        """A NULL in an INTEGER column reads as None and the column stays numeric."""
        rel = self.engine.execute(
            "SELECT c AS country, CAST(v AS INTEGER) AS deaths, w AS gdp FROM "
            "(VALUES ('A', NULL, 1.0), ('B', 5, 2.0), ('C', 7, 3.0)) t(c, v, w)"
        )
        self.assertIsNone(rel.rows[0]["deaths"])
        self.assertEqual(rel.rows[1]["deaths"], 5)
        ctx = build_context(rel, "SELECT country, deaths, gdp FROM t")
        self.assertEqual(ctx.numeric, ["deaths", "gdp"])
        spec = infer_chart(rel, "SELECT country, deaths, gdp FROM t")
        self.assertEqual((spec.chart_type, spec.x, spec.y), ("scatter", "deaths", "gdp"))

    def test_bigint_is_exact(self):
        """Integers past 2**53 come back unchanged."""
        rel = self.engine.execute("SELECT 9007199254740993::BIGINT AS n")
        self.assertEqual(rel.rows[0]["n"], 9007199254740993)
        self.assertIn("9007199254740993", relation_csv(rel))


if __name__ == "__main__":
    unittest.main()
