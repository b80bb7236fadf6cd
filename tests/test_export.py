import ast
import io
import unittest

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from plotquery import config
from plotquery.charts import infer_chart, render_chart
from plotquery.export import figure_png, figure_svg, python_script, relation_csv
from plotquery.relation import Relation, infer_value


RESULT = Relation(
    ["country", "year", "co2"],
    [
        {"country": "France", "year": 2019, "co2": 300.5},
        {"country": "Bonaire, Sint Eustatius and Saba", "year": 2020, "co2": None},
        {"country": 'Say "hi"', "year": 2021, "co2": 7},
    ],
)


class TestCsvExport(unittest.TestCase):
    """CSV text rebuilt from a result."""

    def test_plain_round_trip(self):
        """Header + comma split gives back names and values."""
        rel = Relation(["country", "gdp"], [{"country": "France", "gdp": 1.5}, {"country": "Chad", "gdp": 2}])
        lines = relation_csv(rel).strip().split("\n")
        self.assertEqual(lines[0].split(","), ["country", "gdp"])
        rows = [dict(zip(rel.columns, map(infer_value, line.split(",")))) for line in lines[1:]]
        self.assertEqual(rows, rel.rows)

    def test_quoting(self):
        text = relation_csv(RESULT)
        self.assertIn('"Bonaire, Sint Eustatius and Saba"', text)
        self.assertIn('"Say ""hi"""', text)
        parsed = pd.read_csv(io.StringIO(text), keep_default_na=False, dtype=str)
        self.assertEqual(list(parsed.columns), RESULT.columns)
        self.assertEqual(parsed["country"].tolist(), [r["country"] for r in RESULT.rows])
        self.assertEqual(parsed["co2"].tolist(), ["300.5", "", "7"])


class TestScriptExport(unittest.TestCase):
    def test_script_embeds_query_and_url(self):
        dataset = config.get_dataset("co2_data")
        sql = "SELECT year, co2 FROM co2_data WHERE country = 'France'"
        script = python_script(dataset, sql, RESULT)
        self.assertIn(dataset.url, script)
        self.assertIn(sql, script)
        self.assertIn("con.register('co2_data', df)", script)
        self.assertIn("'year vs country'", script)
        ast.parse(script)

    def test_script_preserves_backslashes_and_newlines(self):
        """The embedded query evaluates back to the exact SQL text."""
        dataset = config.get_dataset("co2_data")
        sql = "SELECT country FROM co2_data\nWHERE regexp_matches(iso_code, '\\d+') AND note = 'a\"\"\"b'"
        script = python_script(dataset, sql, RESULT)
        tree = ast.parse(script)
        assigned = [
            node.value for node in tree.body
            if isinstance(node, ast.Assign) and getattr(node.targets[0], "id", None) == "query"
        ]
        self.assertEqual(len(assigned), 1)
        self.assertEqual(ast.literal_eval(assigned[0]), sql)


class TestImageExport(unittest.TestCase):
    def setUp(self):
        rel = Relation(["year", "gdp"], [{"year": 2000, "gdp": 1.0}, {"year": 2001, "gdp": 2.0}])
        self.fig = render_chart(infer_chart(rel, "SELECT year, gdp FROM t"))

    def tearDown(self):
        plt.close(self.fig)

    def test_png_has_fixed_size(self):
        png = figure_png(self.fig)
        self.assertTrue(png.startswith(b"\x89PNG"))
        width = int.from_bytes(png[16:20], "big")
        height = int.from_bytes(png[20:24], "big")
        self.assertEqual((width, height), config.PNG_SIZE)

    def test_svg(self):
        self.assertIn(b"<svg", figure_svg(self.fig))


if __name__ == "__main__":
    unittest.main()
