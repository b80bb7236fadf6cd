import unittest
from unittest import mock

import numpy as np
import pandas as pd
import requests

from plotquery import config, ingest
from plotquery.errors import DatasetLoadError
from plotquery.relation import infer_value

CSV_TEXT = " country ,year,co2\nFrance,2019,300.5\n\nChad,2019,\nPeru,2020,12\n"


def _response(text="", status=200):
    resp = requests.Response()
    resp.status_code = status
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = "https://example.test/data.csv"
    return resp


class TestInferValue(unittest.TestCase):
    """Per-value typing."""

    def test_numbers(self):
        self.assertEqual(infer_value("12"), 12)
        self.assertIsInstance(infer_value("12"), int)
        self.assertEqual(infer_value("2020.0"), 2020)
        self.assertEqual(infer_value(" 3.25 "), 3.25)
        self.assertEqual(infer_value(float("nan")), None)

    def test_text_and_empty(self):
        self.assertIsNone(infer_value(""))
        self.assertIsNone(infer_value("   "))
        self.assertEqual(infer_value("France"), "France")
        self.assertEqual(infer_value("nan"), "nan")
        self.assertEqual(infer_value("1_000"), "1_000")

    def test_large_integers_are_exact(self):
        self.assertEqual(infer_value("9007199254740993"), 9007199254740993)
        self.assertEqual(infer_value(np.int64(9007199254740993)), 9007199254740993)
        self.assertIsInstance(infer_value(np.int64(7)), int)

    def test_pandas_missing_values(self):
        """NA markers from nullable dtypes read as None."""
        self.assertIsNone(infer_value(pd.NA))
        self.assertIsNone(infer_value(pd.NaT))
        self.assertIsNone(infer_value(np.float64("nan")))


class TestParseCsv(unittest.TestCase):
    def test_strings_only_and_trimmed_headers(self):
        frame = ingest.parse_csv(CSV_TEXT)
        self.assertEqual(list(frame.columns), ["country", "year", "co2"])
        self.assertEqual(len(frame), 3)
        self.assertEqual(frame.loc[1, "co2"], "")
        self.assertEqual(frame.loc[0, "year"], "2019")

    def test_empty_csv_fails(self):
        with self.assertRaises(DatasetLoadError):
            ingest.parse_csv("")

    def test_malformed_row_is_logged_and_dropped(self):
        """A row with an extra field is skipped with a logged warning."""
        text = "country,year,co2\nFrance,2019,300\nChad,2019,1,extra\nPeru,2020,12\n"
        with self.assertLogs("plotquery.ingest", "WARNING") as logs:
            frame = ingest.parse_csv(text)
        self.assertEqual(list(frame["country"]), ["France", "Peru"])
        self.assertTrue(any("malformed" in line for line in logs.output))

    def test_relation_is_capped(self):
        rel = ingest.to_relation(ingest.parse_csv(CSV_TEXT), max_rows=2)
        self.assertEqual(len(rel), 2)
        self.assertEqual(rel.rows[0], {"country": "France", "year": "2019", "co2": "300.5"})

    def test_typed_frame(self):
        frame = ingest.typed_frame(ingest.parse_csv(CSV_TEXT))
        self.assertTrue(frame["year"].dtype.kind in "if")
        self.assertTrue(frame["co2"].dtype.kind == "f")
        self.assertTrue(frame["co2"].isna().iloc[1])
        self.assertEqual(frame["country"].dtype, object)


class TestFetch(unittest.TestCase):
    """Network access is replaced by a stub ``requests.get``."""

    def test_load_dataset(self):
        dataset = config.get_dataset("co2_data")
        with mock.patch("plotquery.ingest.requests.get", return_value=_response(CSV_TEXT)) as get:
            frame = ingest.load_dataset(dataset)
        get.assert_called_once_with(dataset.url, timeout=config.HTTP_TIMEOUT)
        self.assertEqual(len(frame), 3)

    def test_http_error_becomes_load_error(self):
        with mock.patch("plotquery.ingest.requests.get", return_value=_response("nope", status=404)):
            with self.assertRaises(DatasetLoadError):
                ingest.fetch_csv("https://example.test/missing.csv")

    def test_network_error_becomes_load_error(self):
        with mock.patch("plotquery.ingest.requests.get", side_effect=requests.ConnectionError("down")):
            with self.assertRaises(DatasetLoadError):
                ingest.fetch_csv("https://example.test/data.csv")

    def test_unknown_dataset(self):
        with self.assertRaises(KeyError):
            config.get_dataset("nope")


if __name__ == "__main__":
    unittest.main()
