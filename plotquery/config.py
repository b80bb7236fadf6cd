import os
import logging
from dataclasses import dataclass

# ================== RUNTIME SETTINGS ==================
QUERY_ENGINE = os.getenv("PLOTQUERY_QUERY_ENGINE", "duckdb").lower()   # "duckdb" | "interpreter"
HTTP_TIMEOUT = float(os.getenv("PLOTQUERY_HTTP_TIMEOUT", "60"))
MAX_INTERPRETER_ROWS = int(os.getenv("PLOTQUERY_MAX_ROWS", "10000"))
LOG_LEVEL = os.getenv("PLOTQUERY_LOG_LEVEL", "INFO").upper()

# ================== FIXED CONSTANTS ==================
MAX_SUGGESTIONS = 10
MIN_SUGGEST_CHARS = 2
PIE_MAX_ROWS = 20
DISPLAY_ROWS = 500
PNG_SIZE = (1400, 900)   # pixels
PNG_DPI = 100
CHART_FILENAME = "plotquery_chart"
SCRIPT_FILENAME = "plotquery_analysis.py"
CSV_FILENAME = "query_results.csv"

SQL_KEYWORDS = (
    "SELECT", "FROM", "WHERE", "GROUP BY", "ORDER BY", "LIMIT", "OFFSET",
    "JOIN", "LEFT JOIN", "RIGHT JOIN", "INNER JOIN", "OUTER JOIN", "ON",
    "AND", "OR", "NOT", "IN", "BETWEEN", "LIKE", "IS NULL", "IS NOT NULL",
    "COUNT", "SUM", "AVG", "MIN", "MAX", "DISTINCT", "AS",
    "HAVING", "ASC", "DESC", "CASE", "WHEN", "THEN", "ELSE", "END",
)


# ================== DATASET CATALOG ==================
@dataclass(frozen=True)
class Dataset:
    id: str
    name: str
    url: str
    description: str
    table_name: str


DATASETS = (
    Dataset(
        id="co2_data",
        name="CO2 & Greenhouse Gas Emissions",
        url="https://raw.githubusercontent.com/owid/co2-data/master/owid-co2-data.csv",
        description="CO2 emissions, greenhouse gases, and climate data by country",
        table_name="co2_data",
    ),
    Dataset(
        id="energy_data",
        name="Energy Data",
        url="https://raw.githubusercontent.com/owid/energy-data/master/owid-energy-data.csv",
        description="Energy production, consumption, and mix by country",
        table_name="energy_data",
    ),
    Dataset(
        id="covid_data",
        name="COVID-19 Data",
        url="https://raw.githubusercontent.com/owid/covid-19-data/master/public/data/owid-covid-data.csv",
        description="COVID-19 cases, deaths, testing, and vaccinations",
        table_name="covid_data",
    ),
    Dataset(
        id="literacy",
        name="Literacy Rates",
        url=(
            "https://raw.githubusercontent.com/owid/owid-datasets/master/datasets/"
            "Cross-country%20literacy%20rates%20-%20World%20Bank%2C%20CIA%20World%20Factbook%2C"
            "%20and%20other%20sources/Cross-country%20literacy%20rates%20-%20World%20Bank%2C"
            "%20CIA%20World%20Factbook%2C%20and%20other%20sources.csv"
        ),
        description="Historical literacy rates by country (1475-present)",
        table_name="literacy",
    ),
)


def get_dataset(dataset_id: str) -> Dataset:
    for ds in DATASETS:
        if ds.id == dataset_id:
            return ds
    raise KeyError(f"Unknown dataset: {dataset_id}")


def configure_logging(level: str = None):
    """Set up root logging once; the Streamlit script calls this on every rerun."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
