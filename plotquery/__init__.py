"""Query Our World in Data CSVs with SQL and get an automatic chart."""

__version__ = "0.1.0"
