"""Downloadable artifacts: chart images, a reproducible Python script, and CSV."""

import io

import pandas as pd

from . import config
from .charts import generate_title
from .relation import Relation

SCRIPT_TEMPLATE = '''"""
Our World in Data Analysis
Generated from SQL query
Dataset: {name}
"""

import duckdb
import pandas as pd
import matplotlib.pyplot as plt

# Load data from Our World in Data
df = pd.read_csv({url!r})

# Execute SQL query
con = duckdb.connect()
con.register({table!r}, df)
query = {sql!r}
result = con.execute(query).df()

# Display results
print(f"Query returned {{len(result)}} rows")
print(result.head())

# Create visualization
fig, ax = plt.subplots(figsize=(10, 6))
ax.plot(result[{x!r}], result[{y!r}], marker="o")
ax.set_title({title!r})
ax.set_xlabel({x!r})
ax.set_ylabel({y!r})
ax.grid(alpha=0.2)
plt.tight_layout()
plt.show()
'''


def figure_png(fig) -> bytes:
    """Raster export at a fixed PNG_SIZE pixel size."""
    width, height = config.PNG_SIZE
    dpi = config.PNG_DPI
    original = fig.get_size_inches()
    fig.set_size_inches(width / dpi, height / dpi)
    buf = io.BytesIO()
    try:
        fig.savefig(buf, format="png", dpi=dpi)
    finally:
        fig.set_size_inches(*original)
    return buf.getvalue()


def figure_svg(fig) -> bytes:
    buf = io.BytesIO()
    fig.savefig(buf, format="svg")
    return buf.getvalue()


def python_script(dataset: config.Dataset, sql: str, result: Relation) -> str:
    cols = result.columns or ["index"]
    x = cols[0]
    y = cols[1] if len(cols) > 1 else cols[0]
    return SCRIPT_TEMPLATE.format(
        name=dataset.name,
        url=dataset.url,
        table=dataset.table_name,
        sql=sql,
        x=x,
        y=y,
        title=generate_title(x, y, "line", sql),
    )


def relation_csv(result: Relation) -> str:
    """Header line then one line per row; fields with commas, quotes or newlines are quoted."""
    frame = pd.DataFrame(result.rows, columns=result.columns, dtype=object)
    return frame.to_csv(index=False, lineterminator="\n")
