"""Pick a chart for a query result and draw it with matplotlib.

Chart choice is a prioritized list of rules; the first rule returning a spec
wins. Column kinds come from the column name and the first non-null value, never
from a declared schema.
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from . import config
from .query import AGGREGATES
from .relation import Relation, is_number

logger = logging.getLogger(__name__)

FIG_W, FIG_H = 7.0, 4.5
ACCENT = "#3b82f6"
AGGREGATE_RE = re.compile("|".join(AGGREGATES), re.I)


class ColumnKind(Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    TEMPORAL = "temporal"


@dataclass
class ColumnDescriptor:
    name: str
    kind: ColumnKind


@dataclass
class Series:
    name: Optional[str]
    x: List[Any]
    y: List[Any]


@dataclass
class ChartSpec:
    chart_type: str            # "line" | "bar" | "pie" | "scatter"
    x: Optional[str]
    y: Optional[str]
    color: Optional[str] = None
    title: str = ""
    series: List[Series] = field(default_factory=list)

    @property
    def show_legend(self) -> bool:
        return self.color is not None


@dataclass
class ChartContext:
    relation: Relation
    query: str
    numeric: List[str]
    categorical: List[str]
    temporal: List[str]
    has_group_by: bool
    has_aggregate: bool


# ================== COLUMN CLASSIFICATION ==================
def _name_has(col: str, *words: str) -> bool:
    low = col.lower()
    return any(w in low for w in words)


def is_temporal_name(col: str) -> bool:
    return _name_has(col, "year", "date", "time")


def _first_value(relation: Relation, col: str):
    return next((v for v in relation.column_values(col) if v is not None), None)


def numeric_columns(relation: Relation) -> List[str]:
    return [
        c for c in relation.columns
        if is_number(_first_value(relation, c)) and not _name_has(c, "year", "id", "code")
    ]


def categorical_columns(relation: Relation) -> List[str]:
    return [
        c for c in relation.columns
        if isinstance(_first_value(relation, c), str) or _name_has(c, "year")
    ]


def temporal_columns(relation: Relation) -> List[str]:
    return [c for c in relation.columns if is_temporal_name(c)]


def describe_columns(relation: Relation) -> List[ColumnDescriptor]:
    numeric = set(numeric_columns(relation))
    out = []
    for c in relation.columns:
        if is_temporal_name(c):
            kind = ColumnKind.TEMPORAL
        elif c in numeric:
            kind = ColumnKind.NUMERIC
        else:
            kind = ColumnKind.CATEGORICAL
        out.append(ColumnDescriptor(c, kind))
    return out


def build_context(relation: Relation, query: str) -> ChartContext:
    query = query or ""
    return ChartContext(
        relation=relation,
        query=query,
        numeric=numeric_columns(relation),
        categorical=categorical_columns(relation),
        temporal=temporal_columns(relation),
        has_group_by="GROUP BY" in query.upper(),
        has_aggregate=bool(AGGREGATE_RE.search(query)),
    )


# ================== RULES ==================
def generate_title(x: str, y: str, chart_type: str, query: str) -> str:
    if chart_type == "pie":
        return f"Distribution of {y}"
    if "GROUP BY" in (query or "").upper():
        return f"{y} by {x}"
    if "year" in x.lower():
        return f"{y} Over Time"
    return f"{y} vs {x}"


def _make(ctx: ChartContext, chart_type: str, x: str, y: str, color: str = None) -> ChartSpec:
    return ChartSpec(
        chart_type=chart_type,
        x=x,
        y=y,
        color=color,
        title=generate_title(x, y, chart_type, ctx.query),
        series=build_series(ctx.relation, x, y, color),
    )


def time_series_rule(ctx: ChartContext) -> Optional[ChartSpec]:
    if not (ctx.temporal and ctx.numeric):
        return None
    x = ctx.temporal[0]
    y = next((c for c in ctx.numeric if c != x), ctx.numeric[0])
    color = None
    if len(ctx.categorical) >= 2:
        color = next((c for c in ctx.categorical if c != x), None)
    return _make(ctx, "line", x, y, color)


def grouped_bar_rule(ctx: ChartContext) -> Optional[ChartSpec]:
    if not (ctx.has_group_by and ctx.has_aggregate):
        return None
    cols = ctx.relation.columns
    x = ctx.categorical[0] if ctx.categorical else cols[0]
    if ctx.numeric:
        y = ctx.numeric[0]
    else:
        y = cols[1] if len(cols) > 1 else cols[0]
    return _make(ctx, "bar", x, y)


def pie_rule(ctx: ChartContext) -> Optional[ChartSpec]:
    if ctx.categorical and len(ctx.numeric) == 1 and len(ctx.relation) < config.PIE_MAX_ROWS:
        return _make(ctx, "pie", ctx.categorical[0], ctx.numeric[0])
    return None


def numeric_scatter_rule(ctx: ChartContext) -> Optional[ChartSpec]:
    if len(ctx.numeric) < 2:
        return None
    color = ctx.categorical[0] if ctx.categorical else None
    return _make(ctx, "scatter", ctx.numeric[0], ctx.numeric[1], color)


def positional_scatter_rule(ctx: ChartContext) -> ChartSpec:
    cols = ctx.relation.columns
    return _make(ctx, "scatter", cols[0], cols[1] if len(cols) > 1 else cols[0])


CHART_RULES: List[Callable[[ChartContext], Optional[ChartSpec]]] = [
    time_series_rule,
    grouped_bar_rule,
    pie_rule,
    numeric_scatter_rule,
    positional_scatter_rule,
]


def build_series(relation: Relation, x: str, y: str, color: str = None) -> List[Series]:
    if color is None:
        return [Series(None, relation.column_values(x), relation.column_values(y))]
    groups: "OrderedDict[Any, Series]" = OrderedDict()
    for row in relation.rows:
        key = row.get(color)
        if key not in groups:
            groups[key] = Series(str(key), [], [])
        groups[key].x.append(row.get(x))
        groups[key].y.append(row.get(y))
    return list(groups.values())


def infer_chart(relation: Relation, query: str) -> Optional[ChartSpec]:
    """Choose chart type and axis bindings; None for an empty result."""
    if relation is None or relation.empty or not relation.columns:
        return None
    ctx = build_context(relation, query)
    for rule in CHART_RULES:
        spec = rule(ctx)
        if spec is not None:
            logger.debug("Chart rule %s chose %s(x=%s, y=%s)", rule.__name__, spec.chart_type, spec.x, spec.y)
            return spec
    return None


# ================== RENDERING ==================
def set_tick_label_alignment(ax, axis="x", rotation=0, ha="center"):
    """Safely set rotation + horizontal alignment on tick labels."""
    if axis in ("x", "both"):
        for lbl in ax.get_xticklabels():
            lbl.set_rotation(rotation)
            lbl.set_horizontalalignment(ha)
    if axis in ("y", "both"):
        for lbl in ax.get_yticklabels():
            lbl.set_rotation(rotation)
            lbl.set_horizontalalignment(ha)


def _as_dates(values):
    """Datetime x-values when every non-null value is a date string, else None."""
    present = [v for v in values if v is not None]
    if not present or not all(isinstance(v, str) for v in present):
        return None
    parsed = pd.to_datetime(pd.Series(values, dtype=object), errors="coerce")
    if parsed[pd.Series(values, dtype=object).notna()].isna().any():
        return None
    return mdates.date2num(pd.DatetimeIndex(parsed).to_pydatetime())


def _plottable(values):
    if all(v is None or is_number(v) for v in values):
        return np.asarray([np.nan if v is None else v for v in values], dtype=float)
    return ["" if v is None else str(v) for v in values]


def _draw_pie(ax, spec: ChartSpec):
    s = spec.series[0]
    pairs = [(str(lbl), float(v)) for lbl, v in zip(s.x, s.y) if is_number(v) and v > 0]
    if not pairs:
        ax.text(0.5, 0.5, f"No positive values in {spec.y}", ha="center", va="center")
        ax.axis("off")
        return
    labels, values = zip(*pairs)
    ax.pie(values, labels=labels, autopct="%1.0f%%", textprops={"fontsize": 8})
    ax.axis("equal")


def render_chart(spec: ChartSpec):
    """Draw ``spec`` on a fresh figure; the caller owns (and closes) it."""
    fig, ax = plt.subplots(figsize=(FIG_W, FIG_H))
    ax.set_title(spec.title, fontsize=11, pad=6)

    if spec.chart_type == "pie":
        _draw_pie(ax, spec)
        fig.tight_layout()
        return fig

    dated = False
    for s in spec.series:
        single = spec.color is None
        if spec.chart_type == "line":
            xnum = _as_dates(s.x)
            xs = xnum if xnum is not None else _plottable(s.x)
            dated = dated or xnum is not None
            ax.plot(xs, _plottable(s.y), marker="o", markersize=3, label=s.name,
                    color=ACCENT if single else None)
        elif spec.chart_type == "bar":
            ax.bar(["" if v is None else str(v) for v in s.x], _plottable(s.y), label=s.name,
                   color=ACCENT if single else None)
        else:
            ax.scatter(_plottable(s.x), _plottable(s.y), s=12, label=s.name,
                       color=ACCENT if single else None)

    if dated:
        ax.xaxis_date()
        ax.xaxis.set_major_formatter(mdates.DateFormatter("%Y-%m"))
    ax.set_xlabel(spec.x)
    ax.set_ylabel(spec.y)
    ax.grid(alpha=0.2)
    if spec.chart_type == "bar" or dated:
        set_tick_label_alignment(ax, axis="x", rotation=45, ha="right")
    if spec.show_legend:
        ax.legend(fontsize=8)
    fig.tight_layout()
    return fig
