"""Pattern-matching SQL interpreter over an in-memory Relation.

This is not a parser. Each clause is pulled out of the query text by its own
regex, independently of the others, so reordered or malformed SQL can give a
partially-wrong result instead of an error:

- WHERE is honoured only when the whole predicate is one ``col = value``
  equality; anything else (other operators, AND/OR, functions) matches all rows.
- GROUP BY / ORDER BY take a single bare column; extra keys are ignored.
- SELECT items that are neither a column nor ``FUNC(col)`` are skipped.

Only a missing ``SELECT ... FROM`` raises (``InvalidQuery``).
"""

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidQuery
from .relation import Relation, infer_value, is_number, to_number

logger = logging.getLogger(__name__)

AGGREGATES = ("COUNT", "SUM", "AVG", "MIN", "MAX")

_AGG = r"(?:COUNT|SUM|AVG|MIN|MAX)\s*\(\s*(?:\*|\w+)\s*\)"
_STOP = r"(?=\s*\bGROUP\s+BY\b|\s*\bORDER\s+BY\b|\s*\bLIMIT\b|\s*\bHAVING\b|\s*;|\s*$)"

SELECT_RE = re.compile(r"\bSELECT\s+(?P<cols>.+?)\s+FROM\s+\"?(?P<table>\w+)\"?", re.I | re.S)
WHERE_RE = re.compile(r"\bWHERE\s+(?P<pred>.+?)" + _STOP, re.I | re.S)
EQUALITY_RE = re.compile(
    r"\"?(?P<col>\w+)\"?\s*=\s*(?:'(?P<quoted>[^']*)'|(?P<bare>[^\s'\"=<>!()]+))",
    re.S,
)
GROUP_RE = re.compile(r"\bGROUP\s+BY\s+\"?(?P<col>\w+)\"?", re.I)
ORDER_RE = re.compile(
    r"\bORDER\s+BY\s+\"?(?P<key>" + _AGG + r"|\w+)\"?(?:\s+(?P<dir>ASC|DESC)\b)?", re.I
)
LIMIT_RE = re.compile(r"\bLIMIT\s+(?P<n>\d+)", re.I)
AGG_ITEM_RE = re.compile(
    r"(?P<func>COUNT|SUM|AVG|MIN|MAX)\s*\(\s*(?P<arg>\*|\"?\w+\"?)\s*\)(?:\s+AS\s+(?P<alias>\w+))?",
    re.I,
)
COL_ITEM_RE = re.compile(r"(?P<col>\*|\"?\w+\"?)(?:\s+AS\s+(?P<alias>\w+))?", re.I)


@dataclass
class SelectItem:
    column: str
    func: Optional[str] = None
    alias: Optional[str] = None

    @property
    def default_name(self) -> str:
        return f"{self.func}({self.column})" if self.func else self.column

    @property
    def name(self) -> str:
        return self.alias or self.default_name


@dataclass
class QueryClauses:
    items: List[SelectItem]
    table: str
    where: Optional[Tuple[str, str]] = None
    group_by: Optional[str] = None
    order_by: Optional[Tuple[str, bool]] = None
    limit: Optional[int] = None

    @property
    def aggregates(self) -> List[SelectItem]:
        return [i for i in self.items if i.func]


# ================== CLAUSE EXTRACTORS ==================
def _normalise_agg(text: str) -> str:
    m = AGG_ITEM_RE.fullmatch(text.strip())
    if not m:
        return text
    arg = m.group("arg").strip('"')
    return f"{m.group('func').upper()}({arg})"


def _stringify(value: Any) -> str:
    return "" if value is None else str(value)


def parse_select_items(cols: str) -> List[SelectItem]:
    items = []
    for raw in cols.split(","):
        text = raw.strip()
        m = AGG_ITEM_RE.fullmatch(text)
        if m:
            items.append(SelectItem(m.group("arg").strip('"'), m.group("func").upper(), m.group("alias")))
            continue
        m = COL_ITEM_RE.fullmatch(text)
        if m:
            items.append(SelectItem(m.group("col").strip('"'), alias=m.group("alias")))
            continue
        logger.debug("Skipping unsupported select item %r", text)
    return items


def extract_select(query: str) -> Optional[Tuple[List[SelectItem], str]]:
    m = SELECT_RE.search(query)
    if not m:
        return None
    return parse_select_items(m.group("cols")), m.group("table")


def extract_where(query: str) -> Optional[Tuple[str, str]]:
    """(column, literal) for a lone equality predicate, else None (match everything)."""
    m = WHERE_RE.search(query)
    if not m:
        return None
    pred = m.group("pred").strip()
    eq = EQUALITY_RE.fullmatch(pred)
    if not eq:
        logger.debug("WHERE predicate %r not evaluated; matching all rows", pred)
        return None
    if eq.group("quoted") is not None:
        return eq.group("col"), eq.group("quoted")
    return eq.group("col"), _stringify(infer_value(eq.group("bare")))


def extract_group_by(query: str) -> Optional[str]:
    m = GROUP_RE.search(query)
    return m.group("col") if m else None


def extract_order_by(query: str) -> Optional[Tuple[str, bool]]:
    m = ORDER_RE.search(query)
    if not m:
        return None
    descending = (m.group("dir") or "").upper() == "DESC"
    return _normalise_agg(m.group("key")), descending


def extract_limit(query: str) -> Optional[int]:
    m = LIMIT_RE.search(query)
    return int(m.group("n")) if m else None


def parse_query(query: str) -> QueryClauses:
    selected = extract_select(query or "")
    if selected is None:
        raise InvalidQuery("Could not find a SELECT ... FROM clause in the query")
    items, table = selected
    return QueryClauses(
        items=items,
        table=table,
        where=extract_where(query),
        group_by=extract_group_by(query),
        order_by=extract_order_by(query),
        limit=extract_limit(query),
    )


# ================== EXECUTION STEPS ==================
def aggregate(func: str, column: str, rows: List[Dict[str, Any]]) -> Any:
    """Non-numeric values count as 0 for SUM/AVG/MIN/MAX."""
    if func == "COUNT":
        if column == "*":
            return len(rows)
        return sum(1 for r in rows if r.get(column) is not None)
    values = [to_number(r.get(column)) for r in rows]
    if func == "SUM":
        return sum(values)
    if not values:
        return None
    if func == "AVG":
        return sum(values) / len(values)
    if func == "MIN":
        return min(values)
    return max(values)


def filter_rows(rows, where):
    if where is None:
        return rows
    column, literal = where
    return [r for r in rows if _stringify(r.get(column)) == literal]


def group_rows(rows, clauses: QueryClauses) -> Relation:
    key_col = clauses.group_by
    groups: "OrderedDict[Any, List[Dict[str, Any]]]" = OrderedDict()
    if key_col is None:
        groups[None] = rows
    else:
        for r in rows:
            groups.setdefault(r.get(key_col), []).append(r)

    columns = []
    key_name = None
    if key_col is not None:
        key_name = next(
            (i.name for i in clauses.items if not i.func and i.column == key_col), key_col
        )
        columns.append(key_name)
    columns.extend(i.name for i in clauses.aggregates)

    out = []
    for key, members in groups.items():
        row = {key_name: key} if key_name is not None else {}
        for item in clauses.aggregates:
            row[item.name] = aggregate(item.func, item.column, members)
        out.append(row)
    return Relation(columns, out)


def _sort_key(value):
    return (0, value, "") if is_number(value) else (1, 0, str(value))


def sort_rows(rows, key: str, descending: bool):
    """Stable sort; numbers before text, nulls always last."""
    present = [r for r in rows if r.get(key) is not None]
    missing = [r for r in rows if r.get(key) is None]
    present.sort(key=lambda r: _sort_key(r[key]), reverse=descending)
    return present + missing


def _resolve_order_key(key: str, columns: List[str], items: List[SelectItem]) -> Optional[str]:
    if key in columns:
        return key
    for item in items:
        if key in (item.alias, item.default_name):
            for target in (item.name, item.column):
                if target in columns:
                    return target
    return None


def project(relation: Relation, items: List[SelectItem]) -> Relation:
    picks = []
    for item in items:
        if item.column == "*":
            picks.extend((c, c) for c in relation.columns)
        elif item.column in relation.columns:
            picks.append((item.column, item.name))
        else:
            logger.debug("Column %r not in dataset; dropped from output", item.column)
    columns = [name for _, name in picks]
    rows = [{name: r.get(src) for src, name in picks} for r in relation.rows]
    return Relation(columns, rows)


def execute(query: str, relation: Relation) -> Relation:
    """Run ``query`` over ``relation``: filter, group, sort, limit, then project."""
    clauses = parse_query(query)
    source = relation.typed()

    rows = filter_rows(source.rows, clauses.where)
    grouped = clauses.group_by is not None or bool(clauses.aggregates)
    if grouped:
        result = group_rows(rows, clauses)
    else:
        result = Relation(list(source.columns), rows)

    if clauses.order_by is not None:
        key, descending = clauses.order_by
        resolved = _resolve_order_key(key, result.columns, clauses.items)
        if resolved is None:
            logger.debug("ORDER BY %r does not name a result column; ignored", key)
        else:
            result = Relation(result.columns, sort_rows(result.rows, resolved, descending))

    if clauses.limit is not None:
        result = Relation(result.columns, result.rows[: clauses.limit])

    if not grouped:
        result = project(result, clauses.items)

    logger.info("Interpreted query on %s: %d -> %d rows", clauses.table, len(relation), len(result))
    return result
