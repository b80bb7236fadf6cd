"""In-memory result sets shared by the interpreter, the engine, charts and exports."""

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pandas as pd


def infer_value(value: Any) -> Any:
    """Type a single field: number when it reads as one, None when empty, else text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        f = float(value)
        if math.isnan(f):
            return None
        if math.isinf(f):
            return f
        return int(f) if f.is_integer() else f
    if not isinstance(value, str):
        try:
            missing = pd.isna(value)
        except (TypeError, ValueError):
            missing = False
        # pd.NA, NaT and friends; array-likes are left alone
        return None if missing is True else value
    s = value.strip()
    if s == "":
        return None
    if "_" in s:
        return value
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        return value
    if not math.isfinite(f):
        return value
    return int(f) if f.is_integer() else f


def is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def to_number(value: Any) -> float:
    """Numeric view used by aggregates; anything non-numeric counts as 0."""
    v = infer_value(value)
    return v if is_number(v) else 0


@dataclass
class Relation:
    columns: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self):
        return len(self.rows)

    @property
    def empty(self) -> bool:
        return not self.rows

    def column_values(self, name: str) -> List[Any]:
        return [row.get(name) for row in self.rows]

    def typed(self) -> "Relation":
        return Relation(
            list(self.columns),
            [{c: infer_value(row.get(c)) for c in self.columns} for row in self.rows],
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=self.columns)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, coerce: bool = True) -> "Relation":
        columns = [str(c) for c in frame.columns]
        rows = []
        for values in frame.itertuples(index=False, name=None):
            if coerce:
                values = [infer_value(v) for v in values]
            rows.append(dict(zip(columns, values)))
        return cls(columns, rows)
