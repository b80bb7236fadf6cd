"""Download catalog CSVs and turn them into rows for the interpreter or frames for the engine."""

import io
import logging
import warnings

import numpy as np
import pandas as pd
import requests

from . import config
from .errors import DatasetLoadError
from .relation import Relation

logger = logging.getLogger(__name__)


def fetch_csv(url: str, timeout: float = None) -> str:
    try:
        r = requests.get(url, timeout=timeout or config.HTTP_TIMEOUT)
        r.raise_for_status()
    except requests.RequestException as exc:
        raise DatasetLoadError(f"Failed to download {url}: {exc}") from exc
    return r.text


def parse_csv(text: str) -> pd.DataFrame:
    """Parse CSV text keeping every field as a string; blank lines are skipped.

    Malformed rows are dropped and reported through the module logger.
    """
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", pd.errors.ParserWarning)
            frame = pd.read_csv(
                io.StringIO(text),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                on_bad_lines="warn",
            )
    except pd.errors.EmptyDataError as exc:
        raise DatasetLoadError("No columns found in CSV") from exc
    except (pd.errors.ParserError, ValueError) as exc:
        raise DatasetLoadError(f"Could not parse CSV: {exc}") from exc

    for w in caught:
        if issubclass(w.category, pd.errors.ParserWarning):
            logger.warning("Skipped malformed CSV rows: %s", str(w.message).strip())
        else:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)

    frame.columns = [str(c).strip() for c in frame.columns]
    if len(frame.columns) == 0:
        raise DatasetLoadError("No columns found in CSV")
    return frame


def to_relation(frame: pd.DataFrame, max_rows: int = None) -> Relation:
    """Raw string rows for the interpreter; values are typed when a query runs."""
    cap = config.MAX_INTERPRETER_ROWS if max_rows is None else max_rows
    if len(frame) > cap:
        logger.info("Capping %d rows to %d for the interpreter", len(frame), cap)
        frame = frame.head(cap)
    return Relation.from_frame(frame, coerce=False)


def typed_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Numeric columns become numbers, empty strings become nulls (engine bulk load)."""
    out = frame.where(frame != "", np.nan)
    for col in out.columns:
        present = out[col].notna()
        if not present.any():
            continue
        converted = pd.to_numeric(out[col], errors="coerce")
        if converted[present].notna().all():
            out[col] = converted
    return out


def load_dataset(dataset: config.Dataset, timeout: float = None) -> pd.DataFrame:
    logger.info("Downloading %s from %s", dataset.name, dataset.url)
    frame = parse_csv(fetch_csv(dataset.url, timeout=timeout))
    logger.info("Parsed %s: %d rows x %d cols", dataset.id, len(frame), len(frame.columns))
    return frame
