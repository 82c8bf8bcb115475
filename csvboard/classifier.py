"""
Column classification: infer categorical / numerical / date per column and
compute the descriptive statistics the dashboard and the insight prompt use.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import MAX_CATEGORICAL_UNIQUE
from .models import ColumnProfile, ColumnStats, RawTable
from .parser import is_missing

logger = logging.getLogger(__name__)

NUMERIC_RATIO_THRESHOLD = 0.7
DATE_RATIO_THRESHOLD = 0.3
MIN_DATE_LENGTH = 5
SAMPLE_VALUE_COUNT = 5


def coerce_numeric(cells: Sequence[str]) -> np.ndarray:
    """Parse cells as floats; unparseable or non-finite cells become NaN."""
    if len(cells) == 0:
        return np.array([], dtype=float)
    numbers = pd.to_numeric(pd.Series(list(cells), dtype=object), errors="coerce").to_numpy(dtype=float, copy=True)
    numbers[~np.isfinite(numbers)] = np.nan
    return numbers


def coerce_dates(cells: Sequence[str]) -> pd.Series:
    """Parse cells as timestamps (UTC); anything else becomes NaT.

    Only strings longer than four characters that contain a digit are tried,
    so bare month or weekday names stay text. Plain numbers are never read
    as dates.
    """
    series = pd.Series(list(cells), dtype=object)
    if series.empty:
        return pd.Series([], dtype="datetime64[ns, UTC]")
    eligible = (
        series.str.len().ge(MIN_DATE_LENGTH)
        & series.str.contains(r"\d", regex=True)
        & np.isnan(coerce_numeric(cells))
    )
    return pd.to_datetime(series.where(eligible), errors="coerce", format="mixed", utc=True)


def quartiles(ordered: np.ndarray) -> Tuple[float, float, float]:
    """(q1, median, q3) of an ascending array, picked by floor index positions."""
    n = len(ordered)
    return (
        float(ordered[int(n * 0.25)]),
        float(ordered[n // 2]),
        float(ordered[int(n * 0.75)]),
    )


def numeric_stats(numbers: np.ndarray, null_count: int) -> ColumnStats:
    valid = np.sort(numbers[~np.isnan(numbers)])
    if len(valid) == 0:
        return ColumnStats(null_count=null_count)
    q1, median, q3 = quartiles(valid)
    return ColumnStats(
        min=float(valid[0]),
        max=float(valid[-1]),
        mean=float(valid.mean()),
        median=median,
        quartiles=[q1, q3],
        null_count=null_count,
    )


def profile_column(table: RawTable, position: int, max_categorical_unique: int = MAX_CATEGORICAL_UNIQUE) -> ColumnProfile:
    """Classify one column and summarize it."""
    cells = table.column(position)
    values = [v for v in cells if not is_missing(v)]
    total = len(values)
    null_count = len(cells) - total
    unique_count = len(set(values))

    numbers = coerce_numeric(values)
    numeric_ratio = np.count_nonzero(~np.isnan(numbers)) / total if total else 0.0
    date_ratio = coerce_dates(values).notna().sum() / total if total else 0.0

    is_numeric = numeric_ratio > NUMERIC_RATIO_THRESHOLD
    if date_ratio > DATE_RATIO_THRESHOLD:
        kind = "date"
    elif is_numeric and unique_count > max_categorical_unique:
        kind = "numerical"
    else:
        # Low-cardinality numbers (ratings, flags) group better than they plot
        kind = "categorical"

    stats = numeric_stats(numbers, null_count) if kind == "numerical" else ColumnStats(null_count=null_count)

    return ColumnProfile(
        name=table.headers[position],
        position=position,
        kind=kind,
        unique_count=unique_count,
        sample_values=values[:SAMPLE_VALUE_COUNT],
        numeric_candidate=is_numeric,
        stats=stats,
    )


def classify(table: RawTable, max_categorical_unique: int = MAX_CATEGORICAL_UNIQUE) -> List[ColumnProfile]:
    """Profile every column of the table, in header order.

    A table without data rows has nothing to classify and yields [].
    """
    if not table.headers or not table.rows:
        return []

    profiles = [profile_column(table, position, max_categorical_unique) for position in range(len(table.headers))]

    logger.info(
        "Classified %d columns: %d numerical, %d categorical, %d date",
        len(profiles),
        sum(1 for p in profiles if p.kind == "numerical"),
        sum(1 for p in profiles if p.kind == "categorical"),
        sum(1 for p in profiles if p.kind == "date"),
    )
    return profiles
