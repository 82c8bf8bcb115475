"""
Chart data generation.

Turns a parsed table plus its column profiles into chart-ready records:
histograms, densities and boxplots per numerical column, correlation
heatmaps, scatter pairs, category breakdowns and time series. Rendering is
left to the front end; only semantic data is produced here.
"""

import logging
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .classifier import coerce_dates, coerce_numeric, quartiles
from .config import CHART_SAMPLE_ROWS
from .models import (
    CHART_CATEGORIES,
    AreaChart,
    BarChart,
    BoxplotChart,
    BoxplotRecord,
    CategoryMean,
    Chart,
    ChartConfig,
    ColumnProfile,
    DensityBin,
    HeatmapCell,
    HeatmapChart,
    HistogramBin,
    LineChart,
    PieChart,
    PieSlice,
    RawTable,
    ScatterChart,
    ScatterPoint,
    TimeSeriesPoint,
)
from .parser import is_missing

logger = logging.getLogger(__name__)

HISTOGRAM_BINS = 10
SCATTER_POINT_LIMIT = 50
MIN_SCATTER_POINTS = 6
MIN_TIMESERIES_POINTS = 3
MIN_PIE_SLICES = 2
# Categorical columns with more distinct values than this are not grouped or charted
CATEGORY_LIMIT = 20


# ---------------------
# Statistics helpers
# ---------------------

def pearson(xs: np.ndarray, ys: np.ndarray) -> float:
    """Pearson correlation over the positions where both values are present.

    Returns 0 when fewer than two pairs survive or either side has no spread.
    """
    n = min(len(xs), len(ys))
    x = np.asarray(xs[:n], dtype=float)
    y = np.asarray(ys[:n], dtype=float)
    mask = ~np.isnan(x) & ~np.isnan(y)
    x, y = x[mask], y[mask]
    if len(x) < 2:
        return 0.0

    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.sum(dx ** 2)) * np.sqrt(np.sum(dy ** 2))
    if denominator == 0:
        return 0.0
    return float(np.clip(np.sum(dx * dy) / denominator, -1.0, 1.0))


def histogram_counts(values: np.ndarray, bins: int = HISTOGRAM_BINS) -> List[Tuple[float, float, int]]:
    """Equal-width bins over [min, max] as (start, end, count); the last bin keeps the max."""
    lo, hi = float(values.min()), float(values.max())
    width = (hi - lo) / bins
    if not np.isfinite(width):
        # Range too wide for float64
        return [(lo, hi, len(values))]
    if width > 0:
        positions = np.clip(((values - lo) / width).astype(int), 0, bins - 1)
    else:
        positions = np.zeros(len(values), dtype=int)
    counts = np.bincount(positions, minlength=bins)
    return [(lo + i * width, lo + (i + 1) * width, int(counts[i])) for i in range(bins)]


def boxplot_record(name: str, values: np.ndarray) -> BoxplotRecord:
    ordered = np.sort(values)
    q1, median, q3 = quartiles(ordered)
    iqr = q3 - q1
    outliers = int(np.count_nonzero((ordered < q1 - 1.5 * iqr) | (ordered > q3 + 1.5 * iqr)))
    return BoxplotRecord(
        name=name,
        min=float(ordered[0]),
        q1=q1,
        median=median,
        q3=q3,
        max=float(ordered[-1]),
        outliers=outliers,
    )


def correlation_cells(names: Sequence[str], series: Sequence[np.ndarray]) -> List[HeatmapCell]:
    """Flattened N x N correlation matrix, values rounded to 2dp."""
    return [
        HeatmapCell(x=names[i], y=names[j], value=round(pearson(series[i], series[j]), 2))
        for i in range(len(names))
        for j in range(len(names))
    ]


def factorize(cells: Sequence[str]) -> np.ndarray:
    """Integer codes per distinct value in first-seen order; missing cells become NaN."""
    codes, _ = pd.factorize(pd.Series([None if is_missing(c) else c for c in cells], dtype=object))
    coded = codes.astype(float)
    coded[codes < 0] = np.nan
    return coded


def chart_categories(charts: Sequence[Chart]) -> Dict[str, int]:
    """Number of charts per analysis category."""
    counts = {category: 0 for category in CHART_CATEGORIES}
    for chart in charts:
        counts[chart.category] += 1
    return counts


# ---------------------
# Batch assembly
# ---------------------

class ChartBatch:
    """Charts of one generation run; ids are kept unique inside the batch."""

    def __init__(self) -> None:
        self.charts: List[Chart] = []
        self._ids = set()

    def unique_id(self, base: str) -> str:
        chart_id = base
        counter = 1
        while chart_id in self._ids:
            chart_id = f"{base}_{counter}"
            counter += 1
        self._ids.add(chart_id)
        return chart_id

    def add(self, chart_cls, chart_id: str, **fields) -> None:
        self.charts.append(chart_cls(id=self.unique_id(chart_id), **fields))


class _Sample:
    """First rows of a table with per-column parses cached."""

    def __init__(self, table: RawTable, limit: int) -> None:
        self.table = table
        self.limit = limit
        self._numbers: Dict[int, np.ndarray] = {}

    def cells(self, position: int) -> List[str]:
        return self.table.column(position, self.limit)

    def numbers(self, position: int) -> np.ndarray:
        if position not in self._numbers:
            self._numbers[position] = coerce_numeric(self.cells(position))
        return self._numbers[position]


# ---------------------
# Chart families
# ---------------------

def add_univariate(batch: ChartBatch, sample: _Sample, column: ColumnProfile) -> None:
    numbers = sample.numbers(column.position)
    values = numbers[~np.isnan(numbers)]
    if len(values) == 0:
        return

    bins = histogram_counts(values)
    batch.add(
        BarChart,
        f"histogram-{column.name}",
        title=f"Histogram of {column.name}",
        description=f"Distribution of {column.name} values",
        category="univariate",
        data=[HistogramBin(name=f"{start:.1f}-{end:.1f}", value=count, bin=i) for i, (start, end, count) in enumerate(bins)],
        config=ChartConfig(x_key="name", y_key="value"),
    )
    batch.add(
        AreaChart,
        f"density-{column.name}",
        title=f"Density of {column.name}",
        description=f"Share of {column.name} values per bin",
        category="univariate",
        data=[DensityBin(name=f"{start:.1f}-{end:.1f}", value=count, density=round(count / len(values), 4)) for start, end, count in bins],
        config=ChartConfig(x_key="name", y_key="density"),
    )
    batch.add(
        BoxplotChart,
        f"boxplot-{column.name}",
        title=f"Box Plot of {column.name}",
        description=f"Quartile analysis of {column.name}",
        category="univariate",
        data=[boxplot_record(column.name, values)],
        config=ChartConfig(data_key="name"),
    )


def add_correlation(batch: ChartBatch, sample: _Sample, numerical: List[ColumnProfile]) -> None:
    if len(numerical) < 2:
        return
    batch.add(
        HeatmapChart,
        "correlation-heatmap",
        title="Correlation Heatmap",
        description="Correlation matrix of numerical variables",
        category="correlation",
        data=correlation_cells([c.name for c in numerical], [sample.numbers(c.position) for c in numerical]),
        config=ChartConfig(x_key="x", y_key="y", value_key="value"),
    )


def add_bivariate(batch: ChartBatch, sample: _Sample, categorical: ColumnProfile, numerical: ColumnProfile) -> None:
    labels = sample.cells(categorical.position)
    numbers = sample.numbers(numerical.position)

    # Group numerical values by category, first-seen order
    grouped: Dict[str, List[float]] = {}
    for label, value in zip(labels, numbers):
        if is_missing(label) or np.isnan(value):
            continue
        grouped.setdefault(label, []).append(float(value))
    if not grouped:
        return

    groups = {label: np.array(values) for label, values in grouped.items()}
    batch.add(
        BarChart,
        f"bar-{categorical.name}-{numerical.name}",
        title=f"Mean {numerical.name} by {categorical.name}",
        description=f"Average {numerical.name} across different {categorical.name} categories",
        category="bivariate",
        data=[
            CategoryMean(name=label, value=round(float(values.mean()), 4), std=round(float(values.std()), 4), count=len(values))
            for label, values in groups.items()
        ],
        config=ChartConfig(x_key="name", y_key="value"),
    )
    batch.add(
        BoxplotChart,
        f"boxplot-{categorical.name}-{numerical.name}",
        title=f"Box Plot: {numerical.name} by {categorical.name}",
        description=f"Distribution of {numerical.name} across {categorical.name} categories",
        category="bivariate",
        data=[boxplot_record(label, values) for label, values in groups.items()],
        config=ChartConfig(x_key="name", y_key="median"),
    )


def add_pairwise(batch: ChartBatch, sample: _Sample, first: ColumnProfile, second: ColumnProfile) -> None:
    xs = sample.numbers(first.position)
    ys = sample.numbers(second.position)
    points = [
        ScatterPoint(x=float(x), y=float(y), name=f"Point {idx}")
        for idx, (x, y) in enumerate(zip(xs, ys))
        if not (np.isnan(x) or np.isnan(y))
    ][:SCATTER_POINT_LIMIT]
    if len(points) < MIN_SCATTER_POINTS:
        return

    batch.add(
        ScatterChart,
        f"scatter-{first.name}-{second.name}",
        title=f"{first.name} vs {second.name}",
        description=f"Relationship between {first.name} and {second.name}",
        category="pairwise",
        data=points,
        config=ChartConfig(x_key="x", y_key="y"),
    )
    batch.add(
        ScatterChart,
        f"regression-{first.name}-{second.name}",
        title=f"{first.name} vs {second.name} (trend)",
        description=f"Trend of {second.name} against {first.name}",
        category="pairwise",
        data=points,
        config=ChartConfig(x_key="x", y_key="y", show_trend=True),
    )


def add_distribution(batch: ChartBatch, sample: _Sample, column: ColumnProfile) -> None:
    values = pd.Series([c for c in sample.cells(column.position) if not is_missing(c)], dtype=object)
    counts = values.value_counts(sort=False).sort_values(ascending=False, kind="stable")
    if not MIN_PIE_SLICES <= len(counts) <= CATEGORY_LIMIT:
        return

    total = int(counts.sum())
    batch.add(
        PieChart,
        f"pie-{column.name}",
        title=f"Distribution of {column.name}",
        description=f"Breakdown of {column.name} categories",
        category="categorical",
        data=[PieSlice(name=str(name), value=int(count), percentage=round(float(100 * count / total), 1)) for name, count in counts.items()],
        config=ChartConfig(data_key="value"),
    )


def add_timeseries(batch: ChartBatch, sample: _Sample, date: ColumnProfile, value: ColumnProfile) -> None:
    stamps = coerce_dates(sample.cells(date.position))
    numbers = sample.numbers(value.position)

    pairs = [(stamp, float(number)) for stamp, number in zip(stamps, numbers) if not pd.isna(stamp) and not np.isnan(number)]
    if len(pairs) < MIN_TIMESERIES_POINTS:
        return
    pairs.sort(key=lambda pair: pair[0])

    batch.add(
        LineChart,
        f"timeseries-{date.name}-{value.name}",
        title=f"Time Series: {value.name} over {date.name}",
        description=f"Trend of {value.name} over time",
        category="timeseries",
        data=[
            TimeSeriesPoint(date=stamp.strftime("%Y-%m-%d"), value=number, name=f"{stamp.month}/{stamp.day}/{stamp.year}")
            for stamp, number in pairs
        ],
        config=ChartConfig(x_key="name", y_key="value"),
    )


def add_categorical_correlation(batch: ChartBatch, sample: _Sample, categorical: List[ColumnProfile]) -> None:
    if len(categorical) < 2:
        return
    batch.add(
        HeatmapChart,
        "categorical-correlation-heatmap",
        title="Categorical Variables Correlation",
        description="Correlation matrix of categorical variables (encoded)",
        category="categorical",
        data=correlation_cells([c.name for c in categorical], [factorize(sample.cells(c.position)) for c in categorical]),
        config=ChartConfig(x_key="x", y_key="y", value_key="value"),
    )


def generate_charts(
    table: RawTable,
    profiles: Sequence[ColumnProfile],
    sample_rows: int = CHART_SAMPLE_ROWS,
) -> List[Chart]:
    """Build every chart the column mix supports, from the first sample_rows rows."""
    if not table.rows or not profiles:
        return []

    numerical = [p for p in profiles if p.kind == "numerical"]
    dates = [p for p in profiles if p.kind == "date"]
    # Only low-cardinality categories make readable groupings
    categorical = [p for p in profiles if p.kind == "categorical" and 0 < p.unique_count <= CATEGORY_LIMIT]
    # Dated values may live in low-cardinality numeric columns too
    trend_values = [p for p in profiles if p.kind == "numerical" or (p.kind == "categorical" and p.numeric_candidate)]

    sample = _Sample(table, sample_rows)
    batch = ChartBatch()

    # 1. Univariate numerical analysis
    for column in numerical:
        add_univariate(batch, sample, column)

    # 2. Correlation heatmap
    add_correlation(batch, sample, numerical)

    # 3. Categorical vs numerical
    for cat_col in categorical:
        for num_col in numerical:
            add_bivariate(batch, sample, cat_col, num_col)

    # 4. Numerical vs numerical
    for i, first in enumerate(numerical):
        for second in numerical[i + 1:]:
            add_pairwise(batch, sample, first, second)

    # 5. Categorical distributions
    for column in categorical:
        add_distribution(batch, sample, column)

    # 6. Time series
    for date_col in dates:
        for value_col in trend_values:
            add_timeseries(batch, sample, date_col, value_col)

    # 7. Categorical correlation heatmap
    add_categorical_correlation(batch, sample, categorical)

    logger.info("Generated %d charts from %d sampled rows", len(batch.charts), min(len(table.rows), sample_rows))
    return batch.charts
