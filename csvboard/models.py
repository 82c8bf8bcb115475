"""
Data model shared by the csvboard pipeline.

Every model is immutable and serializes to the camelCase JSON the dashboard
front end consumes (``uniqueCount``, ``xKey``, ``cleaningOperations`` ...).
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ColumnKind = Literal["categorical", "numerical", "date"]
ChartCategory = Literal["univariate", "bivariate", "correlation", "pairwise", "categorical", "timeseries"]
Trend = Literal["up", "down", "stable"]

NULL_TOKEN = "NULL"

CHART_CATEGORIES: List[str] = ["univariate", "bivariate", "correlation", "pairwise", "categorical", "timeseries"]


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------
# Parsed table & column profiles
# ---------------------

class RawTable(FrozenModel):
    headers: List[str] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)
    # name -> first position carrying that name
    header_index: Dict[str, int] = Field(default_factory=dict)

    def column(self, position: int, limit: Optional[int] = None) -> List[str]:
        """Cells of one column; rows too short to reach it yield the NULL token."""
        rows = self.rows if limit is None else self.rows[:limit]
        return [row[position] if position < len(row) else NULL_TOKEN for row in rows]

    def position_of(self, name: str) -> Optional[int]:
        return self.header_index.get(name)


class ColumnStats(FrozenModel):
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    median: Optional[float] = None
    quartiles: Optional[List[float]] = None
    null_count: int = 0


class ColumnProfile(FrozenModel):
    name: str
    position: int
    kind: ColumnKind
    unique_count: int = 0
    sample_values: List[str] = Field(default_factory=list)
    # True when more than 70% of the values parse as numbers, whatever the kind
    numeric_candidate: bool = False
    stats: ColumnStats = Field(default_factory=ColumnStats)


# ---------------------
# Chart records (one shape per chart type)
# ---------------------

class HistogramBin(FrozenModel):
    name: str
    value: int
    bin: int


class DensityBin(FrozenModel):
    name: str
    value: int
    density: float


class CategoryMean(FrozenModel):
    name: str
    value: float
    std: float
    count: int


class BoxplotRecord(FrozenModel):
    name: str
    min: float
    q1: float
    median: float
    q3: float
    max: float
    outliers: int = 0


class HeatmapCell(FrozenModel):
    x: str
    y: str
    value: float


class ScatterPoint(FrozenModel):
    x: float
    y: float
    name: str


class PieSlice(FrozenModel):
    name: str
    value: int
    percentage: float


class TimeSeriesPoint(FrozenModel):
    date: str
    value: float
    name: str


class ChartConfig(FrozenModel):
    x_key: Optional[str] = None
    y_key: Optional[str] = None
    data_key: Optional[str] = None
    value_key: Optional[str] = None
    show_trend: Optional[bool] = None


class ChartBase(FrozenModel):
    id: str
    title: str
    description: str
    category: ChartCategory
    config: ChartConfig = Field(default_factory=ChartConfig)


class BarChart(ChartBase):
    type: Literal["bar"] = "bar"
    data: List[Union[HistogramBin, CategoryMean]]


class AreaChart(ChartBase):
    type: Literal["area"] = "area"
    data: List[DensityBin]


class BoxplotChart(ChartBase):
    type: Literal["boxplot"] = "boxplot"
    data: List[BoxplotRecord]


class HeatmapChart(ChartBase):
    type: Literal["heatmap"] = "heatmap"
    data: List[HeatmapCell]


class ScatterChart(ChartBase):
    type: Literal["scatter"] = "scatter"
    data: List[ScatterPoint]


class PieChart(ChartBase):
    type: Literal["pie"] = "pie"
    data: List[PieSlice]


class LineChart(ChartBase):
    type: Literal["line"] = "line"
    data: List[TimeSeriesPoint]


Chart = Annotated[
    Union[BarChart, AreaChart, BoxplotChart, HeatmapChart, ScatterChart, PieChart, LineChart],
    Field(discriminator="type"),
]


# ---------------------
# Cleaner output
# ---------------------

class DatasetStats(FrozenModel):
    original_rows: int
    cleaned_rows: int
    columns: int
    cleaning_operations: List[str]


class CleanResult(FrozenModel):
    cleaned_text: str
    stats: DatasetStats


# ---------------------
# Narrative insights & dashboard payload
# ---------------------

class DataQuality(FrozenModel):
    score: float = 80
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class Insights(FrozenModel):
    key_insights: List[str] = Field(default_factory=list)
    data_quality: DataQuality = Field(default_factory=DataQuality)
    business_value: str = ""
    actionable_insights: List[str] = Field(default_factory=list)


class VisualizationConfig(FrozenModel):
    title: str = ""
    x_key: Optional[str] = None
    y_key: Optional[str] = None


class Visualization(FrozenModel):
    """One prompt-driven chart: rows keyed by column name plus a short analysis."""
    chart_type: str = "bar"
    data: List[Dict[str, Any]] = Field(default_factory=list)
    config: VisualizationConfig = Field(default_factory=VisualizationConfig)
    insights: str = ""


class KeyMetric(FrozenModel):
    label: str
    value: Union[int, str]
    trend: Trend = "stable"


class Analysis(FrozenModel):
    table: RawTable
    profiles: List[ColumnProfile]
    charts: List[Chart]


class DashboardPayload(FrozenModel):
    title: str
    insights: List[str]
    charts: List[Chart]
    key_metrics: List[KeyMetric]
    business_value: str
    data_quality: DataQuality


class DashboardReport(FrozenModel):
    dashboard: DashboardPayload
    column_analysis: List[ColumnProfile]
    chart_categories: Dict[str, int]
    insights_source: Literal["llm", "fallback"] = "fallback"
