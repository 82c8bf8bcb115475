"""
Dashboard assembly: CSV text -> profiles + charts -> one rendering payload.

``assemble_dashboard`` is pure data shaping over narrative insights the
caller already has. ``build_dashboard`` adds the single suspension point of
the pipeline, the insight-service round trip, with a timeout and the
deterministic fallback narrative.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from . import config
from .charts import chart_categories, generate_charts
from .classifier import classify
from .insights import fallback_insights, request_insights
from .models import Analysis, DashboardPayload, DashboardReport, Insights, KeyMetric
from .parser import parse

logger = logging.getLogger(__name__)


def analyze(
    csv_text: str,
    max_categorical_unique: int = config.MAX_CATEGORICAL_UNIQUE,
    sample_rows: int = config.CHART_SAMPLE_ROWS,
) -> Analysis:
    """Parse, classify and chart a CSV in one go."""
    table = parse(csv_text)
    profiles = classify(table, max_categorical_unique)
    charts = generate_charts(table, profiles, sample_rows)
    return Analysis(table=table, profiles=profiles, charts=charts)


def flatten_insights(insights: Insights) -> List[str]:
    """All narrative arrays in one list; quality notes carry a label prefix."""
    quality = insights.data_quality
    return [
        *insights.key_insights,
        *insights.actionable_insights,
        *[f"Data Strength: {s}" for s in quality.strengths],
        *[f"Data Concern: {c}" for c in quality.concerns],
        *[f"Recommendation: {r}" for r in quality.recommendations],
    ]


def key_metrics(analysis: Analysis, insights: Insights) -> List[KeyMetric]:
    profiles = analysis.profiles
    return [
        KeyMetric(label="Total Records", value=len(analysis.table.rows), trend="stable"),
        KeyMetric(label="Data Columns", value=len(profiles), trend="stable"),
        KeyMetric(label="Charts Generated", value=len(analysis.charts), trend="up"),
        KeyMetric(label="Numerical Fields", value=sum(1 for p in profiles if p.kind == "numerical"), trend="up"),
        KeyMetric(label="Categorical Fields", value=sum(1 for p in profiles if p.kind == "categorical"), trend="up"),
        KeyMetric(label="Data Quality Score", value=f"{insights.data_quality.score:g}%", trend="up"),
    ]


def shape_dashboard(file_name: str, analysis: Analysis, insights: Insights) -> DashboardPayload:
    return DashboardPayload(
        title=f"Comprehensive Dashboard: {file_name}",
        insights=flatten_insights(insights),
        charts=analysis.charts,
        key_metrics=key_metrics(analysis, insights),
        business_value=insights.business_value,
        data_quality=insights.data_quality,
    )


def assemble_dashboard(csv_text: str, file_name: str, insights: Insights) -> DashboardPayload:
    """Combine the statistical pipeline with externally supplied insights."""
    return shape_dashboard(file_name, analyze(csv_text), insights)


async def build_dashboard(
    csv_text: str,
    file_name: str,
    timeout: float = config.INSIGHTS_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DashboardReport:
    """Full dashboard request: analysis, insight round trip, fallback on failure."""
    analysis = analyze(csv_text)
    logger.info("Processing dashboard for %s: %d columns, %d charts", file_name, len(analysis.profiles), len(analysis.charts))

    insights = None
    try:
        insights = await asyncio.wait_for(
            request_insights(file_name, analysis.profiles, analysis.charts, csv_text, transport=transport),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Insight request for %s timed out after %ss", file_name, timeout)

    source = "llm"
    if insights is None:
        source = "fallback"
        insights = fallback_insights(analysis.profiles, len(analysis.table.rows), len(analysis.charts))

    return DashboardReport(
        dashboard=shape_dashboard(file_name, analysis, insights),
        column_analysis=analysis.profiles,
        chart_categories=chart_categories(analysis.charts),
        insights_source=source,
    )
