"""
Boundary with the external text-generation service.

The service receives column profiles and sample rows as a prompt and answers
with the narrative insights object. Any failure along the way (no key,
timeout, quota, bad JSON) yields None so callers can fall back to the
deterministic narrative built from the profiles alone.

Free-text chart requests go through the same boundary: the service answers
with a chart configuration, and a plain name/value chart over the first rows
stands in when it cannot.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx
import numpy as np
from pydantic import ValidationError

from . import config
from .charts import chart_categories
from .classifier import coerce_numeric
from .models import Chart, ColumnProfile, DataQuality, Insights, RawTable, Visualization, VisualizationConfig
from .parser import is_missing, parse

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\n?")
SAMPLE_LINES = 4
VISUALIZATION_SAMPLE_ROWS = 5
VISUALIZATION_FALLBACK_ROWS = 20


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps JSON in."""
    return FENCE_RE.sub("", text).strip()


def model_routing() -> List[str]:
    models = [config.PRIMARY_MODEL]
    if config.FALLBACK_MODEL_1:
        models.append(config.FALLBACK_MODEL_1)
    if config.FALLBACK_MODEL_2:
        models.append(config.FALLBACK_MODEL_2)
    return models


async def call_llm(
    messages: List[Dict],
    json_mode: bool = True,
    api_keys: Optional[List[str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Dict]:
    """
    Call the chat completions endpoint with model fallback and multi-key capacity handling.

    Model routing: PRIMARY_MODEL -> FALLBACK_MODEL_1 -> FALLBACK_MODEL_2 (fixed order)
    Key rotation: on quota/429 errors or timeouts the next API key is tried
    """
    keys = config.LLM_API_KEYS if api_keys is None else api_keys
    if not keys:
        logger.info("No LLM API key configured, skipping insight request")
        return None

    for model in model_routing():
        for key_idx, api_key in enumerate(keys):
            try:
                headers = {
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                }
                payload = {
                    "model": model,
                    "messages": messages,
                    "temperature": 0.3,
                    "max_tokens": 2000,
                }
                if json_mode:
                    payload["response_format"] = {"type": "json_object"}

                async with httpx.AsyncClient(timeout=config.LLM_TIMEOUT_SECONDS, transport=transport) as client:
                    response = await client.post(
                        f"{config.LLM_BASE_URL}/chat/completions",
                        headers=headers,
                        json=payload,
                    )

                if response.status_code == 200:
                    content = response.json()["choices"][0]["message"]["content"]
                    if json_mode:
                        return json.loads(strip_code_fences(content))
                    return {"text": content}

                # Quota/rate-limit errors rotate to the next key
                if response.status_code == 429 or "quota" in response.text.lower():
                    logger.warning("LLM quota/rate-limit (%s, key #%d): %s", model, key_idx + 1, response.status_code)
                    continue

                logger.warning("LLM error (%s, key #%d): %s - %s", model, key_idx + 1, response.status_code, response.text[:200])
                break

            except httpx.TimeoutException:
                logger.warning("LLM timeout (%s, key #%d)", model, key_idx + 1)
                continue

            except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                # Transport failures and malformed bodies (json.JSONDecodeError is a ValueError)
                logger.warning("LLM exception (%s, key #%d): %s", model, key_idx + 1, e)
                continue

    return None


def describe_column(profile: ColumnProfile) -> str:
    details = f"- {profile.name}: {profile.kind} type, {profile.unique_count} unique values"
    stats = profile.stats
    if profile.kind == "numerical" and stats.min is not None:
        details += f", range: {stats.min:.2f} to {stats.max:.2f}, avg: {stats.mean:.2f}"
    return details


def build_insights_prompt(file_name: str, profiles: Sequence[ColumnProfile], charts: Sequence[Chart], csv_text: str) -> str:
    """Prompt asking for the narrative insights object as JSON."""
    counts = chart_categories(charts)
    columns = ", ".join(f"{p.name} ({p.kind}, {p.unique_count} unique values)" for p in profiles)
    column_details = "\n".join(describe_column(p) for p in profiles)
    sample = "\n".join(csv_text.splitlines()[:SAMPLE_LINES])

    return f"""Analyze this comprehensive dataset and provide business insights:

Dataset: {file_name}
Total Charts Generated: {len(charts)}
Columns: {columns}

Column Details:
{column_details}

Chart Types Generated:
- Univariate Analysis: {counts['univariate']} charts
- Correlation Analysis: {counts['correlation']} charts
- Pairwise Analysis: {counts['pairwise']} charts
- Bivariate Analysis: {counts['bivariate']} charts
- Categorical Analysis: {counts['categorical']} charts
- Time Series Analysis: {counts['timeseries']} charts

Sample data:
{sample}

Provide comprehensive business insights in JSON format:
{{
  "keyInsights": [
    "Most important business pattern or trend",
    "Critical correlation or relationship found",
    "Significant categorical distribution insight",
    "Data quality or outlier observation",
    "Strategic business recommendation"
  ],
  "dataQuality": {{
    "score": 85,
    "strengths": ["aspect1", "aspect2"],
    "concerns": ["issue1", "issue2"],
    "recommendations": ["action1", "action2"]
  }},
  "businessValue": "Overall strategic value and use cases for this dataset",
  "actionableInsights": [
    "Specific action item 1",
    "Specific action item 2",
    "Specific action item 3"
  ]
}}"""


def parse_insights(payload: Optional[Dict[str, Any]]) -> Optional[Insights]:
    """Validate the service's JSON answer; None when it does not fit."""
    if not payload:
        return None
    try:
        return Insights.model_validate(payload)
    except ValidationError as e:
        logger.warning("Unusable insights response: %s", e.error_count())
        return None


def fallback_insights(profiles: Sequence[ColumnProfile], row_count: int, chart_count: int) -> Insights:
    """Deterministic narrative derived only from the column profiles."""
    numerical = sum(1 for p in profiles if p.kind == "numerical")
    categorical = sum(1 for p in profiles if p.kind == "categorical")
    with_nulls = [p.name for p in profiles if p.stats.null_count > 0]

    concerns = ["Validate data consistency"]
    if with_nulls:
        concerns.insert(0, f"Missing values in {len(with_nulls)} columns: {', '.join(with_nulls[:3])}{'...' if len(with_nulls) > 3 else ''}")
    else:
        concerns.insert(0, "Check for missing values")

    return Insights(
        key_insights=[
            f"Dataset contains {len(profiles)} columns with {row_count} records",
            f"Generated {chart_count} visualizations covering univariate, bivariate, and correlation analysis",
            f"Found {numerical} numerical and {categorical} categorical variables",
            "Multiple chart types provide complete data exploration coverage",
            "Dataset suitable for advanced analytics and business intelligence",
        ],
        data_quality=DataQuality(
            score=85,
            strengths=["Well-structured columns", "Multiple data types", "Comprehensive coverage"],
            concerns=concerns,
            recommendations=["Perform data cleaning", "Consider additional features"],
        ),
        business_value=(
            "This dataset provides comprehensive insights across multiple dimensions, "
            "suitable for strategic decision-making and predictive analytics."
        ),
        actionable_insights=[
            "Focus on key correlations identified in heatmaps",
            "Investigate outliers shown in box plots",
            "Leverage categorical distributions for segmentation",
            "Monitor trends in time series analysis",
        ],
    )


async def request_insights(
    file_name: str,
    profiles: Sequence[ColumnProfile],
    charts: Sequence[Chart],
    csv_text: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Insights]:
    """One round trip to the insight service; None on any failure."""
    prompt = build_insights_prompt(file_name, profiles, charts, csv_text)
    payload = await call_llm(
        [
            {"role": "system", "content": "You are a senior data analyst. Respond with ONLY valid JSON."},
            {"role": "user", "content": prompt},
        ],
        json_mode=True,
        transport=transport,
    )
    return parse_insights(payload)


# ---------------------
# Prompt-driven visualization
# ---------------------

def build_visualization_prompt(table: RawTable, prompt: str, chart_type: str) -> str:
    sample = "\n".join(",".join(row) for row in table.rows[:VISUALIZATION_SAMPLE_ROWS])
    return f"""You are a data visualization expert. Analyze the CSV data and create appropriate chart configurations.

IMPORTANT: You must respond with ONLY valid JSON, no additional text or formatting.

CSV Headers: {', '.join(table.headers)}
Sample Data (first {VISUALIZATION_SAMPLE_ROWS} rows):
{sample}

User Request: {prompt}
Suggested Chart Type: {chart_type}

Create a visualization configuration with this exact structure:
{{
  "chartType": "{chart_type}",
  "data": [array of objects with keys matching CSV headers],
  "config": {{
    "title": "Chart Title",
    "xKey": "column_name_for_x_axis",
    "yKey": "column_name_for_y_axis"
  }},
  "insights": "Brief analysis of the data"
}}

For the data array, process the actual CSV data and create meaningful chart data objects. Use appropriate column names from the headers."""


def parse_visualization(payload: Optional[Dict[str, Any]]) -> Optional[Visualization]:
    if not payload:
        return None
    try:
        return Visualization.model_validate(payload)
    except ValidationError as e:
        logger.warning("Unusable visualization response: %s", e.error_count())
        return None


def fallback_visualization(table: RawTable, chart_type: str) -> Visualization:
    """Name/value chart over the first rows: first column as label, second as value.

    A missing label becomes "Row N"; a missing, unparseable or zero value
    becomes the row's 1-based position.
    """
    labels = table.column(0, VISUALIZATION_FALLBACK_ROWS)
    numbers = coerce_numeric(table.column(1, VISUALIZATION_FALLBACK_ROWS))

    data = []
    for index, (label, number) in enumerate(zip(labels, numbers)):
        value = float(number) if not np.isnan(number) and number != 0 else float(index + 1)
        data.append({"name": f"Row {index + 1}" if is_missing(label) else label, "value": value})

    return Visualization(
        chart_type=chart_type,
        data=data,
        config=VisualizationConfig(title=f"{chart_type.capitalize()} Chart from CSV Data", x_key="name", y_key="value"),
        insights=f"Showing {len(data)} data points from your CSV file. AI visualization was unavailable, using fallback visualization.",
    )


async def visualize(
    csv_text: str,
    prompt: str,
    chart_type: str = "bar",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Visualization:
    """Chart configuration for a free-text request; deterministic name/value chart on any failure."""
    table = parse(csv_text)
    payload = await call_llm(
        [
            {"role": "system", "content": "You are a data visualization expert. Respond with ONLY valid JSON."},
            {"role": "user", "content": build_visualization_prompt(table, prompt, chart_type)},
        ],
        json_mode=True,
        transport=transport,
    )

    visualization = parse_visualization(payload)
    if visualization is None:
        logger.info("Using fallback visualization for %d rows", len(table.rows))
        visualization = fallback_visualization(table, chart_type)
    return visualization
