"""
csvboard Server - CSV analysis backend for the AI IDE
FastAPI server for parsing, column profiling, chart data, cleaning and dashboards.
"""

import logging
from typing import Any, Dict, Literal, Optional

from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from . import __version__, config
from .assistant import answer_query
from .charts import chart_categories, generate_charts
from .classifier import classify
from .cleaner import clean
from .dashboard import build_dashboard
from .insights import visualize
from .parser import parse

logger = logging.getLogger(__name__)

app = FastAPI(title="csvboard Server", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------
# Request Models
# ---------------------

class CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CsvRequest(CamelRequest):
    csv_data: str


class AnalyzeRequest(CsvRequest):
    max_categorical_unique: int = config.MAX_CATEGORICAL_UNIQUE


class ChartsRequest(AnalyzeRequest):
    sample_rows: int = config.CHART_SAMPLE_ROWS


class DashboardRequest(CsvRequest):
    file_name: str = "dataset.csv"


class VisualizeRequest(CsvRequest):
    prompt: str
    chart_type: Literal["bar", "line", "pie"] = "bar"


class AssistantRequest(CamelRequest):
    prompt: str
    csv_data: Optional[str] = None
    file_name: Optional[str] = None


# ---------------------
# Helper Functions
# ---------------------

def make_response(success: bool, data: Any = None, error: str = None) -> Dict:
    """Standard response format."""
    return {"success": success, "data": data, "error": error}


# ---------------------
# API Endpoints
# ---------------------

@app.get("/status")
async def get_status():
    """Health check endpoint."""
    return make_response(True, {
        "status": "online",
        "version": __version__,
        "llm_configured": bool(config.LLM_API_KEYS),
    })


@app.post("/parse")
async def parse_csv(request: CsvRequest):
    """Split CSV text into headers and rows."""
    try:
        table = parse(request.csv_data)
        return make_response(True, {
            "headers": table.headers,
            "n_rows": len(table.rows),
            "n_cols": len(table.headers),
            "preview": table.rows[:10],
        })

    except Exception as e:
        logger.exception("Parse failed")
        return make_response(False, error=str(e))


@app.post("/analyze")
async def analyze_columns(request: AnalyzeRequest):
    """Classify every column and return its profile."""
    try:
        table = parse(request.csv_data)
        profiles = classify(table, request.max_categorical_unique)
        return make_response(True, {
            "n_rows": len(table.rows),
            "column_analysis": [p.to_dict() for p in profiles],
        })

    except Exception as e:
        logger.exception("Column analysis failed")
        return make_response(False, error=str(e))


@app.post("/charts")
async def create_charts(request: ChartsRequest):
    """Generate the chart batch for a CSV."""
    try:
        table = parse(request.csv_data)
        profiles = classify(table, request.max_categorical_unique)
        charts = generate_charts(table, profiles, request.sample_rows)
        return make_response(True, {
            "charts": [c.to_dict() for c in charts],
            "chart_categories": chart_categories(charts),
        })

    except Exception as e:
        logger.exception("Chart generation failed")
        return make_response(False, error=str(e))


@app.post("/clean")
async def clean_csv(request: CsvRequest):
    """Clean CSV text and return it with the cleaning summary."""
    try:
        return make_response(True, clean(request.csv_data).to_dict())

    except Exception as e:
        logger.exception("Cleaning failed")
        return make_response(False, error=str(e))


@app.post("/clean/upload")
async def clean_upload(file: UploadFile = File(...)):
    """Clean an uploaded CSV file."""
    try:
        content = (await file.read()).decode("utf-8", errors="ignore")
        result = clean(content).to_dict()
        result["fileName"] = file.filename or "uploaded_dataset.csv"
        return make_response(True, result)

    except Exception as e:
        logger.exception("Upload cleaning failed")
        return make_response(False, error=str(e))


@app.post("/dashboard")
async def create_dashboard(request: DashboardRequest):
    """Build the full dashboard: charts, key metrics and narrative insights."""
    try:
        if not request.csv_data.strip():
            return make_response(False, error="No CSV data provided")

        report = await build_dashboard(request.csv_data, request.file_name)
        return make_response(True, report.to_dict())

    except Exception as e:
        logger.exception("Dashboard generation failed")
        return make_response(False, error=str(e))


@app.post("/visualize")
async def create_visualization(request: VisualizeRequest):
    """Chart configuration for a free-text visualization request."""
    try:
        if not request.csv_data.strip():
            return make_response(False, error="No CSV data provided")
        if not request.prompt.strip():
            return make_response(False, error="No visualization prompt provided")

        visualization = await visualize(request.csv_data, request.prompt, request.chart_type)
        return make_response(True, {"visualization": visualization.to_dict()})

    except Exception as e:
        logger.exception("Visualization failed")
        return make_response(False, error=str(e))


@app.post("/assistant")
async def ask_assistant(request: AssistantRequest):
    """Answer a data question about the open CSV."""
    try:
        reply = await answer_query(request.prompt, request.csv_data, request.file_name)
        return make_response(True, reply.to_dict())

    except Exception as e:
        logger.exception("Assistant request failed")
        return make_response(False, error=str(e))
