"""csvboard - CSV analysis pipeline behind the AI IDE dashboard."""

__version__ = "1.0.0"

from .charts import chart_categories, generate_charts
from .classifier import classify
from .cleaner import clean
from .dashboard import analyze, assemble_dashboard, build_dashboard
from .parser import parse

__all__ = [
    "analyze",
    "assemble_dashboard",
    "build_dashboard",
    "chart_categories",
    "classify",
    "clean",
    "generate_charts",
    "parse",
]
