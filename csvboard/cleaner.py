"""
Clean-on-upload: normalize a raw CSV line by line and prepend a commented
summary plus a fixed-width preview. The full cleaned dataset always follows
the summary, and every summary/preview line is a '#' comment so the result
parses back to the cleaned data.
"""

import logging
from typing import List

from .models import CleanResult, DatasetStats
from .parser import is_comment, parse_header, parse_row

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 5
PREVIEW_COL_WIDTH = 15
DEFAULT_OPERATION = "Basic formatting and null value standardization"


def fit_cell(value: str, width: int = PREVIEW_COL_WIDTH) -> str:
    """Right-pad to width, or truncate with an ellipsis when too long."""
    if len(value) > width:
        return value[:width - 3] + "..."
    return value.ljust(width)


def render_preview(headers: List[str], rows: List[List[str]], limit: int = PREVIEW_ROWS) -> List[str]:
    """DataFrame.head()-style fixed-width table of the first rows."""
    head = rows[:limit]
    lines = [
        "DataFrame.head() - First 5 rows preview:",
        "",
        "     " + " ".join(fit_cell(h) for h in headers),
        "     " + " ".join("-" * PREVIEW_COL_WIDTH for _ in headers),
    ]
    for index, row in enumerate(head):
        lines.append(f"{index:>3}  " + " ".join(fit_cell(cell) for cell in row))
    lines.append("")
    lines.append(f"Shape: ({len(rows)}, {len(headers)})")
    return lines


def comment(lines: List[str]) -> List[str]:
    return [f"# {line}".rstrip() for line in lines]


def clean(text: str) -> CleanResult:
    """Clean raw CSV text and report what was done."""
    lines = (text or "").splitlines()

    # Header = first line that is neither blank nor a comment
    header_at = next((i for i, line in enumerate(lines) if line.strip() and not is_comment(line)), None)
    if header_at is None:
        stats = DatasetStats(original_rows=0, cleaned_rows=0, columns=0, cleaning_operations=[DEFAULT_OPERATION])
        return CleanResult(cleaned_text="", stats=stats)

    headers = parse_header(lines[header_at])
    body = lines[header_at + 1:]

    operations = []
    empty_count = sum(1 for line in body if not line.strip())
    comment_count = sum(1 for line in body if line.strip() and is_comment(line))
    if empty_count:
        operations.append(f"Removed {empty_count} empty rows")
    if comment_count:
        operations.append(f"Removed {comment_count} comment lines")
    if not operations:
        operations.append(DEFAULT_OPERATION)

    rows = [parse_row(line) for line in body if line.strip() and not is_comment(line)]

    stats = DatasetStats(
        original_rows=len(body),
        cleaned_rows=len(rows),
        columns=len(headers),
        cleaning_operations=operations,
    )

    summary = [
        "Dataset Cleaning Summary",
        f"Original rows: {stats.original_rows}",
        f"Cleaned rows: {stats.cleaned_rows}",
        f"Columns: {stats.columns}",
        f"Operations: {', '.join(stats.cleaning_operations)}",
        "Full cleaned dataset follows the preview below.",
        "Ready for analysis - Ask the AI assistant about this data!",
        "",
    ]
    data = [",".join(headers)] + [",".join(row) for row in rows]
    cleaned_text = "\n".join(comment(summary) + comment(render_preview(headers, rows)) + data) + "\n"

    logger.debug("Cleaned dataset: %d -> %d rows, %d columns", stats.original_rows, stats.cleaned_rows, stats.columns)
    return CleanResult(cleaned_text=cleaned_text, stats=stats)
