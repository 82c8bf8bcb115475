"""
Simple CSV splitter used by every csvboard component.

This is deliberately not a full CSV grammar: lines are split on commas, and a
cell wrapped in double quotes only loses that one outer pair of quotes.
"""

from typing import Dict, List

from .models import NULL_TOKEN, RawTable

NULL_LIKE = {"null", "n/a"}


def is_comment(line: str) -> bool:
    return line.strip().startswith("#")


def significant_lines(text: str) -> List[str]:
    """Lines that carry data: not blank and not a '#' comment."""
    return [line for line in text.splitlines() if line.strip() and not is_comment(line)]


def split_cells(line: str) -> List[str]:
    return line.split(",")


def unwrap(cell: str) -> str:
    """Trim whitespace and strip one pair of surrounding double quotes."""
    cleaned = cell.strip()
    # A lone '"' both starts and ends with a quote and unwraps to ""
    if cleaned.startswith('"') and cleaned.endswith('"'):
        cleaned = cleaned[1:-1]
    return cleaned


def is_null(value: str) -> bool:
    """Check whether an unwrapped value is one of the null spellings."""
    return value == "" or value == "-" or value.lower() in NULL_LIKE


def normalize_cell(cell: str) -> str:
    """Unwrap a data cell and standardize null-like tokens to NULL."""
    cleaned = unwrap(cell)
    return NULL_TOKEN if is_null(cleaned) else cleaned


def is_missing(value: str) -> bool:
    """True for cells that hold no value after normalization."""
    return value == NULL_TOKEN or value == ""


def parse_header(line: str) -> List[str]:
    return [unwrap(cell) for cell in split_cells(line)]


def parse_row(line: str) -> List[str]:
    return [normalize_cell(cell) for cell in split_cells(line)]


def build_header_index(headers: List[str]) -> Dict[str, int]:
    """Map each header name to the first position that carries it."""
    index = {}
    for position, name in enumerate(headers):
        index.setdefault(name, position)
    return index


def parse(text: str) -> RawTable:
    """Parse raw CSV text into headers and normalized rows.

    Never raises: empty input gives an empty table, ragged rows are kept
    with whatever number of cells they had.
    """
    lines = significant_lines(text or "")
    if not lines:
        return RawTable()

    headers = parse_header(lines[0])
    rows = [parse_row(line) for line in lines[1:]]
    return RawTable(headers=headers, rows=rows, header_index=build_header_index(headers))
