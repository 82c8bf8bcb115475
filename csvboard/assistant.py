"""
Data assistant answers for questions asked about an open CSV file.

Column questions are answered straight from the header; anything else goes
to the LLM with the CSV context, with a plain summary when it is unavailable.
"""

import logging
import re
from typing import List, Optional

import httpx

from .insights import call_llm
from .models import FrozenModel
from .parser import parse_header, significant_lines

logger = logging.getLogger(__name__)

COLUMN_QUESTION_RE = re.compile(r"\bcolumns?\b|\bheaders?\b")
PREVIEW_LINES = 10
MAX_CONTEXT_CHARS = 8000

SYSTEM_PROMPT = """You are a data analyst. Help analyze CSV data and generate insights.
When CSV context is provided, always base your answers strictly on it. If the user asks for column names, list them exactly from the header.
If something is not present in the data, clearly say so."""


class AssistantReply(FrozenModel):
    content: str
    request_type: str = "data_analysis"


def header_columns(csv_text: str) -> List[str]:
    """Column names from the first line that is not blank or a comment ('#', '//')."""
    for line in csv_text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#") and not stripped.startswith("//"):
            return [name for name in parse_header(stripped) if name]
    return []


def asks_for_columns(prompt: str) -> bool:
    return bool(COLUMN_QUESTION_RE.search(prompt.lower()))


def csv_context(csv_text: str, file_name: str) -> str:
    columns = header_columns(csv_text)
    preview = "\n".join(csv_text.splitlines()[:PREVIEW_LINES])
    return (
        f"CSV CONTEXT\n- File: {file_name or 'uploaded.csv'}\n"
        f"- Columns ({len(columns)}): {', '.join(columns)}\n"
        f"- Preview (first lines):\n{preview}\n\n"
        "Instructions: Use this CSV context to answer the user's data questions. "
        "If the question is about columns, repeat the exact names above."
    )[:MAX_CONTEXT_CHARS]


def summarize_dataset(csv_text: str, prompt: str) -> str:
    """Deterministic answer used when the LLM is unavailable."""
    lines = significant_lines(csv_text)
    rows = max(len(lines) - 1, 0)
    columns = len(header_columns(csv_text))
    return (
        f"I can analyze your dataset with {rows} rows and {columns} columns. "
        f"AI insights are unavailable right now, so \"{prompt}\" could not be answered in detail."
    )


async def answer_query(
    prompt: str,
    csv_text: Optional[str] = None,
    file_name: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AssistantReply:
    """Answer a data question about the given CSV text."""
    prompt = prompt or ""

    # Fast path: column listings come from the header, no model needed
    if csv_text and asks_for_columns(prompt):
        columns = header_columns(csv_text) or ["(No header row detected)"]
        listing = "\n- ".join(columns)
        return AssistantReply(content=f"Here are the columns detected from {file_name or 'the uploaded CSV'}:\n- {listing}")

    messages = [{"role": "system", "content": SYSTEM_PROMPT}]
    if csv_text:
        messages.append({"role": "system", "content": csv_context(csv_text, file_name or "")})
    messages.append({"role": "user", "content": prompt})

    response = await call_llm(messages, json_mode=False, transport=transport)
    if response and "text" in response:
        return AssistantReply(content=response["text"])

    if csv_text:
        return AssistantReply(content=summarize_dataset(csv_text, prompt))
    logger.info("Assistant answer unavailable: no CSV context and no LLM response")
    return AssistantReply(content="AI assistance is unavailable right now. Open a CSV file to get a dataset summary.")
