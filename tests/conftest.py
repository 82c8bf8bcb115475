"""Shared fixtures for csvboard tests."""

import pytest

from csvboard import config

from .helpers import make_csv


@pytest.fixture
def sales_csv() -> str:
    """30 rows: region (2 values), units/revenue (all distinct), a 1-5 rating and an order date."""
    rows = []
    for i in range(1, 31):
        region = "North" if i % 2 else "South"
        rows.append([region, i, i * 2.5, (i % 5) + 1, f"2024-01-{i:02d}"])
    return make_csv(["region", "units", "revenue", "rating", "order_date"], rows)


@pytest.fixture
def timeseries_csv() -> str:
    return "d,v\n2024-01-01,10\n2024-01-02,20\n2024-01-03,15\n"


@pytest.fixture
def no_llm(monkeypatch):
    """Make sure no real insight service is contacted."""
    monkeypatch.setattr(config, "LLM_API_KEYS", [])
