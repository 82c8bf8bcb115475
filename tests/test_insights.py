"""Tests for the insight service boundary."""

import json

import httpx
import pytest

from csvboard import config
from csvboard.charts import generate_charts
from csvboard.classifier import classify
from csvboard.insights import (
    build_insights_prompt,
    build_visualization_prompt,
    call_llm,
    fallback_insights,
    fallback_visualization,
    parse_insights,
    parse_visualization,
    request_insights,
    strip_code_fences,
    visualize,
)
from csvboard.parser import parse

INSIGHTS_JSON = {
    "keyInsights": ["Units and revenue move together"],
    "dataQuality": {"score": 88, "strengths": ["Complete"], "concerns": [], "recommendations": ["Add costs"]},
    "businessValue": "Sales planning",
    "actionableInsights": ["Stock up for the North"],
}


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def single_model(monkeypatch):
    monkeypatch.setattr(config, "FALLBACK_MODEL_1", "")
    monkeypatch.setattr(config, "FALLBACK_MODEL_2", "")


class TestStripCodeFences:
    """Tests for markdown fence removal."""

    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence_and_bare_text(self):
        assert strip_code_fences("```\n[1]\n```") == "[1]"
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParseInsights:
    """Tests for response validation."""

    def test_camel_case_payload(self):
        insights = parse_insights(INSIGHTS_JSON)

        assert insights.key_insights == ["Units and revenue move together"]
        assert insights.data_quality.score == 88
        assert insights.business_value == "Sales planning"

    def test_missing_fields_get_defaults(self):
        insights = parse_insights({"keyInsights": ["one"]})

        assert insights.data_quality.score == 80
        assert insights.actionable_insights == []

    def test_unusable_payloads(self):
        assert parse_insights(None) is None
        assert parse_insights({}) is None
        assert parse_insights({"keyInsights": "not a list"}) is None


class TestCallLlm:
    """Tests for call_llm() against a mocked transport."""

    @pytest.mark.asyncio
    async def test_no_keys(self):
        assert await call_llm([{"role": "user", "content": "hi"}], api_keys=[]) is None

    @pytest.mark.asyncio
    async def test_json_answer(self, single_model):
        seen = []

        def handler(request):
            seen.append(request)
            return completion("```json\n" + json.dumps(INSIGHTS_JSON) + "\n```")

        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a"],
            transport=httpx.MockTransport(handler),
        )

        assert result == INSIGHTS_JSON
        assert seen[0].url.path.endswith("/chat/completions")
        assert seen[0].headers["Authorization"] == "Bearer key-a"
        body = json.loads(seen[0].content)
        assert body["model"] == config.PRIMARY_MODEL
        assert body["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_text_answer(self, single_model):
        def handler(request):
            assert "response_format" not in json.loads(request.content)
            return completion("Plain answer")

        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            json_mode=False,
            api_keys=["key-a"],
            transport=httpx.MockTransport(handler),
        )

        assert result == {"text": "Plain answer"}

    @pytest.mark.asyncio
    async def test_rotates_key_on_rate_limit(self, single_model):
        used = []

        def handler(request):
            key = request.headers["Authorization"]
            used.append(key)
            if key == "Bearer key-a":
                return httpx.Response(429, text="Resource exhausted")
            return completion('{"ok": true}')

        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a", "key-b"],
            transport=httpx.MockTransport(handler),
        )

        assert result == {"ok": True}
        assert used == ["Bearer key-a", "Bearer key-b"]

    @pytest.mark.asyncio
    async def test_server_error_moves_to_next_model(self, monkeypatch):
        monkeypatch.setattr(config, "FALLBACK_MODEL_1", "backup-model")
        monkeypatch.setattr(config, "FALLBACK_MODEL_2", "")
        models = []

        def handler(request):
            model = json.loads(request.content)["model"]
            models.append(model)
            if model == "backup-model":
                return completion('{"ok": true}')
            return httpx.Response(500, text="boom")

        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a", "key-b"],
            transport=httpx.MockTransport(handler),
        )

        assert result == {"ok": True}
        assert models == [config.PRIMARY_MODEL, "backup-model"]

    @pytest.mark.asyncio
    async def test_all_failures_give_none(self, single_model):
        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a"],
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_invalid_json_gives_none(self, single_model):
        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a"],
            transport=httpx.MockTransport(lambda request: completion("not json at all")),
        )

        assert result is None

    @pytest.mark.asyncio
    async def test_connection_error_gives_none(self, single_model):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        result = await call_llm(
            [{"role": "user", "content": "hi"}],
            api_keys=["key-a"],
            transport=httpx.MockTransport(handler),
        )

        assert result is None


class TestPrompt:
    """Tests for the insight prompt."""

    def test_mentions_columns_and_counts(self, sales_csv):
        table = parse(sales_csv)
        profiles = classify(table)
        charts = generate_charts(table, profiles)
        prompt = build_insights_prompt("sales.csv", profiles, charts, sales_csv)

        assert "Dataset: sales.csv" in prompt
        assert f"Total Charts Generated: {len(charts)}" in prompt
        assert "- units: numerical type, 30 unique values, range: 1.00 to 30.00" in prompt
        assert "- Time Series Analysis: 3 charts" in prompt
        assert "region,units,revenue,rating,order_date" in prompt
        assert '"keyInsights"' in prompt


class TestRequestInsights:
    """Tests for the full round trip."""

    @pytest.mark.asyncio
    async def test_round_trip(self, sales_csv, monkeypatch, single_model):
        monkeypatch.setattr(config, "LLM_API_KEYS", ["key-a"])
        profiles = classify(parse(sales_csv))

        insights = await request_insights(
            "sales.csv",
            profiles,
            [],
            sales_csv,
            transport=httpx.MockTransport(lambda request: completion(json.dumps(INSIGHTS_JSON))),
        )

        assert insights.actionable_insights == ["Stock up for the North"]

    @pytest.mark.asyncio
    async def test_without_keys(self, sales_csv, no_llm):
        assert await request_insights("sales.csv", classify(parse(sales_csv)), [], sales_csv) is None


class TestFallbackInsights:
    """Tests for the deterministic narrative."""

    def test_counts(self, sales_csv):
        insights = fallback_insights(classify(parse(sales_csv)), 30, 12)

        assert insights.key_insights[0] == "Dataset contains 5 columns with 30 records"
        assert insights.key_insights[1].startswith("Generated 12 visualizations")
        assert insights.key_insights[2] == "Found 2 numerical and 2 categorical variables"
        assert insights.data_quality.score == 85
        assert insights.data_quality.concerns[0] == "Check for missing values"

    def test_null_columns_named(self):
        insights = fallback_insights(classify(parse("a,b\n1,\n2,x\n")), 2, 0)

        assert insights.data_quality.concerns[0] == "Missing values in 1 columns: b"

    def test_empty_profiles(self):
        insights = fallback_insights([], 0, 0)

        assert insights.key_insights[0] == "Dataset contains 0 columns with 0 records"


VISUALIZATION_JSON = {
    "chartType": "line",
    "data": [{"month": "Jan", "sales": 10}, {"month": "Feb", "sales": 14}],
    "config": {"title": "Sales by month", "xKey": "month", "yKey": "sales"},
    "insights": "Sales are rising",
}


class TestVisualization:
    """Tests for prompt-driven chart configurations."""

    def test_prompt(self):
        table = parse("month,sales\n" + "".join(f"m{i},{i}\n" for i in range(8)))
        prompt = build_visualization_prompt(table, "sales over time", "line")

        assert "CSV Headers: month, sales" in prompt
        assert "m4,4" in prompt
        assert "m5,5" not in prompt
        assert "User Request: sales over time" in prompt
        assert '"chartType": "line"' in prompt

    def test_parse_payload(self):
        visualization = parse_visualization(VISUALIZATION_JSON)

        assert visualization.chart_type == "line"
        assert visualization.config.x_key == "month"
        assert visualization.data[1] == {"month": "Feb", "sales": 14}

    def test_unusable_payloads(self):
        assert parse_visualization(None) is None
        assert parse_visualization({"data": "rows"}) is None

    def test_fallback_uses_first_two_columns(self):
        table = parse("item,qty,note\nbolt,4,x\n,2,y\nnut,abc,z\nwasher,0,w\n")
        visualization = fallback_visualization(table, "pie")

        assert visualization.chart_type == "pie"
        assert visualization.data == [
            {"name": "bolt", "value": 4.0},
            {"name": "Row 2", "value": 2.0},
            {"name": "nut", "value": 3.0},
            {"name": "washer", "value": 4.0},
        ]
        assert visualization.config.title == "Pie Chart from CSV Data"
        assert (visualization.config.x_key, visualization.config.y_key) == ("name", "value")
        assert visualization.insights.startswith("Showing 4 data points")

    def test_fallback_caps_rows(self):
        table = parse("k,v\n" + "".join(f"k{i},{i + 1}\n" for i in range(30)))

        assert len(fallback_visualization(table, "bar").data) == 20

    def test_fallback_single_column(self):
        visualization = fallback_visualization(parse("k\na\nb\n"), "bar")

        assert [point["value"] for point in visualization.data] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_service_answer_in_fences(self, single_model, monkeypatch):
        monkeypatch.setattr(config, "LLM_API_KEYS", ["key-a"])
        content = "```json\n" + json.dumps(VISUALIZATION_JSON) + "\n```"

        visualization = await visualize(
            "month,sales\nJan,10\nFeb,14\n",
            "sales trend",
            "line",
            transport=httpx.MockTransport(lambda request: completion(content)),
        )

        assert visualization.insights == "Sales are rising"
        assert visualization.to_dict()["config"] == {"title": "Sales by month", "xKey": "month", "yKey": "sales"}

    @pytest.mark.asyncio
    async def test_unparseable_answer_falls_back(self, single_model, monkeypatch):
        monkeypatch.setattr(config, "LLM_API_KEYS", ["key-a"])

        visualization = await visualize(
            "month,sales\nJan,10\nFeb,14\n",
            "sales trend",
            transport=httpx.MockTransport(lambda request: completion("Sure! Here is your chart.")),
        )

        assert visualization.chart_type == "bar"
        assert visualization.data == [{"name": "Jan", "value": 10.0}, {"name": "Feb", "value": 14.0}]

    @pytest.mark.asyncio
    async def test_without_keys(self, no_llm):
        visualization = await visualize("a,b\nx,1\n", "anything", "line")

        assert visualization.config.title == "Line Chart from CSV Data"
