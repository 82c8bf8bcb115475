"""Tests for the data assistant."""

from unittest.mock import AsyncMock, patch

import pytest

from csvboard.assistant import (
    answer_query,
    asks_for_columns,
    csv_context,
    header_columns,
    summarize_dataset,
)


class TestHeaderColumns:
    """Tests for header detection."""

    def test_skips_comments(self):
        text = "// exported\n# note\n\n\"id\", name ,,score\n1,a,,3\n"

        assert header_columns(text) == ["id", "name", "score"]

    def test_no_header(self):
        assert header_columns("# only comments\n") == []


class TestAsksForColumns:
    """Tests for column question detection."""

    def test_matches(self):
        assert asks_for_columns("What columns are there?")
        assert asks_for_columns("list the HEADERS")
        assert asks_for_columns("which column has prices")

    def test_word_boundaries(self):
        assert not asks_for_columns("Summarize the columnist data")
        assert not asks_for_columns("What is the average revenue?")


class TestContext:
    """Tests for context and summary text."""

    def test_context_lists_columns_and_preview(self):
        text = "a,b\n" + "".join(f"{i},{i}\n" for i in range(20))
        context = csv_context(text, "nums.csv")

        assert "- File: nums.csv" in context
        assert "- Columns (2): a, b" in context
        assert "8,8" in context
        assert "9,9" not in context

    def test_context_truncated(self):
        text = "a\n" + ("x" * 5000 + "\n") * 3

        assert len(csv_context(text, "big.csv")) == 8000

    def test_summary(self):
        summary = summarize_dataset("# note\na,b\n1,2\n3,4\n", "trend?")

        assert summary.startswith("I can analyze your dataset with 2 rows and 2 columns.")
        assert '"trend?"' in summary


class TestAnswerQuery:
    """Tests for answer_query()."""

    @pytest.mark.asyncio
    async def test_column_fast_path_skips_llm(self):
        llm = AsyncMock()
        with patch("csvboard.assistant.call_llm", new=llm):
            reply = await answer_query("what columns do we have?", "id,name\n1,a\n", "people.csv")

        llm.assert_not_called()
        assert reply.content == "Here are the columns detected from people.csv:\n- id\n- name"
        assert reply.request_type == "data_analysis"

    @pytest.mark.asyncio
    async def test_column_fast_path_without_header(self):
        reply = await answer_query("columns?", "# nothing here\n")

        assert reply.content.endswith("- (No header row detected)")
        assert "the uploaded CSV" in reply.content

    @pytest.mark.asyncio
    async def test_llm_answer_with_context(self):
        llm = AsyncMock(return_value={"text": "Revenue grows steadily."})
        with patch("csvboard.assistant.call_llm", new=llm):
            reply = await answer_query("Is revenue growing?", "month,revenue\n1,10\n2,20\n", "rev.csv")

        assert reply.content == "Revenue grows steadily."
        messages = llm.call_args.args[0]
        assert [m["role"] for m in messages] == ["system", "system", "user"]
        assert "- File: rev.csv" in messages[1]["content"]
        assert messages[2]["content"] == "Is revenue growing?"
        assert llm.call_args.kwargs["json_mode"] is False

    @pytest.mark.asyncio
    async def test_fallback_summary(self):
        with patch("csvboard.assistant.call_llm", new=AsyncMock(return_value=None)):
            reply = await answer_query("Is revenue growing?", "month,revenue\n1,10\n2,20\n")

        assert reply.content.startswith("I can analyze your dataset with 2 rows and 2 columns.")

    @pytest.mark.asyncio
    async def test_no_csv_and_no_llm(self, no_llm):
        reply = await answer_query("hello")

        assert "unavailable" in reply.content

    @pytest.mark.asyncio
    async def test_serialized(self, no_llm):
        reply = await answer_query("columns", "a,b\n")

        assert reply.to_dict() == {"content": "Here are the columns detected from the uploaded CSV:\n- a\n- b", "requestType": "data_analysis"}
