"""
Tests for agent.graph, agent.nodes and agent.prompts
"""

from __future__ import annotations

import json

import pytest

from agent import graph as graph_module
from agent.graph import AnalysisError, analyze, build_analysis_graph, run_analysis
from agent.models import Dataset
from agent.nodes import extract_json_object, handle_error_node, parse_analysis_result
from agent.prompts import RESPONSE_SCHEMA, build_messages, build_system_prompt
from config.llm_config import LLMResponseError


# ── Helpers ─────────────────────────────────────────────────────────────

DATASET = Dataset(
    id="ds",
    name="sales.csv",
    columns=("region", "revenue"),
    data=tuple({"region": r, "revenue": v} for r, v in [("North", 120), ("South", 80), ("East", 45.5)]),
)

REPLY = {
    "summary": "North leads revenue.",
    "insight": "North brings in 120, ahead of South at 80.",
    "chartType": "bar",
    "chartData": [{"name": "North", "value": 120}, {"name": "South", "value": 80}],
    "xAxisLabel": "Region",
    "yAxisLabel": "Revenue",
    "suggestion": "How does East compare month over month?",
}


class FakeLLM:
    """Stands in for a provider client; replays a fixed reply."""

    provider = "fake"
    model = "fake-1"

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = json.dumps(REPLY) if reply is None else reply
        self.error = error
        self.calls: list[dict] = []

    def chat(self, messages, system_prompt=None, response_schema=None, temperature=None):
        self.calls.append({
            "messages": messages,
            "system_prompt": system_prompt,
            "response_schema": response_schema,
        })
        if self.error is not None:
            raise self.error
        return self.reply


# ── run_analysis / analyze ──────────────────────────────────────────────


class TestRunAnalysis:
    def test_success(self):
        llm = FakeLLM()
        result = run_analysis("Which region leads?", DATASET, llm=llm)

        assert result.summary == REPLY["summary"]
        assert result.chart_type == "bar"
        assert result.x_axis_label == "Region"
        assert llm.calls[0]["response_schema"] is RESPONSE_SCHEMA

    def test_prompt_and_messages(self):
        llm = FakeLLM()
        history = [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ]
        run_analysis("Which region leads?", DATASET, history=history, llm=llm)

        call = llm.calls[0]
        assert "sales.csv" in call["system_prompt"]
        assert "Total Records: 3" in call["system_prompt"]
        assert "revenue (number)" in call["system_prompt"]
        assert call["messages"] == history + [{"role": "user", "content": "Which region leads?"}]

    def test_progress_callback(self):
        events = []
        run_analysis("Which region leads?", DATASET, llm=FakeLLM(), progress_callback=events.append)
        nodes = [e["node"] for e in events]
        assert nodes[0] == "build_prompt"
        assert "call_model" in nodes
        assert events[-1]["status"] == "complete"

    def test_llm_error_message_propagates(self):
        llm = FakeLLM(error=LLMResponseError("Groq API error (429): rate limited"))
        with pytest.raises(AnalysisError) as excinfo:
            run_analysis("Which region leads?", DATASET, llm=llm)
        assert str(excinfo.value) == "Groq API error (429): rate limited"
        assert excinfo.value.error_type == "LLM_FAILED"

    def test_empty_reply(self):
        with pytest.raises(AnalysisError, match="Empty AI response."):
            run_analysis("Which region leads?", DATASET, llm=FakeLLM(reply="   "))

    def test_unknown_chart_type_rejected(self):
        reply = json.dumps({**REPLY, "chartType": "histogram"})
        with pytest.raises(AnalysisError) as excinfo:
            run_analysis("Which region leads?", DATASET, llm=FakeLLM(reply=reply))
        assert excinfo.value.error_type == "RESPONSE_INVALID"

    def test_not_json(self):
        with pytest.raises(AnalysisError) as excinfo:
            run_analysis("Which region leads?", DATASET, llm=FakeLLM(reply="I cannot help."))
        assert excinfo.value.error_type == "RESPONSE_INVALID"

    def test_missing_dataset(self):
        with pytest.raises(AnalysisError, match="No dataset loaded."):
            run_analysis("Which region leads?", None, llm=FakeLLM())

    def test_blank_query(self):
        with pytest.raises(AnalysisError) as excinfo:
            run_analysis("  ", DATASET, llm=FakeLLM())
        assert excinfo.value.error_type == "QUERY_EMPTY"

    def test_no_llm_configured(self, monkeypatch):
        monkeypatch.setattr(graph_module, "get_llm", lambda **kwargs: None)
        with pytest.raises(AnalysisError) as excinfo:
            run_analysis("Which region leads?", DATASET)
        assert excinfo.value.error_type == "LLM_UNAVAILABLE"


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_fenced_json_accepted(self):
        reply = "```json\n" + json.dumps(REPLY) + "\n```"
        result = await analyze("Which region leads?", DATASET, [], llm=FakeLLM(reply=reply))
        assert result.suggestion == REPLY["suggestion"]
        assert [p.name for p in result.plot_points] == ["North", "South"]

    @pytest.mark.asyncio
    async def test_resolves_llm_when_omitted(self, monkeypatch):
        llm = FakeLLM()
        monkeypatch.setattr(graph_module, "get_llm", lambda **kwargs: llm)
        result = await analyze("Which region leads?", DATASET, [])
        assert result.summary == REPLY["summary"]
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_no_llm_raises(self, monkeypatch):
        monkeypatch.setattr(graph_module, "get_llm", lambda **kwargs: None)
        with pytest.raises(AnalysisError):
            await analyze("Which region leads?", DATASET, [])


# ── Graph structure ─────────────────────────────────────────────────────


class TestGraphStructure:
    def test_nodes(self):
        nodes = set(build_analysis_graph().nodes)
        assert nodes == {"build_prompt", "call_model", "parse_response", "handle_error"}


# ── Parsing helpers ─────────────────────────────────────────────────────


class TestExtractJsonObject:
    def test_bare(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_without_language(self):
        assert extract_json_object('```\n{"a": 1}\n```') == {"a": 1}

    def test_surrounded_by_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} Thanks!') == {"a": {"b": 2}}

    def test_array_rejected(self):
        with pytest.raises(ValueError):
            extract_json_object("[1, 2]")

    def test_no_object(self):
        with pytest.raises(ValueError):
            extract_json_object("no json here")


class TestParseAnalysisResult:
    def test_missing_fields_named(self):
        with pytest.raises(ValueError, match="summary"):
            parse_analysis_result(json.dumps({"insight": "x", "chartType": "none", "chartData": []}))


class TestHandleErrorNode:
    def test_fills_generic_message(self):
        update = handle_error_node({"error": None, "error_type": "UNKNOWN"})
        assert update["error"]
        assert update["result"] is None


# ── Prompts ─────────────────────────────────────────────────────────────


class TestPrompts:
    def test_schema_required_fields(self):
        assert RESPONSE_SCHEMA["required"] == ["summary", "insight", "chartType", "chartData"]
        assert RESPONSE_SCHEMA["properties"]["chartType"]["enum"] == ["bar", "line", "pie", "scatter", "none"]

    def test_system_prompt_sample_limit(self):
        rows = tuple({"n": i} for i in range(30))
        ds = Dataset(id="d", name="n.csv", columns=("n",), data=rows)
        prompt = build_system_prompt(ds, sample_rows=15)
        assert '{"n": 14}' in prompt
        assert '{"n": 15}' not in prompt

    def test_messages_map_roles(self):
        messages = build_messages("q", [{"role": "model", "content": "a"}])
        assert messages == [
            {"role": "assistant", "content": "a"},
            {"role": "user", "content": "q"},
        ]
