"""
Tests for agent.conversation
"""

from __future__ import annotations

import asyncio
import itertools
import re
from datetime import datetime

import pytest

from agent.conversation import FALLBACK_ERROR_MESSAGE, ConversationManager, default_id_factory
from agent.graph import AnalysisError
from agent.models import AnalysisResult, Dataset


# ── Helpers ─────────────────────────────────────────────────────────────

FIXED_TIME = datetime(2024, 5, 1, 12, 0, 0)

DATASET = Dataset(
    id="ds",
    name="scores.csv",
    columns=("name", "score"),
    data=({"name": "Alice", "score": 10}, {"name": "Bob", "score": 20}),
)


def _make_result(chart_type: str = "bar") -> AnalysisResult:
    return AnalysisResult.model_validate({
        "summary": "Bob leads.",
        "insight": "Bob scored twice as much as Alice.",
        "chartType": chart_type,
        "chartData": [{"name": "Alice", "value": 10}, {"name": "Bob", "value": 20}],
    })


class StubAnalyzer:
    """Records calls; returns ``result`` or raises ``error``."""

    def __init__(self, result: AnalysisResult | None = None, error: Exception | None = None):
        self.result = result or _make_result()
        self.error = error
        self.calls: list[tuple] = []

    async def __call__(self, query, dataset, history):
        self.calls.append((query, dataset, history))
        if self.error is not None:
            raise self.error
        return self.result


class GatedAnalyzer:
    """Blocks until ``gate`` is set."""

    def __init__(self, result: AnalysisResult | None = None):
        self.gate = asyncio.Event()
        self.result = result or _make_result()

    async def __call__(self, query, dataset, history):
        await self.gate.wait()
        return self.result


def _manager(analyzer) -> ConversationManager:
    counter = itertools.count(1)
    return ConversationManager(
        analyzer,
        clock=lambda: FIXED_TIME,
        id_factory=lambda: f"ex-{next(counter)}",
    )


# ── submit_query ────────────────────────────────────────────────────────


class TestSubmitQuery:
    @pytest.mark.asyncio
    async def test_success_appends_user_then_assistant(self):
        analyzer = StubAnalyzer()
        manager = _manager(analyzer)

        assert await manager.submit_query("Who leads?", DATASET) is True

        user, assistant = manager.exchanges
        assert (user.id, user.role, user.content, user.response) == ("ex-1", "user", "Who leads?", None)
        assert assistant.id == "ex-2"
        assert assistant.role == "assistant"
        assert assistant.content == analyzer.result.insight
        assert assistant.response is analyzer.result
        assert assistant.timestamp == FIXED_TIME
        assert not manager.in_flight

    @pytest.mark.asyncio
    async def test_failure_appends_error_message(self):
        manager = _manager(StubAnalyzer(error=AnalysisError("Empty AI response.")))

        assert await manager.submit_query("Who leads?", DATASET) is True

        user, assistant = manager.exchanges
        assert user.role == "user"
        assert assistant.role == "assistant"
        assert assistant.content == "Empty AI response."
        assert assistant.response is None
        assert not manager.in_flight

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_fallback(self):
        manager = _manager(StubAnalyzer(error=RuntimeError()))
        await manager.submit_query("Who leads?", DATASET)
        assert manager.exchanges[-1].content == FALLBACK_ERROR_MESSAGE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    async def test_blank_text_ignored(self, text):
        analyzer = StubAnalyzer()
        manager = _manager(analyzer)
        assert await manager.submit_query(text, DATASET) is False
        assert len(manager) == 0
        assert analyzer.calls == []

    @pytest.mark.asyncio
    async def test_missing_dataset_ignored(self):
        analyzer = StubAnalyzer()
        manager = _manager(analyzer)
        assert await manager.submit_query("Who leads?", None) is False
        assert len(manager) == 0
        assert analyzer.calls == []

    @pytest.mark.asyncio
    async def test_second_submission_while_pending_is_noop(self):
        analyzer = GatedAnalyzer()
        manager = _manager(analyzer)

        first = asyncio.create_task(manager.submit_query("first", DATASET))
        await asyncio.sleep(0)
        assert manager.in_flight
        before = manager.exchanges
        assert [e.content for e in before] == ["first"]

        assert await manager.submit_query("second", DATASET) is False
        assert manager.exchanges == before

        analyzer.gate.set()
        assert await first is True
        assert [e.role for e in manager.exchanges] == ["user", "assistant"]
        assert not manager.in_flight

    @pytest.mark.asyncio
    async def test_history_excludes_new_query(self):
        analyzer = StubAnalyzer()
        manager = _manager(analyzer)

        await manager.submit_query("q1", DATASET)
        await manager.submit_query("q2", DATASET)

        assert analyzer.calls[0][2] == []
        assert analyzer.calls[1][0] == "q2"
        assert analyzer.calls[1][1] is DATASET
        assert analyzer.calls[1][2] == [
            {"role": "user", "content": "q1"},
            {"role": "assistant", "content": analyzer.result.insight},
        ]

    @pytest.mark.asyncio
    async def test_reset_while_pending_discards_reply(self):
        analyzer = GatedAnalyzer()
        manager = _manager(analyzer)

        task = asyncio.create_task(manager.submit_query("first", DATASET))
        await asyncio.sleep(0)
        manager.reset()
        analyzer.gate.set()

        assert await task is True
        assert len(manager) == 0
        assert not manager.in_flight


# ── Lookups ─────────────────────────────────────────────────────────────


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_and_query_for(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("Who leads?", DATASET)

        assert manager.get("ex-2").role == "assistant"
        assert manager.get("missing") is None
        assert manager.query_for("ex-2") == "Who leads?"
        assert manager.query_for("ex-1") is None
        assert manager.query_for("missing") is None

    @pytest.mark.asyncio
    async def test_history_projection(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("Who leads?", DATASET)
        assert [h["role"] for h in manager.history()] == ["user", "assistant"]

    def test_default_id_format(self):
        assert re.fullmatch(r"\d+-[a-z0-9]{4}", default_id_factory())


# ── Chart handles & reset ───────────────────────────────────────────────


class TestChartHandles:
    @pytest.mark.asyncio
    async def test_register_and_lookup(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("Who leads?", DATASET)

        handle = object()
        manager.register_chart("ex-2", handle)
        assert manager.chart_for("ex-2") is handle
        assert manager.chart_for("ex-1") is None

    @pytest.mark.asyncio
    async def test_register_rejects_user_and_unknown(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("Who leads?", DATASET)

        with pytest.raises(KeyError):
            manager.register_chart("ex-1", object())
        with pytest.raises(KeyError):
            manager.register_chart("missing", object())

    @pytest.mark.asyncio
    async def test_register_rejects_result_without_chart(self):
        manager = _manager(StubAnalyzer(result=_make_result("none")))
        await manager.submit_query("Who leads?", DATASET)

        with pytest.raises(KeyError):
            manager.register_chart("ex-2", object())

    @pytest.mark.asyncio
    async def test_reset_drops_everything(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("Who leads?", DATASET)
        manager.register_chart("ex-2", object())

        manager.reset()

        assert manager.exchanges == ()
        assert manager.chart_for("ex-2") is None
        assert manager.get("ex-2") is None
        assert manager.query_for("ex-2") is None

    def test_reset_is_idempotent(self):
        manager = _manager(StubAnalyzer())
        manager.reset()
        manager.reset()
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_usable_after_reset(self):
        manager = _manager(StubAnalyzer())
        await manager.submit_query("q1", DATASET)
        manager.reset()
        assert await manager.submit_query("q2", DATASET) is True
        assert [e.content for e in manager.exchanges][0] == "q2"
