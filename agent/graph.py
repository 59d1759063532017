# graph.py — LangGraph workflow definition
# Defines the analysis state machine, node edges, and error routing
"""
graph.py — LangGraph Workflow Definition

Wires the analysis nodes into a single graph with error routing.

Flow:
    START → build_prompt → call_model → parse_response → END
                 ↓              ↓              ↓
              [ERROR]   →   [ERROR]   →    [ERROR]   → handle_error → END

Any node that sets state["error"] routes to handle_error_node.

analyze() is the entry point used by the conversation manager: it runs
the graph for one query and either returns an AnalysisResult or raises
AnalysisError with a user-facing message.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal

from langgraph.graph import END, START, StateGraph

from agent.models import AnalysisResult, Dataset
from agent.nodes import (
    build_prompt_node,
    call_model_node,
    parse_response_node,
    handle_error_node,
)
from agent.state import AnalysisState, create_initial_state
from config.llm_config import get_llm
from config.settings import get_settings


logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Raised when an analysis run ends in the error node."""

    def __init__(self, message: str, error_type: str = "UNKNOWN"):
        super().__init__(message)
        self.error_type = error_type


# =============================================================================
# CONDITIONAL ROUTING
# =============================================================================

def route_after_node(state: AnalysisState) -> Literal["continue", "error"]:
    """
    Conditional router: check if error occurred, route accordingly.

    Returns:
        "error" if state has error, "continue" otherwise
    """
    if state.get("error"):
        return "error"
    return "continue"


# =============================================================================
# GRAPH BUILDER
# =============================================================================

def build_analysis_graph() -> StateGraph:
    """
    Build the LangGraph workflow for one analysis call.

    Returns:
        Uncompiled StateGraph
    """
    workflow = StateGraph(AnalysisState)

    workflow.add_node("build_prompt", build_prompt_node)
    workflow.add_node("call_model", call_model_node)
    workflow.add_node("parse_response", parse_response_node)
    workflow.add_node("handle_error", handle_error_node)

    workflow.add_edge(START, "build_prompt")

    workflow.add_conditional_edges(
        "build_prompt",
        route_after_node,
        {
            "continue": "call_model",
            "error": "handle_error",
        },
    )

    workflow.add_conditional_edges(
        "call_model",
        route_after_node,
        {
            "continue": "parse_response",
            "error": "handle_error",
        },
    )

    workflow.add_conditional_edges(
        "parse_response",
        route_after_node,
        {
            "continue": END,
            "error": "handle_error",
        },
    )

    workflow.add_edge("handle_error", END)

    return workflow


_compiled_graph = None


def get_compiled_graph():
    """
    Get or create the compiled graph singleton.

    Returns:
        Compiled graph ready for .invoke() / .ainvoke()
    """
    global _compiled_graph
    if _compiled_graph is None:
        _compiled_graph = build_analysis_graph().compile()
    return _compiled_graph


# =============================================================================
# GRAPH EXECUTION
# =============================================================================

def _prepare_state(
    query: str,
    dataset: Dataset | None,
    history: list[dict] | None,
    llm: Any,
    progress_callback: Callable[[dict], None] | None,
) -> AnalysisState:
    settings = get_settings()
    if llm is None:
        llm = get_llm(provider=settings.llm_provider, model=settings.llm_model)
    return create_initial_state(
        query=query,
        dataset=dataset,
        history=history,
        llm=llm,
        sample_rows=settings.prompt_sample_rows,
        progress_callback=progress_callback,
    )


def _unwrap(final_state: dict) -> AnalysisResult:
    if final_state.get("error") or final_state.get("result") is None:
        raise AnalysisError(
            final_state.get("error") or "Analysis produced no result.",
            final_state.get("error_type") or "UNKNOWN",
        )
    return final_state["result"]


def run_analysis(
    query: str,
    dataset: Dataset | None,
    history: list[dict] | None = None,
    llm: Any = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> AnalysisResult:
    """
    Run the analysis workflow synchronously.

    Args:
        query: User question
        dataset: Dataset to analyze
        history: Prior exchanges as {role, content}, oldest first
        llm: Chat client; resolved with get_llm() when omitted
        progress_callback: Optional callback for progress updates

    Returns:
        Validated AnalysisResult

    Raises:
        AnalysisError: With a user-facing message on any failure
    """
    initial_state = _prepare_state(query, dataset, history, llm, progress_callback)
    final_state = get_compiled_graph().invoke(initial_state)
    return _unwrap(final_state)


async def analyze(
    query: str,
    dataset: Dataset | None,
    history: list[dict] | None = None,
    llm: Any = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> AnalysisResult:
    """
    Async form of run_analysis(); the conversation manager awaits this.

    Example:
        result = await analyze("Top regions by revenue?", dataset, history)
        print(result.summary)
    """
    initial_state = _prepare_state(query, dataset, history, llm, progress_callback)
    final_state = await get_compiled_graph().ainvoke(initial_state)
    return _unwrap(final_state)
