# state.py — Shared AnalysisState schema
# TypedDict definition for state passed between graph nodes
"""
state.py — Analysis State Schema

Defines the TypedDict structure for state passed between LangGraph nodes
during one analysis call (one user query).
"""

from __future__ import annotations

from typing import Any, Callable, TypedDict

from agent.models import AnalysisResult, Dataset


class AnalysisState(TypedDict, total=False):
    """
    State for a single analysis run.

    All fields are optional (total=False) to support partial updates.
    """

    # =========================================================================
    # INPUT LAYER
    # =========================================================================
    query: str  # The user's question
    dataset: Dataset | None  # Dataset under analysis
    history: list[dict]  # Prior exchanges as {role, content}
    llm: Any  # Chat client from config.llm_config (or a test double)
    sample_rows: int  # Rows included in the prompt

    # =========================================================================
    # PROMPT LAYER
    # =========================================================================
    system_prompt: str | None
    messages: list[dict] | None

    # =========================================================================
    # MODEL LAYER
    # =========================================================================
    raw_response: str | None  # Text returned by the model
    result: AnalysisResult | None  # Validated structured answer

    # =========================================================================
    # CONTROL LAYER
    # =========================================================================
    current_node: str | None
    progress: float  # 0.0 - 1.0
    progress_message: str | None

    # =========================================================================
    # ERROR LAYER
    # =========================================================================
    error: str | None  # User-facing error message
    error_type: str | None  # Error classification
    failed_node: str | None
    recovery_hint: str | None

    # =========================================================================
    # CALLBACKS (not persisted)
    # =========================================================================
    progress_callback: Callable[[dict], None] | None


def create_initial_state(
    query: str,
    dataset: Dataset | None,
    history: list[dict] | None = None,
    llm: Any = None,
    sample_rows: int = 15,
    progress_callback: Callable[[dict], None] | None = None,
) -> AnalysisState:
    """
    Create a fresh AnalysisState with default values.

    Args:
        query: User question
        dataset: Dataset to analyze
        history: Prior exchanges projected to {role, content}
        llm: Chat client, or None when no provider is configured
        sample_rows: Rows included in the prompt
        progress_callback: Optional callback for progress updates

    Returns:
        Initialized AnalysisState dict
    """
    return AnalysisState(
        # Input
        query=query,
        dataset=dataset,
        history=list(history or []),
        llm=llm,
        sample_rows=sample_rows,

        # Prompt
        system_prompt=None,
        messages=None,

        # Model
        raw_response=None,
        result=None,

        # Control
        current_node=None,
        progress=0.0,
        progress_message=None,

        # Error
        error=None,
        error_type=None,
        failed_node=None,
        recovery_hint=None,

        # Callbacks
        progress_callback=progress_callback,
    )
