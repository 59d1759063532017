# nodes.py — Analysis graph node functions
# Steps: build prompt → call model → parse response (→ handle error)
"""
nodes.py — LangGraph Analysis Nodes

Each node is a function that takes AnalysisState and returns state
updates.

Node Responsibilities:
- build_prompt_node: Describe the dataset and assemble the conversation
- call_model_node: Send the conversation to the configured LLM
- parse_response_node: Validate the JSON reply into an AnalysisResult
- handle_error_node: Turn any failure into a user-facing message

Nodes never raise; failures are reported through the error fields and
routed to handle_error by the graph.
"""

from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from agent.models import AnalysisResult
from agent.prompts import RESPONSE_SCHEMA, build_messages, build_system_prompt
from config.llm_config import LLMError


logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = (
    "The assistant is having trouble processing this request. "
    "Please try a different question."
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# =============================================================================
# PROGRESS HELPERS
# =============================================================================

def _emit_progress(
    state: dict,
    node: str,
    progress: float,
    message: str,
    status: str = "running",
) -> None:
    """
    Emit a progress update via the callback if available.

    Args:
        state: Current analysis state
        node: Current node name
        progress: Progress value (0.0 - 1.0)
        message: Human-readable progress message
        status: "running" | "complete" | "failed"
    """
    callback = state.get("progress_callback")
    if callback and callable(callback):
        try:
            callback({
                "node": node,
                "status": status,
                "progress": progress,
                "message": message,
            })
        except Exception:
            logger.debug("Progress callback failed", exc_info=True)


def _create_error_state(
    node: str,
    error_msg: str,
    error_type: str,
    recovery_hint: str,
) -> dict:
    """
    Create state update for error routing.
    """
    return {
        "error": error_msg,
        "error_type": error_type,
        "failed_node": node,
        "recovery_hint": recovery_hint,
        "current_node": node,
    }


# =============================================================================
# NODE: BUILD PROMPT
# =============================================================================

def build_prompt_node(state: dict) -> dict:
    """
    Assemble the system instruction and message list.

    Input state:
        - query: str (required)
        - dataset: Dataset (required)
        - history: list[{role, content}]

    Output state updates:
        - system_prompt, messages, current_node, progress
    """
    node_name = "build_prompt"
    _emit_progress(state, node_name, 0.1, "Reading your dataset...")

    dataset = state.get("dataset")
    query = (state.get("query") or "").strip()

    if dataset is None:
        return _create_error_state(
            node_name,
            "No dataset loaded.",
            "DATA_MISSING",
            "Upload a CSV file before asking questions.",
        )
    if not query:
        return _create_error_state(
            node_name,
            "Please enter a question.",
            "QUERY_EMPTY",
            "Type a question about your data.",
        )

    system_prompt = build_system_prompt(dataset, state.get("sample_rows", 15))
    messages = build_messages(state.get("query", ""), state.get("history") or [])

    return {
        "system_prompt": system_prompt,
        "messages": messages,
        "current_node": node_name,
        "progress": 0.2,
        "progress_message": f"Prepared context for {dataset.name}",
    }


# =============================================================================
# NODE: CALL MODEL
# =============================================================================

def call_model_node(state: dict) -> dict:
    """
    Send the conversation to the LLM.

    Input state:
        - llm: chat client (required)
        - system_prompt, messages

    Output state updates:
        - raw_response, current_node, progress
    """
    node_name = "call_model"
    _emit_progress(state, node_name, 0.3, "Asking the model...")

    llm = state.get("llm")
    if llm is None:
        return _create_error_state(
            node_name,
            "No language model is configured. Set GEMINI_API_KEY or GROQ_API_KEY, or start Ollama.",
            "LLM_UNAVAILABLE",
            "Configure an LLM provider and try again.",
        )

    try:
        text = llm.chat(
            state.get("messages") or [],
            system_prompt=state.get("system_prompt"),
            response_schema=RESPONSE_SCHEMA,
        )
    except LLMError as e:
        logger.warning("LLM call failed (%s): %s", getattr(llm, "provider", "?"), e)
        return _create_error_state(
            node_name,
            str(e) or GENERIC_FAILURE_MESSAGE,
            "LLM_FAILED",
            "Check your connection or API key, then resubmit.",
        )
    except Exception as e:
        logger.exception("Unexpected error from LLM client")
        return _create_error_state(
            node_name,
            str(e) or GENERIC_FAILURE_MESSAGE,
            "LLM_FAILED",
            "Please resubmit your question.",
        )

    if not text or not text.strip():
        return _create_error_state(
            node_name,
            "Empty AI response.",
            "RESPONSE_EMPTY",
            "Please rephrase your question.",
        )

    return {
        "raw_response": text,
        "current_node": node_name,
        "progress": 0.8,
        "progress_message": "Model replied",
    }


# =============================================================================
# NODE: PARSE RESPONSE
# =============================================================================

def extract_json_object(text: str) -> dict:
    """
    Pull the JSON object out of a model reply.

    Accepts bare JSON, JSON wrapped in a ``` fence, or JSON surrounded by
    prose (first ``{`` to last ``}``).

    Raises:
        ValueError: If no JSON object can be decoded
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("Response did not contain a JSON object")
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise ValueError(f"Response JSON is malformed: {e}") from e

    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


def parse_analysis_result(text: str) -> AnalysisResult:
    """
    Validate a model reply into an AnalysisResult.

    Raises:
        ValueError: If the reply is not JSON or does not match the schema
    """
    payload = extract_json_object(text)
    try:
        return AnalysisResult.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValueError(f"Response does not match the expected format ({fields})") from e


def parse_response_node(state: dict) -> dict:
    """
    Validate the raw model text.

    Input state:
        - raw_response: str (required)

    Output state updates:
        - result: AnalysisResult, current_node, progress
    """
    node_name = "parse_response"
    _emit_progress(state, node_name, 0.9, "Reading the answer...")

    try:
        result = parse_analysis_result(state.get("raw_response") or "")
    except ValueError as e:
        logger.warning("Unusable model response: %s", e)
        return _create_error_state(
            node_name,
            str(e),
            "RESPONSE_INVALID",
            "Please try a different question.",
        )

    _emit_progress(state, node_name, 1.0, "Analysis complete", "complete")
    return {
        "result": result,
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": result.summary,
    }


# =============================================================================
# NODE: HANDLE ERROR
# =============================================================================

def handle_error_node(state: dict) -> dict:
    """
    Finalize a failed run.

    Input state:
        - error, error_type, failed_node

    Output state updates:
        - error (never empty), result (cleared), current_node, progress
    """
    node_name = "handle_error"
    _emit_progress(state, node_name, 1.0, "Analysis failed", "failed")

    error = state.get("error") or GENERIC_FAILURE_MESSAGE
    error_type = state.get("error_type", "UNKNOWN")
    failed_node = state.get("failed_node", "unknown")

    logger.info("Analysis failed at %s [%s]: %s", failed_node, error_type, error)

    return {
        "error": error,
        "result": None,
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": f"Error: {error_type}",
    }
