# validators.py — Input sanitization & validation
# File type checks, upload guards, chat query sanitization
"""
validators.py — Input Sanitization & Validation

- File type validation
- Parsed-header validation
- Chat query sanitization
- HTML escaping for text shown in raw HTML blocks
- JSON-safe conversion of values headed for the model prompt
"""

from __future__ import annotations

import html
import math
from typing import Any

from config.settings import get_settings


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_QUERY_LENGTH = 2000


# =============================================================================
# FILE VALIDATION
# =============================================================================

def validate_file_extension(filename: str) -> tuple[bool, str | None]:
    """
    Validate that file has an allowed extension.

    Returns:
        (is_valid, error_message)
    """
    if not filename:
        return False, "No filename provided"

    allowed = get_settings().allowed_extensions
    ext = "." + filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    if ext not in allowed:
        return False, f"Invalid file type: {ext or '(none)'}. Allowed: {', '.join(allowed)}"

    return True, None


def validate_headers(headers: list[str] | tuple[str, ...]) -> tuple[bool, str | None]:
    """
    A parsed file must yield at least one header.

    Returns:
        (is_valid, error_message)
    """
    if not headers:
        return False, "Could not detect columns."
    return True, None


# =============================================================================
# QUERY VALIDATION
# =============================================================================

def sanitize_query(query: str | None) -> str | None:
    """
    Clean a chat query before submission.

    Returns:
        The stripped query (truncated to MAX_QUERY_LENGTH), or None if
        it is missing or blank
    """
    if query is None or not isinstance(query, str):
        return None

    query = query.strip()
    if not query:
        return None

    if len(query) > MAX_QUERY_LENGTH:
        query = query[:MAX_QUERY_LENGTH]

    return query


# =============================================================================
# HTML SANITIZATION
# =============================================================================

def sanitize_html_text(text: Any) -> str:
    """
    Escape model output or file names before they go into an HTML block
    rendered with ``unsafe_allow_html=True``.
    """
    if text is None:
        return ""
    return html.escape(str(text))


# =============================================================================
# JSON SANITIZATION
# =============================================================================

def sanitize_dict_for_json(obj: Any) -> Any:
    """
    Recursively sanitize a dict/list for JSON serialization.
    Handles numpy scalars, NaN and Inf.
    """
    if obj is None:
        return None

    if isinstance(obj, dict):
        return {str(k): sanitize_dict_for_json(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple)):
        return [sanitize_dict_for_json(v) for v in obj]

    # numpy scalars (pandas aggregates) expose .item()
    if hasattr(obj, "item") and not isinstance(obj, (str, bytes)):
        try:
            obj = obj.item()
        except (TypeError, ValueError):
            return str(obj)

    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj

    return obj
