# logging_config.py — Process logging setup
"""
logging_config.py — Logging Setup

Modules log through ``logging.getLogger(__name__)``. The Streamlit entry
point calls configure_logging() once; Streamlit re-runs the script on
every interaction, so repeated calls are no-ops.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | int = "INFO") -> None:
    """
    Configure root logging for the app.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level
    """
    global _configured
    if _configured:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Streamlit's file watcher is noisy below WARNING
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    _configured = True
