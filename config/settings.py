# settings.py — Application settings
# Display defaults, upload limits, prompt sizing, starter questions
"""
settings.py — Application Settings

Central place for the knobs the UI, the ingestor and the analysis graph
share. Values are plain defaults; only LLM credentials come from the
environment (see llm_config.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field


# =============================================================================
# CONSTANTS
# =============================================================================

APP_NAME = "INSIGHT DESK"
APP_TAGLINE = "Upload a CSV → ask questions → get charts and reports"
MAX_FILE_SIZE_MB = 100
PREVIEW_ROWS = 200  # Rows rendered in the Data Table view
PROMPT_SAMPLE_ROWS = 15  # Rows sent to the model as sample context
DEFAULT_LOG_LEVEL = "INFO"

STARTER_QUESTIONS = (
    "What are the main trends in this data?",
    "Summarize categorical columns",
    "Visualize top 10 records by value",
    "Is there any correlation between columns?",
)


# =============================================================================
# SETTINGS
# =============================================================================

@dataclass
class AppSettings:
    """Settings shared by the UI and the analysis pipeline."""
    app_name: str = APP_NAME
    tagline: str = APP_TAGLINE
    max_file_size_mb: int = MAX_FILE_SIZE_MB
    allowed_extensions: tuple[str, ...] = (".csv",)
    preview_rows: int = PREVIEW_ROWS
    prompt_sample_rows: int = PROMPT_SAMPLE_ROWS
    starter_questions: tuple[str, ...] = STARTER_QUESTIONS
    log_level: str = DEFAULT_LOG_LEVEL
    llm_provider: str = "auto"  # "auto" | "gemini" | "groq" | "ollama"
    llm_model: str | None = None
    chart_colors: list[str] = field(default_factory=lambda: [
        "#3b82f6",
        "#10b981",
        "#f59e0b",
        "#ef4444",
        "#8b5cf6",
        "#ec4899",
        "#06b6d4",
    ])

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Return the process-wide settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
