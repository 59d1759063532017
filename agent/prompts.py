# prompts.py — System instruction & response schema for analysis calls
"""
prompts.py — Analysis Prompt Construction

The model sees:
- dataset metadata (file name, record count, column types)
- the first rows of the dataset as JSON
- operational guidelines for summary / insight / chart output

and must answer with a JSON object matching RESPONSE_SCHEMA.
"""

from __future__ import annotations

import json

from agent.models import CHART_TYPES, Dataset
from tools.profiling import describe_column_types
from tools.validators import sanitize_dict_for_json


# =============================================================================
# RESPONSE SCHEMA
# =============================================================================

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "summary": {"type": "STRING"},
        "insight": {"type": "STRING"},
        "chartType": {
            "type": "STRING",
            "format": "enum",
            "enum": list(CHART_TYPES),
            "description": "One of: " + ", ".join(CHART_TYPES),
        },
        "chartData": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "value": {"type": "NUMBER"},
                    "x": {"type": "NUMBER"},
                    "y": {"type": "NUMBER"},
                },
            },
        },
        "xAxisLabel": {"type": "STRING"},
        "yAxisLabel": {"type": "STRING"},
        "suggestion": {"type": "STRING", "description": "A relevant follow-up question."},
    },
    "required": ["summary", "insight", "chartType", "chartData"],
}


GUIDELINES = """STRICT OPERATIONAL GUIDELINES:
1. ANALYZE: Carefully process the user's question relative to ALL available columns.
2. TEXTUAL RESPONSE:
   - 'summary': A punchy, one-sentence headline of the main finding.
   - 'insight': A detailed, professional analysis. Break down trends, identify outliers, or answer specific calculations requested.
3. VISUALIZATION:
   - Generate a chart whenever the data allows for comparison, distribution, or trends.
   - Choose 'bar' for categories, 'line' for time/sequences, 'pie' for parts-of-a-whole, 'scatter' for correlations.
   - Map 'chartData' to:
     - [{"name": "Label", "value": 123}, ...] for bar/line/pie.
     - [{"x": 10, "y": 20}, ...] for scatter.
   - Use descriptive 'xAxisLabel' and 'yAxisLabel'.
4. FALLBACK: If the data cannot answer the question, explain why in 'insight' and set 'chartType' to 'none'.
5. FOLLOW-UP: Put one relevant follow-up question in 'suggestion'.
6. OUTPUT: Return ONLY a valid JSON object following the response schema."""


# =============================================================================
# BUILDERS
# =============================================================================

def build_system_prompt(dataset: Dataset, sample_rows: int = 15) -> str:
    """
    Build the system instruction describing the dataset.

    Args:
        dataset: Dataset under analysis
        sample_rows: Number of leading rows included as JSON

    Returns:
        System instruction text
    """
    sample = sanitize_dict_for_json([dict(r) for r in dataset.preview(sample_rows)])

    return f"""You are a senior data scientist. Your goal is to provide deep, actionable insights and clear visualizations for any user question about their dataset.

Dataset Metadata:
- File Name: {dataset.name}
- Total Records: {dataset.row_count}
- Columns & types: {describe_column_types(dataset)}

Sample Data Context:
{json.dumps(sample, ensure_ascii=False)}

{GUIDELINES}"""


def build_messages(query: str, history: list[dict[str, str]]) -> list[dict[str, str]]:
    """
    Prior exchanges in order, then the new query as the last user turn.

    Roles other than "user" are sent as "assistant".
    """
    messages = [
        {
            "role": "user" if h.get("role") == "user" else "assistant",
            "content": str(h.get("content", "")),
        }
        for h in history
    ]
    messages.append({"role": "user", "content": query})
    return messages
