# profiling.py — Column profiling for prompts and the table view
"""
profiling.py — Dataset Profiling

Per-column summary of an ingested Dataset:
{
    row_count: int,
    col_count: int,
    columns: list[{name, value_type, non_empty, unique_count,
                   sample_values, min?, max?, mean?}],
    type_summary: {number: int, string: int, mixed: int, empty: int},
}

value_type follows the first non-empty cell in the column, the way the
model is told about column types; "mixed" is reported separately so the
table view can flag columns with both numbers and text.
"""

from __future__ import annotations

from typing import Any

import pandas as pd

from agent.models import Dataset
from tools.validators import sanitize_dict_for_json


# =============================================================================
# TYPE INFERENCE
# =============================================================================

def _cell_type(value: Any) -> str:
    if isinstance(value, bool):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    return "string"


def infer_column_type(dataset: Dataset, column: str) -> str:
    """
    Type of the first present value in a column.

    Returns one of: "number", "string", "empty" (no row has the column)
    """
    for row in dataset.data:
        if column in row:
            return _cell_type(row[column])
    return "empty"


def describe_column_types(dataset: Dataset) -> str:
    """``"name (string), score (number)"`` for the prompt."""
    return ", ".join(
        f"{col} ({infer_column_type(dataset, col)})" for col in dataset.columns
    )


# =============================================================================
# DATASET PROFILE
# =============================================================================

def profile_dataset(dataset: Dataset, sample_size: int = 3) -> dict:
    """
    Profile every column of a dataset.

    Args:
        dataset: Ingested dataset
        sample_size: Number of sample values per column

    Returns:
        Profile dict (see module docstring), JSON-safe
    """
    type_counts = {"number": 0, "string": 0, "mixed": 0, "empty": 0}
    columns = []

    df = dataset.to_frame()

    for col in dict.fromkeys(dataset.columns):
        present = [row[col] for row in dataset.data if col in row and row[col] != ""]
        kinds = {_cell_type(v) for v in present}

        if not present:
            value_type = "empty"
        elif len(kinds) > 1:
            value_type = "mixed"
        else:
            value_type = kinds.pop()
        type_counts[value_type] += 1

        entry = {
            "name": col,
            "value_type": value_type,
            "first_value_type": infer_column_type(dataset, col),
            "non_empty": len(present),
            "unique_count": len(set(map(str, present))),
            "sample_values": present[:sample_size],
        }

        if value_type in ("number", "mixed"):
            numeric = pd.to_numeric(df[col], errors="coerce").dropna()
            if len(numeric) > 0:
                entry["min"] = numeric.min()
                entry["max"] = numeric.max()
                entry["mean"] = round(float(numeric.mean()), 4)

        columns.append(entry)

    return sanitize_dict_for_json({
        "row_count": dataset.row_count,
        "col_count": dataset.column_count,
        "columns": columns,
        "type_summary": type_counts,
    })
