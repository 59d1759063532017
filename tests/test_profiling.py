"""
Tests for tools.profiling
"""

from __future__ import annotations

from agent.models import Dataset
from tools.profiling import describe_column_types, infer_column_type, profile_dataset


DATASET = Dataset(
    id="d",
    name="inventory.csv",
    columns=("name", "stock", "code", "notes"),
    data=(
        {"name": "bolt", "stock": 1, "code": "x1", "notes": ""},
        {"name": "nut", "stock": 2.5, "code": 7},
        {"name": "gear", "stock": 3, "code": "x1"},
    ),
)


class TestInferColumnType:
    def test_first_present_value_decides(self):
        assert infer_column_type(DATASET, "stock") == "number"
        assert infer_column_type(DATASET, "code") == "string"
        assert infer_column_type(DATASET, "notes") == "string"

    def test_column_absent_everywhere(self):
        ds = Dataset(id="d", name="a.csv", columns=("a", "b"), data=({"a": 1},))
        assert infer_column_type(ds, "b") == "empty"

    def test_describe(self):
        assert describe_column_types(DATASET) == (
            "name (string), stock (number), code (string), notes (string)"
        )


class TestProfileDataset:
    def test_counts(self):
        profile = profile_dataset(DATASET)
        assert profile["row_count"] == 3
        assert profile["col_count"] == 4
        assert profile["type_summary"] == {"number": 1, "string": 1, "mixed": 1, "empty": 1}

    def test_numeric_column_stats(self):
        stock = profile_dataset(DATASET)["columns"][1]
        assert stock["value_type"] == "number"
        assert stock["min"] == 1
        assert stock["max"] == 3
        assert stock["mean"] == 2.1667
        assert stock["non_empty"] == 3

    def test_mixed_column(self):
        code = profile_dataset(DATASET)["columns"][2]
        assert code["value_type"] == "mixed"
        assert code["first_value_type"] == "string"
        assert code["unique_count"] == 2
        assert code["min"] == 7

    def test_empty_column(self):
        notes = profile_dataset(DATASET)["columns"][3]
        assert notes["value_type"] == "empty"
        assert notes["non_empty"] == 0
        assert "min" not in notes

    def test_sample_size(self):
        name = profile_dataset(DATASET, sample_size=2)["columns"][0]
        assert name["sample_values"] == ["bolt", "nut"]
