# models.py — Dataset, Exchange and AnalysisResult types
"""
models.py — Core Data Model

- Dataset: an uploaded CSV as ordered columns + immutable rows
- Exchange: one user or assistant message in the conversation
- AnalysisResult: the structured answer returned by the model

Cell values are ``int | float | str``; the Python type is the tag, so a
number is always a number and text is always text. The ingestor never
produces None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, field_validator


CellValue = Union[int, float, str]
Row = Mapping[str, CellValue]
Role = Literal["user", "assistant"]
ChartType = Literal["bar", "line", "pie", "scatter", "none"]

CHART_TYPES: tuple[str, ...] = ("bar", "line", "pie", "scatter", "none")


# =============================================================================
# DATASET
# =============================================================================

@dataclass(frozen=True)
class Dataset:
    """An ingested CSV file."""
    id: str
    name: str
    columns: tuple[str, ...]
    data: tuple[Row, ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.data)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def basename(self) -> str:
        """File name up to the first dot (``sales.2024.csv`` → ``sales``)."""
        return self.name.split(".")[0] or "dataset"

    def preview(self, n: int) -> tuple[Row, ...]:
        return self.data[:n]

    def to_frame(self) -> pd.DataFrame:
        """
        Build a DataFrame with columns in dataset order.

        Absent cells become NaN. Duplicate header names collapse to one
        column, matching the row mappings.
        """
        columns = list(dict.fromkeys(self.columns))
        return pd.DataFrame([dict(r) for r in self.data], columns=columns)


# =============================================================================
# ANALYSIS RESULT
# =============================================================================

class ChartPoint(BaseModel):
    """One chart datum: ``name``/``value`` for bar, line, pie; ``x``/``y`` for scatter."""
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    value: int | float | None = None
    x: int | float | None = None
    y: int | float | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_to_text(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class AnalysisResult(BaseModel):
    """Structured answer for one query."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    summary: str
    insight: str
    chart_type: ChartType = Field(alias="chartType")
    chart_data: list[ChartPoint] = Field(default_factory=list, alias="chartData")
    x_axis_label: str | None = Field(default=None, alias="xAxisLabel")
    y_axis_label: str | None = Field(default=None, alias="yAxisLabel")
    suggestion: str | None = None

    @field_validator("chart_type", mode="before")
    @classmethod
    def _normalize_chart_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("chart_data", mode="before")
    @classmethod
    def _null_chart_data(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def plot_points(self) -> list[ChartPoint]:
        """Points that carry the fields the chart type needs."""
        if self.chart_type == "none":
            return []
        if self.chart_type == "scatter":
            return [p for p in self.chart_data if p.x is not None and p.y is not None]
        return [p for p in self.chart_data if p.name is not None and p.value is not None]

    @property
    def has_chart(self) -> bool:
        return bool(self.plot_points)

    def to_payload(self) -> dict:
        """camelCase dict with unset optional fields left out."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# EXCHANGE
# =============================================================================

@dataclass(frozen=True)
class Exchange:
    """A single message in the conversation."""
    id: str
    role: Role
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    response: AnalysisResult | None = None

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unknown role: {self.role!r}")
        if self.response is not None and self.role != "assistant":
            raise ValueError("Only assistant exchanges may carry an analysis result")

    def as_history(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}
