"""
Tests for tools.charts
"""

from __future__ import annotations

import pytest

from agent.models import AnalysisResult
from tools.charts import build_chart_figure


def _make_result(chart_type: str, chart_data: list[dict], **overrides) -> AnalysisResult:
    payload = dict(
        summary="s",
        insight="i",
        chartType=chart_type,
        chartData=chart_data,
        xAxisLabel="Region",
        yAxisLabel="Revenue",
    )
    payload.update(overrides)
    return AnalysisResult.model_validate(payload)


CATEGORY_DATA = [{"name": "North", "value": 120}, {"name": "South", "value": 80}]


class TestBuildChartFigure:
    @pytest.mark.parametrize("chart_type, trace_type", [
        ("bar", "bar"),
        ("line", "scatter"),
        ("pie", "pie"),
    ])
    def test_trace_type(self, chart_type, trace_type):
        figure = build_chart_figure(_make_result(chart_type, CATEGORY_DATA))
        assert figure.data[0].type == trace_type

    def test_bar_values_and_labels(self):
        figure = build_chart_figure(_make_result("bar", CATEGORY_DATA))
        assert list(figure.data[0].x) == ["North", "South"]
        assert list(figure.data[0].y) == [120, 80]
        assert figure.layout.xaxis.title.text == "Region"
        assert figure.layout.yaxis.title.text == "Revenue"

    def test_line_uses_markers(self):
        figure = build_chart_figure(_make_result("line", CATEGORY_DATA))
        assert figure.data[0].mode == "lines+markers"

    def test_pie_is_donut(self):
        figure = build_chart_figure(_make_result("pie", CATEGORY_DATA))
        assert figure.data[0].hole == 0.5
        assert list(figure.data[0].labels) == ["North", "South"]

    def test_scatter_uses_xy(self):
        figure = build_chart_figure(_make_result("scatter", [{"x": 1, "y": 2}, {"x": 3, "y": 5}]))
        assert figure.data[0].mode == "markers"
        assert list(figure.data[0].x) == [1, 3]
        assert list(figure.data[0].y) == [2, 5]

    def test_none_chart(self):
        assert build_chart_figure(_make_result("none", [])) is None

    def test_no_plottable_points(self):
        assert build_chart_figure(_make_result("scatter", [{"name": "a", "value": 1}])) is None
