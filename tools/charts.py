# charts.py — Plotly figures for analysis results
"""
charts.py — Chart Rendering

Builds a Plotly figure from an AnalysisResult:
- bar     → vertical bars, one colour per category
- line    → line with markers
- pie     → donut
- scatter → x/y markers

Returns None when the result has no plottable points.
"""

from __future__ import annotations

import plotly.graph_objects as go

from agent.models import AnalysisResult
from config.settings import get_settings


GRID_COLOR = "#e2e8f0"
PRIMARY_COLOR = "#3b82f6"


def _palette(n: int) -> list[str]:
    colors = get_settings().chart_colors
    return [colors[i % len(colors)] for i in range(n)]


def _base_layout(fig: go.Figure, result: AnalysisResult) -> go.Figure:
    fig.update_layout(
        plot_bgcolor="white",
        paper_bgcolor="white",
        margin=dict(t=30, r=30, l=20, b=40),
        xaxis=dict(title=result.x_axis_label, showgrid=False),
        yaxis=dict(title=result.y_axis_label, showgrid=True, gridcolor=GRID_COLOR),
    )
    return fig


def _create_bar_chart(result: AnalysisResult) -> go.Figure:
    points = result.plot_points
    fig = go.Figure(go.Bar(
        x=[p.name for p in points],
        y=[p.value for p in points],
        marker=dict(color=_palette(len(points)), line=dict(width=0), cornerradius=6),
    ))
    fig = _base_layout(fig, result)
    fig.update_layout(xaxis=dict(tickangle=-25 if len(points) > 5 else 0))
    return fig


def _create_line_chart(result: AnalysisResult) -> go.Figure:
    points = result.plot_points
    fig = go.Figure(go.Scatter(
        x=[p.name for p in points],
        y=[p.value for p in points],
        mode="lines+markers",
        line=dict(color=PRIMARY_COLOR, width=3),
        marker=dict(size=8, color=PRIMARY_COLOR),
    ))
    return _base_layout(fig, result)


def _create_donut_chart(result: AnalysisResult) -> go.Figure:
    points = result.plot_points
    fig = go.Figure(go.Pie(
        labels=[p.name for p in points],
        values=[p.value for p in points],
        hole=0.5,
        marker=dict(colors=_palette(len(points)), line=dict(color="white", width=2)),
        textinfo="percent",
    ))
    fig.update_layout(
        showlegend=True,
        legend=dict(orientation="h", yanchor="bottom", y=-0.2, xanchor="center", x=0.5),
        paper_bgcolor="white",
        margin=dict(t=30, r=30, l=30, b=30),
    )
    return fig


def _create_scatter_chart(result: AnalysisResult) -> go.Figure:
    points = result.plot_points
    fig = go.Figure(go.Scatter(
        x=[p.x for p in points],
        y=[p.y for p in points],
        mode="markers",
        opacity=0.8,
        marker=dict(size=9, color=PRIMARY_COLOR),
    ))
    fig = _base_layout(fig, result)
    fig.update_layout(xaxis=dict(showgrid=True, gridcolor=GRID_COLOR))
    return fig


CHART_BUILDERS = {
    "bar": _create_bar_chart,
    "line": _create_line_chart,
    "pie": _create_donut_chart,
    "scatter": _create_scatter_chart,
}


def build_chart_figure(result: AnalysisResult) -> go.Figure | None:
    """Figure for ``result``, or None when there is nothing to plot."""
    if not result.has_chart:
        return None
    return CHART_BUILDERS[result.chart_type](result)
