# exports.py — Download payloads for datasets and analysis results
# CSV / JSON / TXT strings, PNG chart images, PDF reports
"""
exports.py — Export Payloads

Pure functions that turn in-memory state into downloadable payloads.
Writing the file is left to the caller (st.download_button in the UI).

CSV re-export wraps every value in double quotes without escaping
embedded quotes, mirroring the ingestor's quote handling. Re-ingesting
an export gives the same values for ordinary data; values that contain
double quotes do not survive the round trip.
"""

from __future__ import annotations

import io
import json
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, PageBreak, Paragraph, SimpleDocTemplate, Spacer

from agent.models import AnalysisResult, Dataset, Exchange
from tools.csv_ingest import format_cell


# =============================================================================
# CONSTANTS
# =============================================================================

REPORT_TITLE = "Insight Desk Analysis Report"
PDF_TITLE = "Insight Desk Report"
TIMESTAMP_FORMAT = "%c"  # Locale's date and time representation

MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "txt": "text/plain",
    "png": "image/png",
    "pdf": "application/pdf",
}


def export_filename(kind: str, ident: str) -> str:
    """
    Download file name for an export.

    Args:
        kind: One of "csv", "json", "txt", "png", "pdf"
        ident: Dataset basename for "csv", exchange id otherwise
    """
    names = {
        "csv": f"{ident}_export.csv",
        "json": f"analysis_{ident}.json",
        "txt": f"report_{ident}.txt",
        "png": f"chart_{ident}.png",
        "pdf": f"full_report_{ident}.pdf",
    }
    if kind not in names:
        raise ValueError(f"Unknown export kind: {kind}")
    return names[kind]


# =============================================================================
# TEXT PAYLOADS
# =============================================================================

def dataset_to_csv(dataset: Dataset) -> str:
    """
    Re-export a dataset as CSV text.

    Header is the column list joined by commas; every value is wrapped
    in double quotes and absent values render as "".
    """
    lines = [",".join(dataset.columns)]
    for row in dataset.data:
        lines.append(",".join(f'"{format_cell(row.get(col))}"' for col in dataset.columns))
    return "\n".join(lines)


def result_to_json(result: AnalysisResult) -> str:
    """Pretty-printed JSON of the analysis result."""
    return json.dumps(result.to_payload(), indent=2, ensure_ascii=False)


def build_text_report(query: str | None, exchange: Exchange) -> str:
    """
    Plain-text report for one assistant exchange.

    Args:
        query: The question that produced the exchange
        exchange: Assistant exchange (with or without a result)
    """
    summary = exchange.response.summary if exchange.response else "-"
    timestamp = exchange.timestamp.strftime(TIMESTAMP_FORMAT)
    return (
        f"{REPORT_TITLE}\n\n"
        f"Query: {query or '-'}\n\n"
        f"Summary: {summary}\n\n"
        f"Insights:\n{exchange.content}\n\n"
        f"Timestamp: {timestamp}"
    )


# =============================================================================
# IMAGE / DOCUMENT PAYLOADS
# =============================================================================

def chart_to_png(figure, scale: float = 2) -> bytes:
    """
    Render a Plotly figure to PNG bytes.

    Requires kaleido for static image export.
    """
    return figure.to_image(format="png", scale=scale)


def _pdf_styles() -> dict[str, ParagraphStyle]:
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            name="ReportTitle", parent=styles["Title"], fontSize=22, leading=26,
            textColor=HexColor("#3b82f6"), alignment=0, spaceAfter=4,
        ),
        "meta": ParagraphStyle(
            name="Meta", parent=styles["Normal"], fontSize=10, textColor=HexColor("#64748b"), spaceAfter=12,
        ),
        "h2": ParagraphStyle(
            name="Section", parent=styles["Heading2"], fontSize=14, textColor=HexColor("#0f172a"), spaceAfter=6,
        ),
        "summary": ParagraphStyle(
            name="Summary", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=11,
            leading=14, spaceAfter=8,
        ),
        "body": ParagraphStyle(
            name="Body", parent=styles["Normal"], fontName="Helvetica", fontSize=11,
            leading=14, spaceAfter=6,
        ),
    }


def _paragraphs(text: str, style: ParagraphStyle) -> list:
    """One Paragraph per non-empty line; blank lines become spacers."""
    story = []
    for line in text.split("\n"):
        if line.strip():
            story.append(Paragraph(escape(line.strip()), style))
        else:
            story.append(Spacer(1, 6))
    return story


def build_pdf_report(
    exchange: Exchange,
    chart_png: bytes | None = None,
    generated_at: datetime | None = None,
) -> bytes:
    """
    Full PDF report for an assistant exchange.

    Page 1 holds the title, generation time, executive summary and the
    insight text. When ``chart_png`` is given, the chart follows on a new
    page under "Visualization".

    Raises:
        ValueError: If the exchange carries no analysis result
    """
    result = exchange.response
    if result is None:
        raise ValueError("Exchange has no analysis result to report")

    styles = _pdf_styles()
    generated_at = generated_at or datetime.now()

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=20 * mm, rightMargin=20 * mm, topMargin=20 * mm, bottomMargin=20 * mm,
        title=PDF_TITLE,
    )

    story = [
        Paragraph(PDF_TITLE, styles["title"]),
        Paragraph(f"Generated on {generated_at.strftime(TIMESTAMP_FORMAT)}", styles["meta"]),
        Paragraph("Executive Summary", styles["h2"]),
        Paragraph(escape(result.summary), styles["summary"]),
    ]
    story.extend(_paragraphs(result.insight, styles["body"]))

    if result.suggestion:
        story.append(Spacer(1, 8))
        story.append(Paragraph("Recommended Follow-up", styles["h2"]))
        story.append(Paragraph(escape(result.suggestion), styles["body"]))

    if chart_png:
        width, height = ImageReader(io.BytesIO(chart_png)).getSize()
        scale = min(doc.width / width, (doc.height - 20 * mm) / height)
        draw_width, draw_height = width * scale, height * scale
        story.append(PageBreak())
        story.append(Paragraph("Visualization", styles["h2"]))
        story.append(Image(io.BytesIO(chart_png), width=draw_width, height=draw_height))

    doc.build(story)
    return buffer.getvalue()
