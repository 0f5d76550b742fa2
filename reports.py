# reports.py
from __future__ import annotations

import io
import logging

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from domain import YearlyStatistics
from utils import format_currency, format_hours, top_projects_to_dataframe

logger = logging.getLogger(__name__)

BORDER_COLOR = colors.HexColor("#C7CCD6")


def _draw_page_border(canvas, doc_obj):
    canvas.saveState()
    w, h = doc_obj.pagesize
    canvas.setStrokeColor(BORDER_COLOR)
    canvas.setLineWidth(0.8)
    margin = 12
    canvas.rect(margin, margin, w - 2 * margin, h - 2 * margin)
    canvas.restoreState()


def _table(df: pd.DataFrame) -> Table:
    data = [list(df.columns)] + df.astype(str).values.tolist()
    table = Table(data, repeatRows=1, hAlign="CENTER")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#F5F5F7")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.HexColor("#E0E0E0")),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.whitesmoke, colors.white]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def dataframe_to_pdf(df: pd.DataFrame, title: str, summary_lines: list[str] | None = None) -> bytes:
    """Renders a table (and an optional summary box) as a landscape A4 PDF."""
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=landscape(A4), topMargin=24, bottomMargin=24, leftMargin=24, rightMargin=24)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(name="TitleCentered", parent=styles["Title"], alignment=TA_CENTER)
    summary_style = ParagraphStyle(
        name="Summary", parent=styles["Normal"], alignment=TA_CENTER,
        textColor=colors.black, fontSize=11, leading=13, spaceBefore=2, spaceAfter=2
    )
    story = [Paragraph(title, title_style), Spacer(1, 8)]
    if df.empty:
        story.append(Paragraph("No data to show.", styles["Normal"]))
    else:
        story.append(_table(df))

    if summary_lines:
        story.append(Spacer(1, 12))
        cells = [[Paragraph(line, summary_style)] for line in summary_lines]
        summary_width = min(520, 0.65 * doc.width)
        box = Table(cells, colWidths=[summary_width], hAlign="CENTER")
        box.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("BACKGROUND", (0, 0), (-1, -1), colors.white),
            ("BOX", (0, 0), (-1, -1), 0.6, BORDER_COLOR),
        ]))
        story.append(box)

    doc.build(story, onFirstPage=_draw_page_border, onLaterPages=_draw_page_border)
    return buf.getvalue()


def yearly_statistics_to_pdf(stats: YearlyStatistics, title: str | None = None) -> bytes:
    title = title or f"Yearly report {stats.year}"
    lines = [
        f"Total: {format_hours(stats.total_hours)} over {stats.working_days} days "
        f"(average {format_hours(stats.average_daily_hours)} per day)",
        f"Billable: {format_hours(stats.billable_hours)} · Revenue: {format_currency(stats.total_revenue)}",
        f"Overtime: {format_hours(stats.total_overtime_hours)} on {stats.overtime_days} days "
        f"({stats.overtime_percentage:.2f}%)",
    ]
    if stats.busiest_month:
        lines.append(f"Busiest month: {stats.busiest_month.month} ({format_hours(stats.busiest_month.hours)})")
    logger.info("Rendering yearly PDF for %s", stats.year)
    return dataframe_to_pdf(top_projects_to_dataframe(stats), title, lines)
