"""
report_builder.py — PDF and Excel exports of academic records.

Generates:
- Student Academic Record PDF (summary, per-subject table, term trend chart)
- Grades Excel Export         (all students sheet + one sheet per band)

PDFs are A4, print-ready with school name / date footer.
"""

import io
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.grading_scale import (
    COLOR_HEX,
    PASSING_GRADE,
    describe_grade,
    descriptive_mode,
    percentage_to_gwa_point,
    round_grade,
    special_status_label,
)
from core.insights import generate_student_insights
from core.models import AnalyticsResult, SubjectGrade
from core.periods import active_terms

logger = logging.getLogger(__name__)


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK = colors.HexColor("#1e3a8a")
BRAND_ACCENT = colors.HexColor("#1e40af")
LIGHT_GREY = colors.HexColor("#f5f5f5")
PASS_BG = colors.HexColor("#d5f5e3")
FAIL_BG = colors.HexColor("#fadbd8")
PENDING_BG = colors.HexColor("#eeeeee")
WHITE = colors.white

MPL_PALETTE = ["#1e40af", "#991b1b", "#064e3b", "#92400e"]


# ── Helpers ─────────────────────────────────────────────────────────

def _fmt(value: Optional[float], places: int = 2) -> str:
    rounded = round_grade(value, places)
    return "—" if rounded is None else f"{rounded:.{places}f}"


def _footer(canvas, doc, school_name: str):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} | Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
    canvas.drawString(2 * cm, 1.2 * cm, footer_text)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Page {doc.page}")
    canvas.restoreState()


def _chart_to_image(fig, width=14 * cm, height=8 * cm) -> Image:
    """Convert a matplotlib figure to a ReportLab Image."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    buf.seek(0)
    return Image(buf, width=width, height=height)


def _term_trend_chart(result: AnalyticsResult) -> Optional[Image]:
    """Line chart of the per-term averages; None when nothing is graded."""
    points = [(t.label, t.value) for t in result.term_averages if t.value is not None]
    if not points:
        return None

    labels = [p[0] for p in points]
    values = [p[1] for p in points]

    fig, ax = plt.subplots(figsize=(6, 3))
    ax.plot(labels, values, marker="o", color=MPL_PALETTE[0], linewidth=2, markersize=8)
    ax.axhline(PASSING_GRADE, color=MPL_PALETTE[1], linestyle="--", linewidth=1)
    for i, v in enumerate(values):
        ax.annotate(f"{v:.1f}", (i, v), textcoords="offset points",
                    xytext=(0, 10), ha="center", fontsize=8, fontweight="bold")

    ax.set_ylabel("Average (%)", fontsize=10)
    ax.set_title("Term Averages", fontsize=12, fontweight="bold", pad=12)
    ax.set_ylim(0, 105)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()
    return _chart_to_image(fig, width=12 * cm, height=6 * cm)


def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "RecordTitle", parent=ss["Title"],
            fontSize=22, leading=28, textColor=BRAND_DARK,
            spaceAfter=4 * mm,
        ),
        "subtitle": ParagraphStyle(
            "RecordSubtitle", parent=ss["Normal"],
            fontSize=12, leading=16, textColor=BRAND_ACCENT,
            alignment=TA_CENTER, spaceAfter=4 * mm,
        ),
        "heading": ParagraphStyle(
            "RecordHeading", parent=ss["Heading2"],
            fontSize=13, leading=17, textColor=BRAND_DARK,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        "body": ParagraphStyle(
            "RecordBody", parent=ss["Normal"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=2 * mm,
        ),
    }


def _base_table_style() -> List[tuple]:
    return [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (1, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]


def _make_table(data: List[List], col_widths=None):
    style_cmds = _base_table_style() + [("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, LIGHT_GREY])]
    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


# ═══════════════════════════════════════════════════════════════════
# 1. STUDENT ACADEMIC RECORD PDF
# ═══════════════════════════════════════════════════════════════════

def _subject_table(result: AnalyticsResult, grades: Dict[str, SubjectGrade]) -> Table:
    terms = active_terms(result.band, result.semester)
    header = ["Subject"] + [label for _, label in terms] + ["Average", "Remark"]
    if result.band == "college":
        header.insert(-1, "GWA")
    rows: List[List[Any]] = [header]
    style_cmds = _base_table_style()

    for row_idx, avg in enumerate(result.subject_averages, start=1):
        grade = grades.get(avg.subject_id)
        periods = [_fmt(grade.period(key) if grade else None) for key, _ in terms]
        if avg.special_status is not None:
            remark = special_status_label(avg.special_status.value)
        else:
            remark = descriptive_mode(avg.average)
        row = [avg.subject_name] + periods + [_fmt(avg.average), remark]
        if result.band == "college":
            row.insert(-1, _fmt(percentage_to_gwa_point(avg.average)))
        rows.append(row)

        standing = avg.standing
        bg = PASS_BG if standing == "pass" else FAIL_BG if standing == "fail" else PENDING_BG
        style_cmds.append(("BACKGROUND", (0, row_idx), (-1, row_idx), bg))
        tier = describe_grade(avg.average).color_tier
        style_cmds.append(("TEXTCOLOR", (-1, row_idx), (-1, row_idx), colors.HexColor(COLOR_HEX[tier])))

    t = Table(rows, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def generate_student_record_pdf(
    output_path: str,
    school_name: str,
    student_name: str,
    result: AnalyticsResult,
    grades: Optional[Dict[str, SubjectGrade]] = None,
):
    """Generate a one-student academic record PDF."""
    st = _styles()
    story = []
    grades = grades or {}

    story.append(Paragraph(school_name, st["title"]))
    story.append(Paragraph(f"Academic Record: {student_name}", st["subtitle"]))

    semester = {"first-sem": "First Semester", "second-sem": "Second Semester"}.get(result.semester or "", "Full Year")
    overall_label = describe_grade(result.overall_average).label
    summary = [
        ["Level", "Semester", "Overall Average", "Standing", "GWA"],
        [
            result.band.title(),
            semester,
            f"{_fmt(result.overall_average)} ({overall_label})",
            f"{result.pass_count} passed / {result.fail_count} failed / {result.pending_count} pending",
            _fmt(result.gwa) if result.band == "college" else "N/A",
        ],
    ]
    story.append(_make_table(summary))

    story.append(Paragraph("Subject Grades", st["heading"]))
    if result.subject_averages:
        story.append(_subject_table(result, grades))
    else:
        story.append(Paragraph("No subjects recorded for this enrollment.", st["body"]))

    chart = _term_trend_chart(result)
    if chart is not None:
        story.append(Paragraph("Term Averages", st["heading"]))
        story.append(chart)

    insights = generate_student_insights(result)
    story.append(Paragraph("Remarks", st["heading"]))
    story.append(Paragraph(insights["summary"], st["body"]))
    for item in insights["strengths"] + insights["concerns"]:
        story.append(Paragraph(f"• {item}", st["body"]))
    story.append(Spacer(1, 4 * mm))

    doc = SimpleDocTemplate(
        output_path, pagesize=A4,
        leftMargin=2 * cm, rightMargin=2 * cm, topMargin=2 * cm, bottomMargin=2 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )
    logger.info("Wrote academic record PDF for %s to %s", student_name, output_path)


# ═══════════════════════════════════════════════════════════════════
# 2. GRADES EXCEL EXPORT
# ═══════════════════════════════════════════════════════════════════

def generate_grades_excel(output_path: str, rows: pd.DataFrame, school_name: str = ""):
    """Export student-subject rows with pass/fail fills, one sheet per band."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1e3a8a", end_color="1e3a8a", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    grey_fill = PatternFill(start_color="eeeeee", end_color="eeeeee", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )
    fills = {"pass": green_fill, "fail": red_fill, "pending": grey_fill}

    def _style_sheet(ws, dataframe):
        """Apply formatting to a worksheet."""
        for cell in ws[1]:
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")
            cell.border = thin_border

        standing_idx = list(dataframe.columns).index("standing") if "standing" in dataframe.columns else None
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
            for cell in row:
                cell.border = thin_border
                cell.alignment = Alignment(horizontal="center")
            if standing_idx is not None:
                fill = fills.get(row[standing_idx].value)
                if fill is not None:
                    for cell in row:
                        cell.fill = fill

        ws.freeze_panes = "A2"

        for col_cells in ws.columns:
            max_len = max(len(str(cell.value or "")) for cell in col_cells)
            ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    export = rows.copy()
    if "average" in export.columns:
        export["average"] = export["average"].map(lambda v: round_grade(v) if pd.notna(v) else None)
    # Blank cells instead of NaN
    export = export.astype(object).where(pd.notna(export), None)

    wb = Workbook()

    # ── Sheet 1: All Students ───────────────────────────────────────
    ws_all = wb.active
    ws_all.title = "All Students"
    ws_all.sheet_properties.tabColor = "1e3a8a"
    for row in dataframe_to_rows(export, index=False, header=True):
        ws_all.append(row)
    _style_sheet(ws_all, export)

    # ── Per-band sheets ─────────────────────────────────────────────
    if "band" in export.columns:
        tab_colors = ["1e40af", "991b1b", "064e3b", "92400e"]
        for i, band in enumerate(sorted(export["band"].dropna().unique())):
            band_df = export[export["band"] == band]
            ws = wb.create_sheet(title=str(band).title()[:28])
            ws.sheet_properties.tabColor = tab_colors[i % len(tab_colors)]
            for row in dataframe_to_rows(band_df, index=False, header=True):
                ws.append(row)
            _style_sheet(ws, band_df)

    if school_name:
        wb.properties.title = f"{school_name} grades"
    wb.save(output_path)
    logger.info("Wrote grades workbook with %d row(s) to %s", len(export), output_path)
