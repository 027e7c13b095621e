"""
report_builder.py — PDF and Excel exports.

Generates:
- Report Card PDF  (identity, summary, subject table, subject chart, signatures)
- Positions Excel  (class ranking with pass/fail colouring)

All PDFs are A4, print-ready with school name / date footer.
"""

import io
from datetime import datetime
from typing import Any, Dict, List, Optional

import matplotlib
matplotlib.use("Agg")  # Non-interactive backend for server use
import matplotlib.pyplot as plt
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)


# ── Colour palette ──────────────────────────────────────────────────

BRAND_DARK  = colors.HexColor("#1a1a2e")
BRAND_ACCENT = colors.HexColor("#0f3460")
WHITE       = colors.white

PASS_BG = colors.HexColor("#d5f5e3")
FAIL_BG = colors.HexColor("#fadbd8")


# ── Helpers ─────────────────────────────────────────────────────────

def _footer(canvas, doc, school_name: str):
    """Draw school name and date in the page footer."""
    canvas.saveState()
    canvas.setFont("Helvetica", 8)
    canvas.setFillColor(colors.grey)
    footer_text = f"{school_name} - Generated {datetime.now().strftime('%d %B %Y, %H:%M')}"
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


def _styles():
    """Return custom paragraph styles."""
    ss = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "CustomTitle", parent=ss["Title"],
            fontSize=24, leading=30, textColor=BRAND_DARK,
            spaceAfter=4 * mm,
        ),
        "subtitle": ParagraphStyle(
            "CustomSubtitle", parent=ss["Normal"],
            fontSize=13, leading=17, textColor=BRAND_ACCENT,
            spaceAfter=3 * mm,
        ),
        "heading": ParagraphStyle(
            "CustomHeading", parent=ss["Heading2"],
            fontSize=13, leading=17, textColor=BRAND_DARK,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        "body": ParagraphStyle(
            "CustomBody", parent=ss["Normal"],
            fontSize=10, leading=14, textColor=colors.black,
            spaceAfter=3 * mm,
        ),
        "small": ParagraphStyle(
            "CustomSmall", parent=ss["Normal"],
            fontSize=8, leading=10, textColor=colors.grey,
        ),
        "center": ParagraphStyle(
            "CenterBody", parent=ss["Normal"],
            fontSize=10, leading=14, alignment=TA_CENTER,
        ),
    }


def _pass_coded_table(data: List[List], passing: List[bool], col_widths=None):
    """Table with each body row shaded by its pass flag."""
    style_cmds = [
        ("BACKGROUND", (0, 0), (-1, 0), BRAND_DARK),
        ("TEXTCOLOR", (0, 0), (-1, 0), WHITE),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    for row_idx, ok in enumerate(passing, 1):
        style_cmds.append(("BACKGROUND", (0, row_idx), (-1, row_idx), PASS_BG if ok else FAIL_BG))

    t = Table(data, colWidths=col_widths, repeatRows=1)
    t.setStyle(TableStyle(style_cmds))
    return t


def _subject_marks_chart(report_card: Dict[str, Any]) -> Optional[Image]:
    """Bar chart of marks per subject, green for passing bands, red otherwise."""
    rows = report_card.get("subjects", [])
    if not rows:
        return None

    subjects = [str(r["subject"]) for r in rows]
    values = [float(r["marks"]) for r in rows]
    colors_list = ["#2ecc71" if r["is_passing"] else "#e74c3c" for r in rows]

    fig, ax = plt.subplots(figsize=(7.2, 3.6))
    bars = ax.bar(subjects, values, color=colors_list, edgecolor="white", linewidth=0.8)
    for bar, row in zip(bars, rows):
        ax.text(
            bar.get_x() + bar.get_width() / 2,
            bar.get_height() + 1.5,
            f"{row['marks']:.0f} ({row['grade']})",
            ha="center",
            va="bottom",
            fontsize=8,
            fontweight="bold",
        )

    rank = report_card.get("rank") or {}
    if rank.get("class_average") is not None:
        ax.axhline(rank["class_average"], linestyle="--", color="#7f8c8d", linewidth=1)
        ax.text(len(subjects) - 0.5, rank["class_average"] + 1,
                f"Class average {rank['class_average']:.1f}", fontsize=8, color="#7f8c8d")
    ax.set_ylim(0, 105)
    ax.set_ylabel("Marks", fontsize=9)
    ax.set_title("Subject Marks At a Glance", fontsize=11, fontweight="bold")
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.tick_params(axis="x", rotation=28, labelsize=8)
    fig.tight_layout()
    return _chart_to_image(fig, width=15 * cm, height=7.5 * cm)


# ═══════════════════════════════════════════════════════════════════
# 1. REPORT CARD PDF
# ═══════════════════════════════════════════════════════════════════

def generate_report_card_pdf(
    output_path: str,
    school_name: str,
    report_card: Dict[str, Any],
):
    """Render a report card view (see core.report_card) as a one-page PDF."""
    st = _styles()
    story = []
    summary = report_card["summary"]
    rank = report_card.get("rank")

    story.append(Paragraph(school_name, st["title"]))
    story.append(Paragraph(
        f"Report Card - {report_card.get('term_display') or report_card['term']} "
        f"{report_card['academic_year']}",
        st["subtitle"],
    ))
    story.append(Paragraph(datetime.now().strftime("%d %B %Y"), st["small"]))
    story.append(Spacer(1, 4 * mm))

    identity = [
        ["Student Name", report_card["student_name"], "Admission Number", report_card["admission_number"] or "N/A"],
        ["Class", report_card["class_id"], "Academic Year", report_card["academic_year"]],
    ]
    identity_table = Table(identity, colWidths=[3.8 * cm, 3.7 * cm, 3.8 * cm, 3.7 * cm])
    identity_table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.6, colors.HexColor("#d1d5db")),
        ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f8fafc")),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTNAME", (2, 0), (2, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    story.append(identity_table)

    story.append(Paragraph("Subject Results", st["heading"]))
    rows = report_card.get("subjects", [])
    if rows:
        data = [["Subject", "Marks", "Grade", "GPA", "Remarks"]]
        for r in rows:
            data.append([r["subject"], f"{r['marks']:.1f}", r["grade"], f"{r['gpa_value']:.1f}", r["remarks"] or "-"])
        story.append(_pass_coded_table(
            data,
            [r["is_passing"] for r in rows],
            col_widths=[4.5 * cm, 2 * cm, 2 * cm, 2 * cm, 4.5 * cm],
        ))
    else:
        story.append(Paragraph("No subjects have been graded yet.", st["body"]))

    average = summary["overall_average"]
    summary_rows = [
        ["Overall Average", f"{average:.2f}" if isinstance(average, (int, float)) else average],
        ["Overall Grade", summary["overall_grade"]],
        ["GPA", str(summary["gpa"])],
        ["Subjects Passed", summary["pass_ratio"]],
    ]
    if rank:
        summary_rows.append(["Class Position", f"{rank['position_label']} of {rank['out_of']}"])
        if rank.get("class_average") is not None:
            summary_rows.append(["Class Average", f"{rank['class_average']:.2f}"])
    story.append(Paragraph("Summary", st["heading"]))
    summary_table = Table(summary_rows, colWidths=[6.5 * cm, 8.5 * cm])
    summary_table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#d1d5db")),
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#eef2ff")),
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    story.append(summary_table)
    story.append(Spacer(1, 4 * mm))

    chart = _subject_marks_chart(report_card)
    if chart:
        story.append(chart)

    story.append(Paragraph("Class Teacher's Remarks", st["heading"]))
    story.append(Paragraph(report_card["remark"], st["body"]))
    story.append(Spacer(1, 4 * mm))

    sign_table = Table(
        [
            ["Class Teacher Signature", "Parent/Guardian Signature", "Principal Signature"],
            ["", "", ""],
        ],
        colWidths=[5 * cm, 5 * cm, 5 * cm],
        rowHeights=[0.65 * cm, 1.5 * cm],
    )
    sign_table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#9ca3af")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
    ]))
    story.append(sign_table)

    doc = SimpleDocTemplate(
        output_path, pagesize=A4,
        leftMargin=2 * cm, rightMargin=2 * cm,
        topMargin=2 * cm, bottomMargin=2.5 * cm,
    )
    doc.build(
        story,
        onFirstPage=lambda c, d: _footer(c, d, school_name),
        onLaterPages=lambda c, d: _footer(c, d, school_name),
    )


# ═══════════════════════════════════════════════════════════════════
# 2. POSITIONS EXCEL
# ═══════════════════════════════════════════════════════════════════

POSITION_COLUMNS = [
    ("Position", "position_label"),
    ("Student", "student_name"),
    ("Admission No.", "admission_number"),
    ("Average", "average_marks"),
    ("Total Marks", "total_marks"),
    ("Passed", "passed_subjects"),
    ("Subjects", "total_subjects"),
]


def generate_positions_excel(
    output_path: str,
    school_name: str,
    ranking: Dict[str, Any],
    class_name: Optional[str] = None,
):
    """Export a class ranking to a styled single-sheet workbook."""
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="1a1a2e", end_color="1a1a2e", fill_type="solid")
    red_fill = PatternFill(start_color="fadbd8", end_color="fadbd8", fill_type="solid")
    green_fill = PatternFill(start_color="d5f5e3", end_color="d5f5e3", fill_type="solid")
    thin_border = Border(
        left=Side(style="thin"), right=Side(style="thin"),
        top=Side(style="thin"), bottom=Side(style="thin"),
    )

    wb = Workbook()
    ws = wb.active
    ws.title = "Positions"
    ws.sheet_properties.tabColor = "1a1a2e"

    title = f"{school_name} - {class_name or ranking.get('class_id', '')}"
    if ranking.get("term"):
        title += f" - {ranking['term']} {ranking.get('academic_year', '')}".rstrip()
    ws.append([title])
    ws.append([header for header, _ in POSITION_COLUMNS])
    for cell in ws[2]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        cell.border = thin_border

    for entry in ranking.get("positions", []):
        ws.append([entry.get(key) for _, key in POSITION_COLUMNS])
        row = ws[ws.max_row]
        all_passed = entry["passed_subjects"] == entry["total_subjects"]
        for cell in row:
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")
            cell.fill = green_fill if all_passed else red_fill

    class_average = ranking.get("class_average")
    ws.append([])
    ws.append(["Class Average", class_average if class_average is not None else "N/A"])
    ws[ws.max_row][0].font = Font(bold=True)

    ws.freeze_panes = "A3"
    for col_cells in ws.iter_cols(min_row=2):
        max_len = max(len(str(cell.value or "")) for cell in col_cells)
        ws.column_dimensions[col_cells[0].column_letter].width = min(max_len + 4, 30)

    wb.save(output_path)
