"""
Report routes — report card views and PDF / Excel exports.
"""

import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.config import SCHOOL_NAME
from core.grading import normalize_term
from core.ranking import compute_class_positions
from core.report_builder import generate_positions_excel, generate_report_card_pdf
from core.report_card import build_report_card
from routes.deps import active_scheme, grade_store, roster

router = APIRouter()

UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
REPORTS_DIR = UPLOAD_DIR / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Best-effort file deletion after response is sent."""
    Path(path).unlink(missing_ok=True)


def _report_card(student_id: str, class_id: str, term: str, academic_year: str):
    term = normalize_term(term)
    scheme = active_scheme()
    records = grade_store.list_grades(class_id=class_id, term=term, academic_year=academic_year)
    class_roster = roster.get_class_students(class_id)
    ranking = compute_class_positions(
        records, scheme, class_id, term, academic_year, roster=class_roster
    )
    return build_report_card(
        student_id,
        class_id,
        term,
        academic_year,
        records,
        scheme,
        positions=ranking,
        student=class_roster.get(student_id) or roster.get_student(student_id),
    )


@router.get("/report-card/{student_id}")
async def report_card(student_id: str, class_id: str, term: str, academic_year: str):
    """Report card view for one student (subject rows, summary, class rank)."""
    return _report_card(student_id, class_id, term, academic_year)


@router.get("/report-card/{student_id}/pdf")
async def report_card_pdf(
    student_id: str,
    class_id: str,
    term: str,
    academic_year: str,
    school_name: Optional[str] = None,
):
    """Generate a printable report card PDF."""
    card = _report_card(student_id, class_id, term, academic_year)
    report_id = str(uuid.uuid4())[:8]
    student_token = _safe_token(student_id, fallback="student")
    output_path = REPORTS_DIR / f"report_card_{student_token}_{report_id}.pdf"

    generate_report_card_pdf(
        output_path=str(output_path),
        school_name=school_name or SCHOOL_NAME,
        report_card=card,
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Report_Card_{student_token}_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.get("/positions/excel")
async def positions_excel(
    class_id: str,
    term: str,
    academic_year: str,
    class_name: Optional[str] = None,
):
    """Export the full class ranking as an Excel workbook."""
    term = normalize_term(term)
    records = grade_store.list_grades(class_id=class_id, term=term, academic_year=academic_year)
    if not records:
        raise HTTPException(404, f"No grades found for class '{class_id}' in {term} {academic_year}.")

    ranking = compute_class_positions(
        records, active_scheme(), class_id, term, academic_year,
        roster=roster.get_class_students(class_id),
    )
    report_id = str(uuid.uuid4())[:8]
    class_token = _safe_token(class_name or class_id, fallback="class")
    output_path = REPORTS_DIR / f"positions_{class_token}_{report_id}.xlsx"

    generate_positions_excel(
        output_path=str(output_path),
        school_name=SCHOOL_NAME,
        ranking=ranking,
        class_name=class_name,
    )

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Positions_{class_token}_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
