"""
Grade routes — grade entry, bulk import, rosters, class positions and statistics.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from core.aggregate import aggregate_class
from core.grading import normalize_term
from core.logger import get_logger
from core.parser import parse_upload, records_from_dataframe
from core.ranking import compute_class_positions, find_position
from core.records import GradeNotFoundError, GradeRecordError
from core.stats import compute_class_statistics, compute_class_summary
from routes.deps import active_scheme, grade_store, roster

router = APIRouter()
log = get_logger("routes.grades")

ALLOWED_UPLOADS = {".csv", ".xlsx"}


def _not_found(grade_id: str):
    return HTTPException(404, f"Grade '{grade_id}' not found.")


@router.get("")
async def list_grades(
    class_id: Optional[str] = None,
    student_id: Optional[str] = None,
    term: Optional[str] = None,
    academic_year: Optional[str] = None,
):
    return grade_store.list_grades(
        class_id=class_id,
        student_id=student_id,
        term=normalize_term(term),
        academic_year=academic_year,
    )


@router.post("", status_code=201)
async def create_grade(payload: dict):
    """Create (or re-enter) a grade. Any 'grade' sent by the client is ignored."""
    try:
        return grade_store.create_grade(payload, active_scheme())
    except GradeRecordError as exc:
        raise HTTPException(400, str(exc))


@router.post("/bulk")
async def create_bulk_grades(payload: dict):
    """Expects: { "grades": [ {...}, ... ] }"""
    grades = payload.get("grades")
    if not grades:
        raise HTTPException(400, "No grades provided.")
    return grade_store.create_bulk_grades(grades, active_scheme())


@router.post("/upload")
async def upload_grades(
    file: UploadFile = File(...),
    class_id: Optional[str] = Form(None),
    term: Optional[str] = Form(None),
    academic_year: Optional[str] = Form(None),
):
    """
    Import grades from a CSV or Excel sheet.
    Form fields fill in columns the sheet does not have.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in ALLOWED_UPLOADS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV or XLSX.")

    with tempfile.NamedTemporaryFile(delete=False, suffix=ext) as tmp:
        tmp.write(await file.read())
        tmp_path = tmp.name
    try:
        sheets = parse_upload(tmp_path)
    except ValueError as exc:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {exc}")
    finally:
        os.unlink(tmp_path)

    defaults = {"class_id": class_id, "term": term, "academic_year": academic_year}
    payloads = []
    for df in sheets.values():
        payloads.extend(records_from_dataframe(df, defaults=defaults))
    if not payloads:
        raise HTTPException(400, "No grade rows found in the uploaded file.")

    log.info("Importing %d grade rows from %s", len(payloads), file.filename)
    return grade_store.create_bulk_grades(payloads, active_scheme())


@router.put("/roster/{class_id}")
async def set_roster(class_id: str, payload: dict):
    """Expects: { "students": [ {"student_id", "name", "admission_number"}, ... ] }"""
    students = payload.get("students")
    if students is None:
        raise HTTPException(400, "Provide 'students'.")
    try:
        return roster.set_class_students(class_id, students)
    except GradeRecordError as exc:
        raise HTTPException(400, str(exc))


@router.get("/positions")
async def class_positions(
    class_id: str,
    term: str,
    academic_year: str,
    top_n: Optional[int] = None,
):
    """Ranked positions for a class/term/year; `top_n` trims to a podium."""
    term = normalize_term(term)
    records = grade_store.list_grades(class_id=class_id, term=term, academic_year=academic_year)
    return compute_class_positions(
        records,
        active_scheme(),
        class_id,
        term,
        academic_year,
        roster=roster.get_class_students(class_id),
        top_n=top_n,
    )


@router.get("/positions/{student_id}")
async def student_position(student_id: str, class_id: str, term: str, academic_year: str):
    """A single student's position looked up in the full class ranking."""
    term = normalize_term(term)
    records = grade_store.list_grades(class_id=class_id, term=term, academic_year=academic_year)
    ranking = compute_class_positions(
        records,
        active_scheme(),
        class_id,
        term,
        academic_year,
        roster=roster.get_class_students(class_id),
    )
    entry = find_position(ranking, student_id)
    if entry is None:
        raise HTTPException(404, f"No position for student '{student_id}' in this class/term.")
    return {
        **entry,
        "class_average": ranking["class_average"],
        "total_students": ranking["total_students"],
    }


@router.get("/statistics")
async def class_statistics(class_id: str, term: str, academic_year: str):
    term = normalize_term(term)
    scheme = active_scheme()
    records = grade_store.list_grades(class_id=class_id, term=term, academic_year=academic_year)
    result = compute_class_statistics(records, scheme, class_id, term, academic_year)
    aggregates = aggregate_class(
        records, scheme, class_id, term, academic_year,
        student_ids=list(roster.get_class_students(class_id).keys()),
    )
    result["students"] = compute_class_summary(aggregates, scheme)
    return result


@router.get("/{grade_id}")
async def get_grade(grade_id: str):
    try:
        return grade_store.get_grade(grade_id)
    except GradeNotFoundError:
        raise _not_found(grade_id)


@router.put("/{grade_id}")
async def update_grade(grade_id: str, payload: dict):
    try:
        return grade_store.update_grade(grade_id, payload, active_scheme())
    except GradeNotFoundError:
        raise _not_found(grade_id)
    except GradeRecordError as exc:
        raise HTTPException(400, str(exc))


@router.delete("/{grade_id}", status_code=204)
async def delete_grade(grade_id: str):
    try:
        grade_store.delete_grade(grade_id)
    except GradeNotFoundError:
        raise _not_found(grade_id)
