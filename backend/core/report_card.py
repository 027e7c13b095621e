"""
report_card.py — Read-only report card view for one student.

Combines the student's aggregate, subject rows and (when a ranking is
supplied) the class position into plain data for rendering or export.
"""

from typing import Any, Dict, Iterable, List, Optional

from core.aggregate import aggregate_student
from core.grading import display_term, normalize_term, resolve_grade
from core.ranking import find_position, get_rank_label

NOT_AVAILABLE = "N/A"


def _teacher_remark(average: Optional[float], passing: bool) -> str:
    if average is None:
        return "No marks have been recorded for this term yet."
    if average >= 75:
        return "Excellent and consistent effort. Keep up the strong work across all subjects."
    if passing:
        return "Good progress. Continue steady revision to build on these results."
    return "Performance is below target. Close support and a structured improvement plan are recommended."


def build_report_card(
    student_id: str,
    class_id: str,
    term: str,
    academic_year: str,
    records: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
    positions: Optional[Dict[str, Any]] = None,
    student: Optional[Dict[str, Any]] = None,
    subjects: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Assemble a student's report card.

    `positions` is a ranking as returned by `rank_students` or
    `compute_class_positions`; when given, the student's rank and the class
    average are included.
    """
    term = normalize_term(term)
    student = student or {}
    aggregate = aggregate_student(
        student_id, records, scheme, class_id, term, academic_year, subjects=subjects
    )

    rows = [
        {
            "subject": subject,
            "marks": round(rec["marks"], 2),
            "grade": rec["grade"],
            "gpa_value": rec["gpa_value"],
            "is_passing": rec["is_passing"],
            "remarks": rec.get("remarks") or "",
        }
        for subject, rec in sorted(aggregate["grades"].items())
    ]

    average = aggregate["overall_average"]
    if average is None:
        summary = {
            "overall_average": NOT_AVAILABLE,
            "overall_grade": NOT_AVAILABLE,
            "gpa": NOT_AVAILABLE,
            "is_passing": False,
        }
    else:
        overall = resolve_grade(scheme, average)
        summary = {
            "overall_average": round(average, 2),
            "overall_grade": overall["grade_name"],
            "gpa": round(sum(r["gpa_value"] for r in rows) / len(rows), 2),
            "is_passing": overall["is_passing"],
        }
    summary.update(
        total_marks=round(aggregate["total_marks"], 2),
        passed_subjects=aggregate["passed_subjects"],
        total_subjects=aggregate["total_subjects"],
        pass_ratio=f"{aggregate['passed_subjects']}/{aggregate['total_subjects']}",
    )

    rank = None
    if positions is not None:
        entry = find_position(positions, student_id)
        if entry is not None:
            rank = {
                "position": entry["position"],
                "position_label": entry.get("position_label") or get_rank_label(entry["position"]),
                "out_of": positions.get("total_students", len(positions["positions"])),
                "class_average": positions.get("class_average"),
            }

    return {
        "student_id": student_id,
        "student_name": student.get("name") or student.get("student_name") or student_id,
        "admission_number": student.get("admission_number") or "",
        "class_id": class_id,
        "term": term,
        "term_display": display_term(term),
        "academic_year": academic_year,
        "subjects": rows,
        "summary": summary,
        "rank": rank,
        "remark": _teacher_remark(average, summary["is_passing"]),
    }
