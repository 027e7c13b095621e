"""
aggregate.py — Per-student summaries for one class/term/year.

Computes:
- expected subject set for a class/term (denominator for pass ratios)
- per-student overall average, totals, passed/total subject counts
"""

from typing import Any, Dict, Iterable, List, Optional

from core.grading import clamp_marks, normalize_term, resolve_grade


def _matches(value: Any, wanted: Optional[str]) -> bool:
    return wanted is None or str(value).strip() == str(wanted).strip()


def filter_records(
    records: Iterable[Dict[str, Any]],
    class_id: Optional[str] = None,
    student_id: Optional[str] = None,
    term: Optional[str] = None,
    academic_year: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Keep records matching every filter that is not None."""
    term = normalize_term(term)
    return [
        r for r in records
        if _matches(r.get("class_id"), class_id)
        and _matches(r.get("student_id"), student_id)
        and _matches(normalize_term(r.get("term")), term)
        and _matches(r.get("academic_year"), academic_year)
    ]


def expected_subjects(
    records: Iterable[Dict[str, Any]],
    class_id: str,
    term: str,
    academic_year: str,
) -> List[str]:
    """Union of subjects graded for anyone in the class for the term/year."""
    class_records = filter_records(records, class_id=class_id, term=term, academic_year=academic_year)
    return sorted({str(r["subject"]).strip() for r in class_records})


def aggregate_student(
    student_id: str,
    records: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
    class_id: str,
    term: str,
    academic_year: str,
    subjects: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Summarise one student's grades.

    `total_subjects` counts the subjects expected for the class, so a missing
    subject deflates the pass ratio. `overall_average` averages recorded marks
    only and is None when nothing is recorded.
    """
    records = list(records)
    if subjects is None:
        subjects = expected_subjects(records, class_id, term, academic_year)

    own = filter_records(
        records, class_id=class_id, student_id=student_id, term=term, academic_year=academic_year
    )

    grades: Dict[str, Dict[str, Any]] = {}
    marks: List[float] = []
    passed = 0
    for record in own:
        value = clamp_marks(record.get("marks"))
        if value is None:
            continue
        resolved = resolve_grade(scheme, value)
        subject = str(record["subject"]).strip()
        grades[subject] = {
            **record,
            "subject": subject,
            "marks": value,
            "grade": resolved["grade_name"],
            "gpa_value": resolved["gpa_value"],
            "is_passing": resolved["is_passing"],
        }
        marks.append(value)
        if resolved["is_passing"]:
            passed += 1

    total_subjects = len(set(subjects) | set(grades))
    return {
        "student_id": student_id,
        "class_id": class_id,
        "term": normalize_term(term),
        "academic_year": academic_year,
        "grades": grades,
        "overall_average": sum(marks) / len(marks) if marks else None,
        "total_marks": sum(marks),
        "total_subjects": total_subjects,
        "passed_subjects": passed,
    }


def aggregate_class(
    records: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
    class_id: str,
    term: str,
    academic_year: str,
    student_ids: Optional[List[str]] = None,
    subjects: Optional[List[str]] = None,
) -> List[Dict[str, Any]]:
    """Aggregates for the roster (in roster order) plus anyone else with grades."""
    records = list(records)
    class_records = filter_records(records, class_id=class_id, term=term, academic_year=academic_year)
    if subjects is None:
        subjects = expected_subjects(class_records, class_id, term, academic_year)

    ordered: List[str] = []
    for sid in list(student_ids or []) + [str(r["student_id"]) for r in class_records]:
        if sid not in ordered:
            ordered.append(sid)

    return [
        aggregate_student(sid, class_records, scheme, class_id, term, academic_year, subjects=subjects)
        for sid in ordered
    ]
