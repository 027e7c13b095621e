"""
stats.py — Class-level statistics for dashboards.

Computes:
- Per-subject stats (mean, median, std, highest/lowest, pass rate)
- Grade distribution in band order
- Student-level pass/fail summary from aggregates
"""

from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from core.aggregate import filter_records
from core.grading import grade_labels, resolve_grade


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Convert to float or return None."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else round(v, 2)
    except (TypeError, ValueError):
        return None


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _records_frame(records: List[Dict[str, Any]], scheme: Optional[Dict[str, Any]]) -> pd.DataFrame:
    """DataFrame of records with numeric marks and freshly resolved grades."""
    df = pd.DataFrame(records, columns=["student_id", "subject", "marks"]) if records else pd.DataFrame(
        columns=["student_id", "subject", "marks"]
    )
    df["marks"] = pd.to_numeric(df["marks"], errors="coerce").clip(0, 100)
    df = df.dropna(subset=["marks"])
    resolved = [resolve_grade(scheme, m) for m in df["marks"]]
    df["grade"] = [r["grade_name"] for r in resolved]
    df["is_passing"] = [r["is_passing"] for r in resolved]
    return df


# ── Class statistics ────────────────────────────────────────────────

def compute_class_statistics(
    records: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
    class_id: str,
    term: str,
    academic_year: str,
) -> Dict[str, Any]:
    """Subject-level and overall statistics for one class/term/year."""
    class_records = filter_records(records, class_id=class_id, term=term, academic_year=academic_year)
    df = _records_frame(class_records, scheme)

    distribution = {label: 0 for label in grade_labels(scheme)}
    for label, count in df["grade"].value_counts().items():
        distribution[label] = distribution.get(label, 0) + int(count)

    subjects = []
    for subject, group in df.groupby("subject", sort=True):
        marks = group["marks"]
        subjects.append({
            "subject": str(subject),
            "count": int(len(marks)),
            "mean": _safe_float(marks.mean()),
            "median": _safe_float(marks.median()),
            "std": _safe_float(marks.std()) if len(marks) > 1 else 0.0,
            "highest": _safe_float(marks.max()),
            "lowest": _safe_float(marks.min()),
            "pass_rate": _safe_float(group["is_passing"].mean() * 100),
        })

    total = len(df)
    return _sanitize({
        "class_id": class_id,
        "term": term,
        "academic_year": academic_year,
        "total_records": total,
        "total_students": int(df["student_id"].nunique()),
        "overall_mean": _safe_float(df["marks"].mean()) if total else None,
        "pass_rate": _safe_float(df["is_passing"].mean() * 100) if total else None,
        "subjects": subjects,
        "grade_distribution": distribution,
    })


def compute_class_summary(
    aggregates: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    """Student-level pass/fail counts; a student passes when their overall grade passes."""
    aggregates = list(aggregates)
    averages = np.array(
        [a["overall_average"] for a in aggregates if a.get("overall_average") is not None],
        dtype=float,
    )
    passing = int(sum(1 for avg in averages if resolve_grade(scheme, avg)["is_passing"]))
    graded = int(averages.size)
    return {
        "total_students": len(aggregates),
        "graded_students": graded,
        "ungraded_students": len(aggregates) - graded,
        "passing_students": passing,
        "failing_students": graded - passing,
        "pass_percentage": _safe_float(passing / graded * 100) if graded else 0.0,
        "highest_average": _safe_float(averages.max()) if graded else None,
        "lowest_average": _safe_float(averages.min()) if graded else None,
    }
