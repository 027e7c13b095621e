"""
grading.py — Mark-to-grade resolution.

Every grade label in the system comes from `resolve_grade`. The scheme is
always passed in explicitly; when it is missing or empty the built-in
default ladder is used instead of raising.

Also holds the term helpers (alias normalisation and calendar ordering).
"""

import re
from typing import Any, Dict, List, Optional

from core.config import TERM_ALIASES


# Built-in fallback ladder (min_marks, label, gpa_value, is_passing).
# Ordered high to low.
DEFAULT_LADDER = [
    (90.0, "A+", 4.0, True),
    (80.0, "A", 3.7, True),
    (70.0, "B+", 3.3, True),
    (60.0, "B", 3.0, True),
    (50.0, "C+", 2.5, True),
    (40.0, "C", 2.0, False),
    (33.0, "D", 1.0, False),
    (0.0, "F", 0.0, False),
]
DEFAULT_PASS_MARK = 50.0


def clamp_marks(value: Any) -> Optional[float]:
    """Coerce to a float within [0, 100]; None for blanks and junk."""
    if value is None or isinstance(value, bool):
        return None
    try:
        marks = float(value)
    except (TypeError, ValueError):
        return None
    if marks != marks:  # NaN
        return None
    return max(0.0, min(100.0, marks))


def _order(criterion: Dict[str, Any], fallback: int) -> int:
    try:
        return int(criterion.get("display_order", fallback))
    except (TypeError, ValueError):
        return fallback


def _result(label: str, passing: bool, gpa: float, marks: Optional[float]) -> Dict[str, Any]:
    return {
        "grade_name": label,
        "is_passing": bool(passing),
        "gpa_value": float(gpa),
        "marks": marks,
    }


def _resolve_with_ladder(marks: float) -> Dict[str, Any]:
    for min_marks, label, gpa, passing in DEFAULT_LADDER:
        if marks >= min_marks:
            return _result(label, passing, gpa, marks)
    _, label, gpa, passing = DEFAULT_LADDER[-1]
    return _result(label, passing, gpa, marks)


def scheme_criteria(scheme: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Criteria of a scheme, or an empty list for a missing scheme."""
    if not scheme:
        return []
    return list(scheme.get("criteria") or [])


def resolve_grade(scheme: Optional[Dict[str, Any]], marks: Any) -> Dict[str, Any]:
    """
    Resolve marks to a grade under `scheme`.

    Criteria are tried highest `display_order` first; the first inclusive
    [min_marks, max_marks] range containing the marks wins. Marks in a gap
    fall back to the lowest band (lowest `display_order`).
    """
    value = clamp_marks(marks)
    if value is None:
        return _result("-", False, 0.0, None)

    criteria = scheme_criteria(scheme)
    if not criteria:
        return _resolve_with_ladder(value)

    indexed = [(c, _order(c, i)) for i, c in enumerate(criteria)]
    for criterion, _ in sorted(indexed, key=lambda item: item[1], reverse=True):
        if float(criterion["min_marks"]) <= value <= float(criterion["max_marks"]):
            return _result(
                str(criterion["grade_name"]),
                criterion.get("is_passing", False),
                criterion.get("gpa_value", 0.0),
                value,
            )

    lowest = min(indexed, key=lambda item: item[1])[0]
    return _result(
        str(lowest["grade_name"]),
        lowest.get("is_passing", False),
        lowest.get("gpa_value", 0.0),
        value,
    )


def get_grade_label(scheme: Optional[Dict[str, Any]], marks: Any) -> str:
    """Return the grade label string, e.g. 'A+'."""
    return resolve_grade(scheme, marks)["grade_name"]


def is_passing(scheme: Optional[Dict[str, Any]], marks: Any) -> bool:
    return resolve_grade(scheme, marks)["is_passing"]


def preview_grade(marks: Any, scheme: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Non-authoritative grade preview for interactive forms.

    The stored grade is always recomputed when a record is written.
    """
    preview = resolve_grade(scheme, marks)
    preview["authoritative"] = False
    return preview


def get_grade_thresholds(scheme: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Return the full grade scale for legend/reference, highest band first."""
    criteria = scheme_criteria(scheme)
    if not criteria:
        thresholds = []
        for idx, (min_marks, label, gpa, passing) in enumerate(DEFAULT_LADDER):
            max_marks = 100.0 if idx == 0 else DEFAULT_LADDER[idx - 1][0] - 0.01
            thresholds.append(
                {
                    "min": min_marks,
                    "max": round(max_marks, 2),
                    "label": label,
                    "gpa_value": gpa,
                    "is_passing": passing,
                }
            )
        return thresholds

    ordered = sorted(
        enumerate(criteria), key=lambda item: _order(item[1], item[0]), reverse=True
    )
    return [
        {
            "min": float(c["min_marks"]),
            "max": float(c["max_marks"]),
            "label": str(c["grade_name"]),
            "gpa_value": float(c.get("gpa_value", 0.0)),
            "is_passing": bool(c.get("is_passing", False)),
        }
        for _, c in ordered
    ]


def grade_labels(scheme: Optional[Dict[str, Any]] = None) -> List[str]:
    """Grade labels in band order, highest first."""
    return [t["label"] for t in get_grade_thresholds(scheme)]


# ── Terms ───────────────────────────────────────────────────────────

TERM_ORDER = ["First Term", "Second Term", "Third Term", "Annual"]


def normalize_term(term: Optional[str]) -> Optional[str]:
    """Map a display alias (e.g. 'Final') to its canonical stored name."""
    if term is None:
        return None
    value = str(term).strip()
    lowered = value.lower()
    for alias, canonical in TERM_ALIASES.items():
        if alias.lower() == lowered:
            return canonical
    return value


def display_term(term: Optional[str]) -> Optional[str]:
    """Map a canonical term back to its display alias, if it has one."""
    if term is None:
        return None
    value = str(term).strip()
    for alias, canonical in TERM_ALIASES.items():
        if canonical.lower() == value.lower():
            return alias
    return value


def sort_terms(term_list) -> List[str]:
    """Sort term labels in calendar order (First Term ... Annual)."""
    order = {t.lower(): i for i, t in enumerate(TERM_ORDER)}

    def key(term):
        t = normalize_term(term) or ""
        if t.lower() in order:
            return (0, order[t.lower()], t)
        nums = re.findall(r"\d+", t)
        if nums:
            return (1, int(nums[-1]), t)
        return (2, 0, t)

    return sorted(term_list, key=key)
