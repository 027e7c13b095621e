"""
ranking.py — Class positions for a class/term/year.

Tie handling lives in one place: the policy functions below take averages
already sorted high to low and return the matching positions. Sequential
numbering is the default (equal averages still get distinct positions in
input order); competition ranking is available through RANKING_POLICY.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional

from core.aggregate import aggregate_class
from core.config import PODIUM_SIZE, RANKING_POLICY
from core.grading import normalize_term


def sequential_positions(averages: List[float]) -> List[int]:
    """1, 2, 3, ... regardless of ties."""
    return list(range(1, len(averages) + 1))


def competition_positions(averages: List[float]) -> List[int]:
    """Standard competition ranking: equal averages share, the next skips (1, 1, 3)."""
    positions: List[int] = []
    for idx, avg in enumerate(averages):
        if idx > 0 and avg == averages[idx - 1]:
            positions.append(positions[-1])
        else:
            positions.append(idx + 1)
    return positions


RANKING_POLICIES: Dict[str, Callable[[List[float]], List[int]]] = {
    "sequential": sequential_positions,
    "competition": competition_positions,
}


def validate_policy(name: Optional[str]) -> str:
    """Normalised policy key; ValueError for names not in RANKING_POLICIES."""
    key = (name or "sequential").strip().lower()
    if key not in RANKING_POLICIES:
        raise ValueError(f"Unknown ranking policy: {name}. Available: {sorted(RANKING_POLICIES)}")
    return key


def get_policy(name: Optional[str] = None) -> Callable[[List[float]], List[int]]:
    return RANKING_POLICIES[validate_policy(name or RANKING_POLICY)]


# Fail at startup on a bad RANKING_POLICY rather than on every request.
validate_policy(RANKING_POLICY)


def get_rank_label(rank: int) -> str:
    """Convert a rank number to an ordinal label (1st, 2nd, 11th, 22nd)."""
    if 10 <= rank % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(rank % 10, "th")
    return f"{rank}{suffix}"


def rank_students(
    aggregates: Iterable[Dict[str, Any]],
    roster: Optional[Dict[str, Dict[str, Any]]] = None,
    policy: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Order students by overall average and assign positions.

    Students without any marks are left out of the positions and the class
    average and are listed under `unranked`. An empty input gives an empty
    list and a None class average.
    """
    roster = roster or {}
    assign = get_policy(policy)

    graded = []
    unranked = []
    for agg in aggregates:
        if agg.get("overall_average") is None:
            unranked.append(agg["student_id"])
        else:
            graded.append(agg)

    class_average = (
        sum(a["overall_average"] for a in graded) / len(graded) if graded else None
    )

    ordered = sorted(graded, key=lambda a: a["overall_average"], reverse=True)
    averages = [a["overall_average"] for a in ordered]

    positions = []
    for agg, average, position in zip(ordered, averages, assign(averages)):
        student = roster.get(agg["student_id"], {})
        positions.append({
            "student_id": agg["student_id"],
            "student_name": student.get("name") or student.get("student_name") or agg["student_id"],
            "admission_number": student.get("admission_number") or "",
            "average_marks": round(average, 2),
            "total_marks": round(agg.get("total_marks", 0.0), 2),
            "position": position,
            "position_label": get_rank_label(position),
            "total_subjects": agg["total_subjects"],
            "passed_subjects": agg["passed_subjects"],
        })

    return {
        "positions": positions,
        "class_average": round(class_average, 2) if class_average is not None else None,
        "unranked": unranked,
    }


def top_positions(ranking: Dict[str, Any], n: Optional[int] = None) -> List[Dict[str, Any]]:
    """Podium slice of a ranking (first `n` entries, PODIUM_SIZE by default)."""
    n = PODIUM_SIZE if n is None else n
    return ranking["positions"][:max(n, 0)]


def find_position(ranking: Dict[str, Any], student_id: str) -> Optional[Dict[str, Any]]:
    """Look a student up in the full ranking."""
    for entry in ranking["positions"]:
        if str(entry["student_id"]) == str(student_id):
            return entry
    return None


def compute_class_positions(
    records: Iterable[Dict[str, Any]],
    scheme: Optional[Dict[str, Any]],
    class_id: str,
    term: str,
    academic_year: str,
    roster: Optional[Dict[str, Dict[str, Any]]] = None,
    top_n: Optional[int] = None,
    policy: Optional[str] = None,
) -> Dict[str, Any]:
    """Aggregate and rank a whole class; optionally trim to the top `top_n`."""
    term = normalize_term(term)
    aggregates = aggregate_class(
        records, scheme, class_id, term, academic_year,
        student_ids=list((roster or {}).keys()),
    )
    ranking = rank_students(aggregates, roster=roster, policy=policy)
    positions = ranking["positions"] if top_n is None else top_positions(ranking, top_n)
    return {
        "class_id": class_id,
        "term": term,
        "academic_year": academic_year,
        "positions": positions,
        "class_average": ranking["class_average"],
        "total_students": len(ranking["positions"]),
        "unranked": ranking["unranked"],
    }
