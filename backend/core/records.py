"""
records.py — Grade records, the in-memory grade store and class rosters.

`prepare_grade_record` is the only place a stored grade label is produced:
marks are clamped, the term is canonicalised and any client-supplied grade
is replaced by the resolver's output under the scheme active at write time.
"""

import copy
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.aggregate import filter_records
from core.grading import clamp_marks, normalize_term, resolve_grade
from core.logger import get_logger

log = get_logger("records")

REQUIRED_FIELDS = ("student_id", "class_id", "subject", "term", "academic_year")


class GradeRecordError(ValueError):
    """A grade payload is missing fields or has unusable marks."""


class GradeNotFoundError(KeyError):
    pass


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def prepare_grade_record(payload: Dict[str, Any], scheme: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate a grade payload and attach the authoritative grade."""
    missing = [f for f in REQUIRED_FIELDS if not str(payload.get(f) or "").strip()]
    if missing:
        raise GradeRecordError(f"Missing required field(s): {', '.join(missing)}")

    marks = clamp_marks(payload.get("marks"))
    if marks is None:
        raise GradeRecordError(f"Invalid marks value: {payload.get('marks')!r}")

    remarks = payload.get("remarks")
    return {
        "student_id": str(payload["student_id"]).strip(),
        "class_id": str(payload["class_id"]).strip(),
        "subject": str(payload["subject"]).strip(),
        "term": normalize_term(payload["term"]),
        "academic_year": str(payload["academic_year"]).strip(),
        "marks": marks,
        "grade": resolve_grade(scheme, marks)["grade_name"],
        "remarks": str(remarks).strip() if remarks not in (None, "") else None,
    }


def record_key(record: Dict[str, Any]) -> Tuple[str, str, str, str]:
    return (
        record["student_id"],
        record["subject"].lower(),
        record["term"],
        record["academic_year"],
    )


class GradeStore:
    """In-memory grade store, one record per (student, subject, term, year)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._grades: Dict[str, Dict[str, Any]] = {}
        self._keys: Dict[Tuple[str, str, str, str], str] = {}

    def create_grade(self, payload: Dict[str, Any], scheme: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Insert a grade, or update the existing one for the same key."""
        record = prepare_grade_record(payload, scheme)
        key = record_key(record)
        with self._lock:
            grade_id = self._keys.get(key)
            if grade_id is not None:
                stored = self._grades[grade_id]
                stored.update(record, updated_at=_now())
                log.info("Updated grade %s for %s/%s via re-entry", grade_id, record["student_id"], record["subject"])
            else:
                grade_id = str(uuid.uuid4())
                stored = {"id": grade_id, **record, "created_at": _now(), "updated_at": None}
                self._grades[grade_id] = stored
                self._keys[key] = grade_id
                log.info("Created grade %s for %s/%s", grade_id, record["student_id"], record["subject"])
            return copy.deepcopy(stored)

    def update_grade(
        self, grade_id: str, changes: Dict[str, Any], scheme: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Apply changes and recompute the grade under the current scheme."""
        with self._lock:
            stored = self._grades.get(grade_id)
            if stored is None:
                raise GradeNotFoundError(grade_id)
            merged = {**stored, **{k: v for k, v in changes.items() if v is not None}}
            record = prepare_grade_record(merged, scheme)
            old_key = record_key(stored)
            new_key = record_key(record)
            if new_key != old_key:
                if new_key in self._keys:
                    raise GradeRecordError(
                        "A grade already exists for this student, subject, term and year."
                    )
                del self._keys[old_key]
                self._keys[new_key] = grade_id
            stored.update(record, updated_at=_now())
            log.info("Updated grade %s (marks=%s, grade=%s)", grade_id, record["marks"], record["grade"])
            return copy.deepcopy(stored)

    def delete_grade(self, grade_id: str) -> None:
        with self._lock:
            stored = self._grades.pop(grade_id, None)
            if stored is None:
                raise GradeNotFoundError(grade_id)
            self._keys.pop(record_key(stored), None)
        log.info("Deleted grade %s", grade_id)

    def get_grade(self, grade_id: str) -> Dict[str, Any]:
        with self._lock:
            stored = self._grades.get(grade_id)
            if stored is None:
                raise GradeNotFoundError(grade_id)
            return copy.deepcopy(stored)

    def list_grades(
        self,
        class_id: Optional[str] = None,
        student_id: Optional[str] = None,
        term: Optional[str] = None,
        academic_year: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """A consistent snapshot of the matching records."""
        with self._lock:
            snapshot = copy.deepcopy(list(self._grades.values()))
        return filter_records(
            snapshot, class_id=class_id, student_id=student_id, term=term, academic_year=academic_year
        )

    def create_bulk_grades(
        self, payloads: List[Dict[str, Any]], scheme: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        grades = []
        errors = []
        for idx, payload in enumerate(payloads, 1):
            try:
                grades.append(self.create_grade(payload, scheme))
            except GradeRecordError as exc:
                errors.append(f"Row {idx}: {exc}")
        if errors:
            log.warning("Bulk grade entry: %d of %d rows rejected", len(errors), len(payloads))
        return {
            "message": f"Saved {len(grades)} of {len(payloads)} grades",
            "grades": grades,
            "success_count": len(grades),
            "total_count": len(payloads),
            "errors": errors,
        }


class Roster:
    """Class membership used to label positions and seed aggregates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._classes: Dict[str, "OrderedDict[str, Dict[str, Any]]"] = {}

    def set_class_students(self, class_id: str, students: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        members: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for s in students:
            sid = str(s.get("student_id") or s.get("id") or "").strip()
            if not sid:
                raise GradeRecordError("Each roster entry needs a student_id.")
            members[sid] = {
                "student_id": sid,
                "name": s.get("name") or s.get("student_name") or sid,
                "admission_number": s.get("admission_number") or "",
            }
        with self._lock:
            self._classes[class_id] = members
        return copy.deepcopy(dict(members))

    def get_class_students(self, class_id: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(dict(self._classes.get(class_id, {})))

    def get_student(self, student_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for members in self._classes.values():
                if student_id in members:
                    return copy.deepcopy(members[student_id])
        return None
