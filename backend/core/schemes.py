"""
schemes.py — Grading scheme validation and the in-memory scheme registry.

Validation stops at the first failed check and names the offending
criteria so an admin can fix the exact rows. The registry enforces the
single-default invariant and hands out copies only.
"""

import copy
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.logger import get_logger

log = get_logger("schemes")

MIN_MARKS = 0.0
MAX_MARKS = 100.0
MAX_GPA = 4.0


class SchemeValidationError(ValueError):
    """A grading scheme definition is malformed."""

    def __init__(self, message: str, criteria: Optional[List[str]] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.criteria = criteria or []
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "criteria": self.criteria, "field": self.field}


class DefaultSchemeDeletionError(ValueError):
    """The default scheme cannot be deleted while it is the default."""


class DuplicateSchemeError(ValueError):
    """A scheme with the requested id already exists."""


class SchemeNotFoundError(KeyError):
    pass


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_criteria(criteria: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return coerced copies of the criteria sorted by display_order."""
    normalized = []
    for idx, c in enumerate(criteria or []):
        item = dict(c)
        item["grade_name"] = str(item.get("grade_name", "")).strip()
        for key in ("min_marks", "max_marks", "gpa_value"):
            num = _number(item.get(key))
            item[key] = num if num is not None else item.get(key)
        item["is_passing"] = bool(item.get("is_passing", False))
        try:
            item["display_order"] = int(item.get("display_order", idx))
        except (TypeError, ValueError):
            item["display_order"] = idx
        normalized.append(item)
    return sorted(normalized, key=lambda c: c["display_order"])


def validate_scheme(scheme: Dict[str, Any]) -> None:
    """Raise SchemeValidationError for the first problem found."""
    name = str(scheme.get("name") or "").strip()
    if not name:
        raise SchemeValidationError("Please enter a scheme name", field="name")

    criteria = scheme.get("criteria") or []
    if not criteria:
        raise SchemeValidationError("Please add at least one grading criterion", field="criteria")

    for i, c in enumerate(criteria, 1):
        label = str(c.get("grade_name") or "").strip()
        ref = [label] if label else []
        if not label:
            raise SchemeValidationError(f"Criterion {i}: Grade name is required", ref, "grade_name")

        min_marks = _number(c.get("min_marks"))
        max_marks = _number(c.get("max_marks"))
        gpa = _number(c.get("gpa_value"))
        if min_marks is None or max_marks is None:
            raise SchemeValidationError(f"Criterion {i} ({label}): Marks must be numbers", ref, "marks")
        if gpa is None:
            raise SchemeValidationError(f"Criterion {i} ({label}): GPA value must be a number", ref, "gpa_value")
        if not MIN_MARKS <= min_marks <= MAX_MARKS:
            raise SchemeValidationError(f"Criterion {i} ({label}): Min marks must be 0-100", ref, "min_marks")
        if not MIN_MARKS <= max_marks <= MAX_MARKS:
            raise SchemeValidationError(f"Criterion {i} ({label}): Max marks must be 0-100", ref, "max_marks")
        if min_marks > max_marks:
            raise SchemeValidationError(
                f"Criterion {i} ({label}): Min marks cannot be greater than max marks", ref, "min_marks"
            )
        if not 0.0 <= gpa <= MAX_GPA:
            raise SchemeValidationError(f"Criterion {i} ({label}): GPA value must be 0-4.0", ref, "gpa_value")

    seen: Dict[str, str] = {}
    for c in criteria:
        label = str(c["grade_name"]).strip()
        if label.lower() in seen:
            raise SchemeValidationError(
                f"Duplicate grade name: {label}", [seen[label.lower()], label], "grade_name"
            )
        seen[label.lower()] = label

    ordered = normalize_criteria(criteria)
    for current, following in zip(ordered, ordered[1:]):
        if current["max_marks"] >= following["min_marks"]:
            raise SchemeValidationError(
                f"Overlapping mark ranges: {current['grade_name']} and {following['grade_name']}",
                [current["grade_name"], following["grade_name"]],
                "overlap",
            )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SchemeRegistry:
    """In-memory grading scheme store. Reads return deep copies."""

    EDITABLE_FIELDS = ("name", "description", "is_active", "is_default")

    def __init__(self):
        self._lock = threading.Lock()
        self._schemes: Dict[str, Dict[str, Any]] = {}

    def _get(self, scheme_id: str) -> Dict[str, Any]:
        scheme = self._schemes.get(scheme_id)
        if scheme is None:
            raise SchemeNotFoundError(scheme_id)
        return scheme

    def _clear_default(self, keep_id: str):
        for sid, scheme in self._schemes.items():
            if sid != keep_id and scheme["is_default"]:
                scheme["is_default"] = False
                scheme["updated_at"] = _now()
                log.info("Scheme %s is no longer the default", sid)

    def create_scheme(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            validate_scheme(data)
        except SchemeValidationError as exc:
            log.warning("Rejected grading scheme %r: %s", data.get("name"), exc.message)
            raise

        scheme = {
            "id": str(data.get("id") or uuid.uuid4()),
            "name": str(data["name"]).strip(),
            "description": data.get("description") or "",
            "is_active": bool(data.get("is_active", True)),
            "is_default": bool(data.get("is_default", False)),
            "criteria": normalize_criteria(data["criteria"]),
            "created_at": _now(),
            "updated_at": None,
        }
        with self._lock:
            if scheme["id"] in self._schemes:
                raise DuplicateSchemeError(f"Grading scheme '{scheme['id']}' already exists.")
            self._schemes[scheme["id"]] = scheme
            if scheme["is_default"]:
                self._clear_default(scheme["id"])
        log.info("Created grading scheme %s (%s)", scheme["id"], scheme["name"])
        return copy.deepcopy(scheme)

    def update_scheme(self, scheme_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            scheme = self._get(scheme_id)
            candidate = dict(scheme)
            for key in self.EDITABLE_FIELDS:
                if key in data and data[key] is not None:
                    candidate[key] = data[key]
            candidate["name"] = str(candidate["name"]).strip()
            validate_scheme(candidate)

            scheme.update(
                name=candidate["name"],
                description=candidate.get("description") or "",
                is_active=bool(candidate["is_active"]),
                is_default=bool(candidate["is_default"]),
                updated_at=_now(),
            )
            if scheme["is_default"]:
                self._clear_default(scheme_id)
            return copy.deepcopy(scheme)

    def update_criteria(self, scheme_id: str, criteria: List[Dict[str, Any]]) -> Dict[str, Any]:
        with self._lock:
            scheme = self._get(scheme_id)
            try:
                validate_scheme({"name": scheme["name"], "criteria": criteria})
            except SchemeValidationError as exc:
                log.warning("Rejected criteria for scheme %s: %s", scheme_id, exc.message)
                raise
            scheme["criteria"] = normalize_criteria(criteria)
            scheme["updated_at"] = _now()
            return copy.deepcopy(scheme)

    def set_default(self, scheme_id: str) -> Dict[str, Any]:
        with self._lock:
            scheme = self._get(scheme_id)
            scheme["is_default"] = True
            scheme["updated_at"] = _now()
            self._clear_default(scheme_id)
            log.info("Scheme %s is now the default", scheme_id)
            return copy.deepcopy(scheme)

    def delete_scheme(self, scheme_id: str) -> None:
        with self._lock:
            scheme = self._get(scheme_id)
            if scheme["is_default"]:
                raise DefaultSchemeDeletionError(
                    f"Scheme '{scheme['name']}' is the default and cannot be deleted."
                )
            del self._schemes[scheme_id]
        log.info("Deleted grading scheme %s", scheme_id)

    def get_scheme(self, scheme_id: str) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._get(scheme_id))

    def list_schemes(self, is_active: Optional[bool] = None) -> List[Dict[str, Any]]:
        with self._lock:
            schemes = [
                s for s in self._schemes.values()
                if is_active is None or s["is_active"] == is_active
            ]
            return copy.deepcopy(schemes)

    def get_default_scheme(self) -> Optional[Dict[str, Any]]:
        """The active default scheme, or None (callers then use the default ladder)."""
        with self._lock:
            for scheme in self._schemes.values():
                if scheme["is_default"] and scheme["is_active"]:
                    return copy.deepcopy(scheme)
        return None
