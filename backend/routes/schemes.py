"""
Grading scheme routes — admin CRUD, default switching and grade preview.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException

from core.grading import get_grade_thresholds, preview_grade
from core.schemes import (
    DefaultSchemeDeletionError,
    DuplicateSchemeError,
    SchemeNotFoundError,
    SchemeValidationError,
)
from routes.deps import active_scheme, scheme_registry

router = APIRouter()


def _not_found(scheme_id: str):
    return HTTPException(404, f"Grading scheme '{scheme_id}' not found.")


@router.get("")
async def list_schemes(is_active: Optional[bool] = None):
    return scheme_registry.list_schemes(is_active=is_active)


@router.post("", status_code=201)
async def create_scheme(payload: dict):
    try:
        return scheme_registry.create_scheme(payload)
    except SchemeValidationError as exc:
        raise HTTPException(400, exc.to_dict())
    except DuplicateSchemeError as exc:
        raise HTTPException(409, str(exc))


@router.get("/default")
async def default_scheme():
    """The active default scheme, or the built-in ladder when none is set."""
    scheme = active_scheme()
    if scheme is None:
        return {
            "id": None,
            "name": "Built-in default",
            "is_default": True,
            "is_builtin": True,
            "thresholds": get_grade_thresholds(None),
        }
    scheme["thresholds"] = get_grade_thresholds(scheme)
    return scheme


@router.post("/preview")
async def preview(payload: dict):
    """
    Preview the grade for a mark while the user is typing.
    Expects: { "marks": 72, "scheme_id": optional }
    """
    if "marks" not in payload:
        raise HTTPException(400, "Provide 'marks'.")
    scheme_id = payload.get("scheme_id")
    if scheme_id:
        try:
            scheme = scheme_registry.get_scheme(scheme_id)
        except SchemeNotFoundError:
            raise _not_found(scheme_id)
    else:
        scheme = active_scheme()
    return preview_grade(payload["marks"], scheme)


@router.get("/{scheme_id}")
async def get_scheme(scheme_id: str):
    try:
        return scheme_registry.get_scheme(scheme_id)
    except SchemeNotFoundError:
        raise _not_found(scheme_id)


@router.put("/{scheme_id}")
async def update_scheme(scheme_id: str, payload: dict):
    try:
        return scheme_registry.update_scheme(scheme_id, payload)
    except SchemeNotFoundError:
        raise _not_found(scheme_id)
    except SchemeValidationError as exc:
        raise HTTPException(400, exc.to_dict())


@router.put("/{scheme_id}/criteria")
async def update_criteria(scheme_id: str, payload: dict):
    """Expects: { "criteria": [...] }"""
    criteria = payload.get("criteria")
    if criteria is None:
        raise HTTPException(400, "Provide 'criteria'.")
    try:
        return scheme_registry.update_criteria(scheme_id, criteria)
    except SchemeNotFoundError:
        raise _not_found(scheme_id)
    except SchemeValidationError as exc:
        raise HTTPException(400, exc.to_dict())


@router.post("/{scheme_id}/default")
async def make_default(scheme_id: str):
    try:
        return scheme_registry.set_default(scheme_id)
    except SchemeNotFoundError:
        raise _not_found(scheme_id)


@router.delete("/{scheme_id}", status_code=204)
async def delete_scheme(scheme_id: str):
    try:
        scheme_registry.delete_scheme(scheme_id)
    except SchemeNotFoundError:
        raise _not_found(scheme_id)
    except DefaultSchemeDeletionError as exc:
        raise HTTPException(409, str(exc))
