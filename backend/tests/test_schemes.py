"""
Tests for core/schemes.py — scheme validation and the scheme registry.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.schemes import (
    DefaultSchemeDeletionError,
    DuplicateSchemeError,
    SchemeNotFoundError,
    SchemeRegistry,
    SchemeValidationError,
    normalize_criteria,
    validate_scheme,
)


def _criterion(name, lo, hi, order, gpa=2.0, passing=True):
    return {
        "grade_name": name, "min_marks": lo, "max_marks": hi,
        "gpa_value": gpa, "is_passing": passing, "display_order": order,
    }


@pytest.fixture
def valid_scheme():
    return {
        "name": "Standard",
        "description": "Pass / fail / distinction",
        "criteria": [
            _criterion("Fail", 0, 49, 0, gpa=0.0, passing=False),
            _criterion("Pass", 50, 79, 1),
            _criterion("Distinction", 80, 100, 2, gpa=4.0),
        ],
    }


class TestValidateScheme:

    def test_valid_scheme_passes(self, valid_scheme):
        validate_scheme(valid_scheme)

    def test_name_required(self, valid_scheme):
        valid_scheme["name"] = "  "
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert exc.value.field == "name"

    def test_criteria_required(self, valid_scheme):
        valid_scheme["criteria"] = []
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert exc.value.field == "criteria"

    def test_marks_out_of_bounds(self, valid_scheme):
        valid_scheme["criteria"][2]["max_marks"] = 101
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert exc.value.field == "max_marks"
        assert exc.value.criteria == ["Distinction"]

    def test_min_above_max(self, valid_scheme):
        valid_scheme["criteria"][1]["min_marks"] = 90
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert "Min marks cannot be greater" in exc.value.message

    def test_gpa_out_of_bounds(self, valid_scheme):
        valid_scheme["criteria"][0]["gpa_value"] = 4.5
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert exc.value.field == "gpa_value"

    def test_overlap_names_both_criteria(self):
        scheme = {"name": "Overlap", "criteria": [
            _criterion("C", 40, 60, 0),
            _criterion("B", 50, 70, 1),
        ]}
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(scheme)
        assert exc.value.field == "overlap"
        assert exc.value.criteria == ["C", "B"]

    def test_shared_boundary_is_overlap(self):
        scheme = {"name": "Touching", "criteria": [
            _criterion("Low", 0, 50, 0),
            _criterion("High", 50, 100, 1),
        ]}
        with pytest.raises(SchemeValidationError):
            validate_scheme(scheme)

    def test_gaps_are_allowed(self):
        scheme = {"name": "Gappy", "criteria": [
            _criterion("F", 0, 32, 0),
            _criterion("D", 33, 39, 1),
            _criterion("C", 40, 100, 2),
        ]}
        validate_scheme(scheme)

    def test_duplicate_grade_names(self, valid_scheme):
        valid_scheme["criteria"][2]["grade_name"] = "pass"
        with pytest.raises(SchemeValidationError) as exc:
            validate_scheme(valid_scheme)
        assert exc.value.field == "grade_name"

    def test_error_serialises(self):
        err = SchemeValidationError("Overlapping mark ranges: C and B", ["C", "B"], "overlap")
        assert err.to_dict() == {
            "message": "Overlapping mark ranges: C and B",
            "criteria": ["C", "B"],
            "field": "overlap",
        }


class TestNormalizeCriteria:

    def test_sorted_by_display_order(self):
        ordered = normalize_criteria([_criterion("B", 50, 100, 1), _criterion("A", 0, 49, 0)])
        assert [c["grade_name"] for c in ordered] == ["A", "B"]

    def test_missing_order_defaults_to_position(self):
        raw = [{"grade_name": "X", "min_marks": "0", "max_marks": "10", "gpa_value": "1"}]
        ordered = normalize_criteria(raw)
        assert ordered[0]["display_order"] == 0
        assert ordered[0]["min_marks"] == 0.0
        assert "display_order" not in raw[0]


class TestSchemeRegistry:

    def test_create_assigns_id(self, valid_scheme):
        registry = SchemeRegistry()
        created = registry.create_scheme(valid_scheme)
        assert created["id"]
        assert created["is_active"] is True
        assert registry.get_scheme(created["id"])["name"] == "Standard"

    def test_invalid_scheme_not_stored(self, valid_scheme):
        registry = SchemeRegistry()
        valid_scheme["name"] = ""
        with pytest.raises(SchemeValidationError):
            registry.create_scheme(valid_scheme)
        assert registry.list_schemes() == []

    def test_single_default(self, valid_scheme):
        registry = SchemeRegistry()
        first = registry.create_scheme({**valid_scheme, "is_default": True})
        second = registry.create_scheme({**valid_scheme, "name": "Other", "is_default": True})
        defaults = [s for s in registry.list_schemes() if s["is_default"]]
        assert [s["id"] for s in defaults] == [second["id"]]
        registry.set_default(first["id"])
        defaults = [s for s in registry.list_schemes() if s["is_default"]]
        assert [s["id"] for s in defaults] == [first["id"]]

    def test_update_to_default_clears_previous(self, valid_scheme):
        registry = SchemeRegistry()
        first = registry.create_scheme({**valid_scheme, "is_default": True})
        second = registry.create_scheme({**valid_scheme, "name": "Other"})
        registry.update_scheme(second["id"], {"is_default": True})
        assert registry.get_scheme(first["id"])["is_default"] is False
        assert registry.get_default_scheme()["id"] == second["id"]

    def test_cannot_delete_default(self, valid_scheme):
        registry = SchemeRegistry()
        scheme = registry.create_scheme({**valid_scheme, "is_default": True})
        with pytest.raises(DefaultSchemeDeletionError):
            registry.delete_scheme(scheme["id"])
        assert registry.get_scheme(scheme["id"])

    def test_duplicate_id_does_not_replace_default(self, valid_scheme):
        registry = SchemeRegistry()
        registry.create_scheme({**valid_scheme, "id": "s1", "is_default": True})
        with pytest.raises(DuplicateSchemeError):
            registry.create_scheme({**valid_scheme, "id": "s1", "name": "Other"})
        default = registry.get_default_scheme()
        assert default["id"] == "s1"
        assert default["name"] == valid_scheme["name"]
        assert len(registry.list_schemes()) == 1

    def test_delete_non_default(self, valid_scheme):
        registry = SchemeRegistry()
        scheme = registry.create_scheme(valid_scheme)
        registry.delete_scheme(scheme["id"])
        with pytest.raises(SchemeNotFoundError):
            registry.get_scheme(scheme["id"])

    def test_no_default_returns_none(self, valid_scheme):
        registry = SchemeRegistry()
        registry.create_scheme(valid_scheme)
        assert registry.get_default_scheme() is None

    def test_inactive_default_ignored(self, valid_scheme):
        registry = SchemeRegistry()
        registry.create_scheme({**valid_scheme, "is_default": True, "is_active": False})
        assert registry.get_default_scheme() is None

    def test_reads_are_copies(self, valid_scheme):
        registry = SchemeRegistry()
        scheme = registry.create_scheme({**valid_scheme, "is_default": True})
        fetched = registry.get_default_scheme()
        fetched["criteria"][0]["grade_name"] = "Changed"
        assert registry.get_scheme(scheme["id"])["criteria"][0]["grade_name"] == "Fail"

    def test_rejected_criteria_keep_previous(self, valid_scheme):
        registry = SchemeRegistry()
        scheme = registry.create_scheme(valid_scheme)
        with pytest.raises(SchemeValidationError):
            registry.update_criteria(scheme["id"], [_criterion("A", 0, 60, 0), _criterion("B", 60, 100, 1)])
        assert len(registry.get_scheme(scheme["id"])["criteria"]) == 3

    def test_update_criteria(self, valid_scheme):
        registry = SchemeRegistry()
        scheme = registry.create_scheme(valid_scheme)
        updated = registry.update_criteria(scheme["id"], [_criterion("Only", 0, 100, 0)])
        assert [c["grade_name"] for c in updated["criteria"]] == ["Only"]
        assert updated["updated_at"] is not None

    def test_list_filters_active(self, valid_scheme):
        registry = SchemeRegistry()
        registry.create_scheme(valid_scheme)
        registry.create_scheme({**valid_scheme, "name": "Old", "is_active": False})
        assert [s["name"] for s in registry.list_schemes(is_active=False)] == ["Old"]
        assert len(registry.list_schemes()) == 2
