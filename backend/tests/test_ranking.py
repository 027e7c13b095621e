"""
Tests for core/ranking.py — class positions, tie policies and lookups.
"""

import importlib
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core import config, ranking
from core.ranking import (
    competition_positions,
    compute_class_positions,
    find_position,
    get_rank_label,
    rank_students,
    sequential_positions,
    top_positions,
    validate_policy,
)


def _agg(student_id, average, subjects=1, passed=1):
    return {
        "student_id": student_id,
        "overall_average": average,
        "total_marks": (average or 0) * subjects,
        "total_subjects": subjects,
        "passed_subjects": passed,
    }


@pytest.fixture
def tied_class():
    return [_agg("S1", 90), _agg("S2", 70), _agg("S3", 90)]


class TestPolicies:

    def test_sequential(self):
        assert sequential_positions([90, 90, 70]) == [1, 2, 3]

    def test_competition(self):
        assert competition_positions([90, 90, 70]) == [1, 1, 3]
        assert competition_positions([80, 70, 70, 70, 60]) == [1, 2, 2, 2, 5]

    def test_validate_policy(self):
        assert validate_policy(" Competition ") == "competition"
        assert validate_policy(None) == "sequential"
        with pytest.raises(ValueError, match="Unknown ranking policy"):
            validate_policy("alphabetical")

    def test_bad_configured_policy_fails_on_import(self, monkeypatch):
        monkeypatch.setattr(config, "RANKING_POLICY", "alphabetical")
        with pytest.raises(ValueError):
            importlib.reload(ranking)
        monkeypatch.undo()
        importlib.reload(ranking)


class TestRankStudents:

    def test_ties_get_sequential_positions(self, tied_class):
        result = rank_students(tied_class)
        assert [p["position"] for p in result["positions"]] == [1, 2, 3]
        assert [p["student_id"] for p in result["positions"]] == ["S1", "S3", "S2"]
        assert result["class_average"] == 83.33

    def test_competition_policy(self, tied_class):
        result = rank_students(tied_class, policy="competition")
        assert [p["position"] for p in result["positions"]] == [1, 1, 3]

    def test_distinct_averages(self):
        aggs = [_agg("A", 55.5), _agg("B", 91.0), _agg("C", 72.25), _agg("D", 60.0)]
        positions = rank_students(aggs)["positions"]
        assert [p["position"] for p in positions] == [1, 2, 3, 4]
        averages = [p["average_marks"] for p in positions]
        assert all(a > b for a, b in zip(averages, averages[1:]))

    def test_close_averages_are_not_tied(self):
        aggs = [_agg("LOW", 89.996), _agg("HIGH", 90.004)]
        sequential = rank_students(aggs)["positions"]
        assert [p["student_id"] for p in sequential] == ["HIGH", "LOW"]
        competition = rank_students(aggs, policy="competition")["positions"]
        assert [p["position"] for p in competition] == [1, 2]
        assert [p["average_marks"] for p in competition] == [90.0, 90.0]

    def test_empty(self):
        result = rank_students([])
        assert result["positions"] == []
        assert result["class_average"] is None

    def test_students_without_marks_unranked(self):
        result = rank_students([_agg("S1", 80), _agg("S2", None, passed=0)])
        assert [p["student_id"] for p in result["positions"]] == ["S1"]
        assert result["unranked"] == ["S2"]
        assert result["class_average"] == 80.0

    def test_roster_labels(self):
        roster = {"S1": {"name": "Amina Yusuf", "admission_number": "ADM-001"}}
        entry = rank_students([_agg("S1", 75)], roster=roster)["positions"][0]
        assert entry["student_name"] == "Amina Yusuf"
        assert entry["admission_number"] == "ADM-001"
        assert entry["position_label"] == "1st"

    def test_unknown_policy(self, tied_class):
        with pytest.raises(ValueError):
            rank_students(tied_class, policy="dense-ish")


class TestLookups:

    def test_top_positions(self, tied_class):
        ranking = rank_students(tied_class)
        assert len(top_positions(ranking, 2)) == 2
        assert len(top_positions(ranking)) == 3

    def test_find_position_beyond_podium(self, tied_class):
        ranking = rank_students(tied_class)
        assert find_position(ranking, "S2")["position"] == 3
        assert find_position(ranking, "nobody") is None


class TestRankLabel:

    @pytest.mark.parametrize("rank,label", [
        (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"),
        (12, "12th"), (13, "13th"), (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th"),
    ])
    def test_ordinals(self, rank, label):
        assert get_rank_label(rank) == label


class TestComputeClassPositions:

    @pytest.fixture
    def records(self):
        rows = [("S1", "Math", 90), ("S1", "English", 90), ("S2", "Math", 90),
                ("S2", "English", 90), ("S3", "Math", 60), ("S3", "English", 80)]
        return [
            {"student_id": s, "class_id": "7A", "subject": subj, "term": "Annual",
             "academic_year": "2024", "marks": m}
            for s, subj, m in rows
        ]

    def test_end_to_end(self, records):
        result = compute_class_positions(records, None, "7A", "Final", "2024")
        assert result["term"] == "Annual"
        assert [p["position"] for p in result["positions"]] == [1, 2, 3]
        assert result["class_average"] == 83.33
        assert result["total_students"] == 3
        assert result["positions"][2]["total_subjects"] == 2

    def test_top_n(self, records):
        result = compute_class_positions(records, None, "7A", "Annual", "2024", top_n=1)
        assert len(result["positions"]) == 1
        assert result["total_students"] == 3

    def test_roster_member_without_marks(self, records):
        roster = {"S4": {"name": "New Pupil"}, "S1": {"name": "First"}}
        result = compute_class_positions(records, None, "7A", "Annual", "2024", roster=roster)
        assert result["unranked"] == ["S4"]
        assert find_position(result, "S1")["student_name"] == "First"

    def test_no_grades(self):
        result = compute_class_positions([], None, "7A", "Annual", "2024")
        assert result["positions"] == []
        assert result["class_average"] is None
