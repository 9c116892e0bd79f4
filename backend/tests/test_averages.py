"""
Tests for core/averages.py — per-subject averaging and the special-status override.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.averages import calculate_average, is_grade_value, subject_average
from core.models import SpecialStatus, SubjectGrade

COLLEGE_KEYS = ("period1", "period2", "period3")
ALL_KEYS = ("period1", "period2", "period3", "period4")


class TestCalculateAverage:
    """Tests for calculate_average."""

    def test_full_college_term(self):
        grade = SubjectGrade("Math", period1=85, period2=90, period3=95)
        assert calculate_average(grade, COLLEGE_KEYS) == (90.0, 3)

    def test_partial_term_ignores_missing(self):
        grade = SubjectGrade("Math", period1=85, period2=90)
        average, completed = calculate_average(grade, COLLEGE_KEYS)
        assert average == pytest.approx(87.5)
        assert completed == 2

    def test_missing_period_does_not_count_as_zero(self):
        grade = SubjectGrade("Science", period1=80, period3=90, period4=None)
        average, completed = calculate_average(grade, ALL_KEYS)
        assert average == pytest.approx(85.0)
        assert completed == 2

    def test_only_active_keys_are_read(self):
        grade = SubjectGrade("English", period1=70, period2=72, period3=90, period4=92)
        average, completed = calculate_average(grade, ("period3", "period4"))
        assert average == pytest.approx(91.0)
        assert completed == 2

    def test_nothing_graded(self):
        grade = SubjectGrade("PE")
        assert calculate_average(grade, ALL_KEYS) == (None, 0)

    @pytest.mark.parametrize("status", list(SpecialStatus))
    def test_special_status_overrides_grades(self, status):
        grade = SubjectGrade("PE", period1=90, period2=91, period3=92, special_status=status)
        assert calculate_average(grade, COLLEGE_KEYS) == (None, 0)

    def test_accepts_mapping(self):
        raw = {"period1": 80, "period2": "85", "period3": None}
        average, completed = calculate_average(raw, COLLEGE_KEYS)
        assert average == 80.0
        assert completed == 1

    def test_mapping_with_camel_case_status(self):
        raw = {"period1": 80, "specialStatus": "INC"}
        assert calculate_average(raw, COLLEGE_KEYS) == (None, 0)

    def test_completed_never_exceeds_active(self):
        grade = SubjectGrade("Math", period1=80, period2=81, period3=82, period4=83)
        _, completed = calculate_average(grade, ("period1", "period2"))
        assert completed == 2


class TestIsGradeValue:
    """Tests for is_grade_value."""

    def test_numbers(self):
        assert is_grade_value(0)
        assert is_grade_value(88.5)

    def test_non_numbers(self):
        assert not is_grade_value(None)
        assert not is_grade_value("90")
        assert not is_grade_value(True)
        assert not is_grade_value(float("nan"))
        assert not is_grade_value(float("inf"))


class TestSubjectAverage:
    """Tests for subject_average and SubjectAverage.standing."""

    def test_pass(self):
        avg = subject_average("m1", SubjectGrade("Math", 80, 80, 80), COLLEGE_KEYS)
        assert avg.standing == "pass"
        assert avg.subject_name == "Math"

    def test_exactly_passing_grade_passes(self):
        avg = subject_average("m1", SubjectGrade("Math", 75, 75, 75), COLLEGE_KEYS)
        assert avg.standing == "pass"

    def test_fail(self):
        avg = subject_average("m1", SubjectGrade("Math", 70, 74, 74), COLLEGE_KEYS)
        assert avg.standing == "fail"

    def test_pending_when_ungraded(self):
        avg = subject_average("m1", SubjectGrade("Math"), COLLEGE_KEYS)
        assert avg.standing == "pending"

    def test_pending_when_flagged(self):
        grade = SubjectGrade("Math", 95, 95, 95, special_status=SpecialStatus.W)
        avg = subject_average("m1", grade, COLLEGE_KEYS)
        assert avg.standing == "pending"
        assert avg.special_status is SpecialStatus.W

    def test_name_override(self):
        avg = subject_average("m1", SubjectGrade(""), COLLEGE_KEYS, subject_name="Catalog Name")
        assert avg.subject_name == "Catalog Name"

    def test_to_dict(self):
        avg = subject_average("m1", SubjectGrade("Math", 90), COLLEGE_KEYS)
        data = avg.to_dict()
        assert data["average"] == 90.0
        assert data["completed_periods"] == 1
        assert data["standing"] == "pass"
        assert data["special_status"] is None


class TestSpecialStatusNormalisation:
    """Status strings are trimmed and upper-cased; unknown ones are dropped."""

    def test_lowercase_status_on_record(self):
        grade = SubjectGrade("PE", 90, 90, 90, special_status=" inc ")
        assert grade.special_status is SpecialStatus.INC
        assert calculate_average(grade, COLLEGE_KEYS) == (None, 0)
        assert subject_average("pe", grade, COLLEGE_KEYS).standing == "pending"

    def test_blank_status_on_record(self):
        grade = SubjectGrade("PE", 90, 90, 90, special_status="")
        assert grade.special_status is None
        avg = subject_average("pe", grade, COLLEGE_KEYS)
        assert avg.average == 90.0
        assert avg.standing == "pass"

    def test_unknown_status_averages_normally(self):
        grade = SubjectGrade("PE", 70, 72, 74, special_status="DROPPED")
        avg = subject_average("pe", grade, COLLEGE_KEYS)
        assert avg.special_status is None
        assert avg.average == pytest.approx(72.0)
        assert avg.standing == "fail"

    def test_mapping_status_is_normalised(self):
        assert calculate_average({"period1": 80, "special_status": "fa"}, COLLEGE_KEYS) == (None, 0)
        assert calculate_average({"period1": 80, "special_status": "maybe"}, COLLEGE_KEYS) == (80.0, 1)

    def test_to_dict_with_normalised_status(self):
        grade = SubjectGrade("PE", special_status="w")
        assert grade.to_dict()["special_status"] == "W"
