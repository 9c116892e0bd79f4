"""
Tests for core/transferee.py — transferee form validation and record building.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.transferee import (
    TransfereeValidationError,
    build_transferee_record,
    format_ay_code,
    preview_transferee_record,
    validate_transferee_form,
)


def _form(**overrides):
    form = {
        "level_type": "college",
        "ay_code": "ay2324",
        "semester": "first-sem",
        "student_level_label": "2nd Year",
        "subjects": [
            {"name": "Calculus 1", "code": "MATH101", "college_average": 1.5},
            {"name": "Physics 1", "college_average": 2.5},
        ],
    }
    form.update(overrides)
    return form


class TestFormatAyCode:
    """Tests for format_ay_code."""

    def test_college_first_sem(self):
        assert format_ay_code("ay2324", "first-sem", "college") == "AY2324_first_semester_transferee"

    def test_shs_second_sem(self):
        assert format_ay_code("AY2324", "second-sem", "shs") == "AY2324_second_semester_transferee"

    def test_jhs_has_no_semester(self):
        assert format_ay_code("AY2324", "first-sem", "jhs") == "AY2324_transferee"

    def test_blank(self):
        assert format_ay_code("  ", "first-sem", "college") == ""


class TestValidateTransfereeForm:
    """Tests for validate_transferee_form."""

    def test_valid_form(self):
        assert validate_transferee_form(_form()) == {}

    def test_missing_fields(self):
        errors = validate_transferee_form({"level_type": "college"})
        assert {"ay_code", "semester", "student_level_label", "subjects"} <= set(errors)

    def test_bad_level_type(self):
        assert "level_type" in validate_transferee_form(_form(level_type="elementary"))

    def test_duplicate_ay_code(self):
        errors = validate_transferee_form(_form(), ["AY2324_first_semester_transferee"])
        assert "ay_code" in errors

    def test_same_year_other_semester_is_allowed(self):
        assert validate_transferee_form(_form(), ["AY2324_second_semester_transferee"]) == {}

    def test_jhs_needs_no_semester(self):
        form = _form(level_type="jhs", semester=None, subjects=[{"name": "Math", "period1": 80}])
        assert validate_transferee_form(form) == {}

    def test_subject_needs_name(self):
        errors = validate_transferee_form(_form(subjects=[{"code": "X1"}]))
        assert "subjects" in errors


class TestBuildTransfereeRecord:
    """Tests for build_transferee_record and preview_transferee_record."""

    def test_college_point_converted_to_percentage(self):
        record = build_transferee_record(_form())
        assert record["ay_code"] == "AY2324_first_semester_transferee"
        calc = record["document"]["transferee-1"]
        assert calc["subjectName"] == "Calculus 1"
        assert calc["subjectCode"] == "MATH101"
        assert calc["period1"] == calc["period2"] == calc["period3"] == 92.0
        assert calc["period4"] is None

    def test_metadata(self):
        document = build_transferee_record(_form())["document"]
        assert document["transfereeRecord"] is True
        assert document["recordSource"] == "transferee-manual"
        assert document["recordSemesterLabel"] == "First Semester"

    def test_shs_second_sem_uses_last_quarters(self):
        form = _form(
            level_type="shs",
            semester="second-sem",
            subjects=[{"name": "Oral Communication", "period1": 88, "period2": 90}],
        )
        entry = build_transferee_record(form)["document"]["transferee-1"]
        assert entry["period1"] is None
        assert entry["period3"] == 88.0
        assert entry["period4"] == 90.0

    def test_jhs_full_year(self):
        form = _form(
            level_type="jhs",
            semester=None,
            subjects=[{"name": "Science", "period1": 80, "period2": 82, "period3": 84, "period4": 86}],
        )
        document = build_transferee_record(form)["document"]
        assert document["recordSemesterLabel"] == "Full Year"
        assert document["transferee-1"]["period4"] == 86.0

    def test_special_status_kept(self):
        form = _form(subjects=[{"name": "PE", "college_average": 1.0, "special_status": "inc"}])
        entry = build_transferee_record(form)["document"]["transferee-1"]
        assert entry["specialStatus"] == "INC"

    def test_invalid_form_raises(self):
        with pytest.raises(TransfereeValidationError) as exc:
            build_transferee_record({"level_type": "college"})
        assert "ay_code" in exc.value.errors

    def test_preview_computes_averages(self):
        preview = preview_transferee_record(_form())
        analytics = preview["analytics"]
        assert analytics["band"] == "college"
        assert analytics["overall_average"] == pytest.approx((92.0 + 80.0) / 2)
        assert analytics["gwa"] == pytest.approx((1.5 + 2.5) / 2)

    def test_preview_shs_second_sem(self):
        form = _form(
            level_type="shs",
            semester="second-sem",
            subjects=[{"name": "Oral Communication", "period1": 88, "period2": 90}],
        )
        analytics = preview_transferee_record(form)["analytics"]
        assert analytics["overall_average"] == pytest.approx(89.0)
