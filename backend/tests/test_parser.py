"""
Tests for core/parser.py — grade documents, enrollment records and uploaded grade sheets.
"""

import os
import sys
import pytest
import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.models import SpecialStatus
from core.parser import (
    derive_semester_from_doc_id,
    parse_enrollment_context,
    parse_special_status,
    parse_student_bundles,
    parse_student_grades,
    parse_subject_grade,
    parse_upload,
    students_from_dataframe,
    suggest_column_mapping,
    to_number_or_null,
    validate_grade_sheet,
)

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_grades.csv")


@pytest.fixture
def sample_df():
    sheets = parse_upload(SAMPLE_CSV)
    return list(sheets.values())[0]


class TestToNumberOrNull:
    """Tests for to_number_or_null."""

    def test_numbers(self):
        assert to_number_or_null(90) == 90.0
        assert to_number_or_null(87.5) == 87.5

    def test_numeric_strings(self):
        assert to_number_or_null(" 88 ") == 88.0

    def test_non_numeric(self):
        assert to_number_or_null("") is None
        assert to_number_or_null("INC") is None
        assert to_number_or_null(None) is None
        assert to_number_or_null(True) is None
        assert to_number_or_null(float("nan")) is None
        assert to_number_or_null([90]) is None


class TestParseSubjectGrade:
    """Tests for parse_subject_grade and parse_special_status."""

    def test_camel_case_document_entry(self):
        grade = parse_subject_grade(
            {"subjectName": "Math", "period1": 90, "period2": "85", "specialStatus": None},
            subject_id="math-101",
        )
        assert grade.subject_name == "Math"
        assert grade.period1 == 90.0
        assert grade.period2 == 85.0
        assert grade.period3 is None
        assert grade.special_status is None
        assert grade.subject_id == "math-101"

    def test_snake_case_entry(self):
        grade = parse_subject_grade({"subject_name": "Science", "special_status": "inc"})
        assert grade.special_status is SpecialStatus.INC

    def test_unknown_status_ignored(self):
        assert parse_special_status("DROPPED") is None
        assert parse_special_status(3) is None

    def test_known_statuses(self):
        assert parse_special_status("FA") is SpecialStatus.FA
        assert parse_special_status(" fw ") is SpecialStatus.FW


class TestParseStudentGrades:
    """Tests for parse_student_grades."""

    def test_skips_metadata_fields(self):
        document = {
            "studentName": "Ana Reyes",
            "studentSection": "A",
            "createdAt": "2024-06-01",
            "s1": {"subjectName": "Math", "period1": 90},
            "s2": {"subjectName": "English", "period1": 85},
        }
        grades = parse_student_grades(document)
        assert set(grades) == {"s1", "s2"}
        assert grades["s1"].subject_id == "s1"

    def test_skips_non_mapping_values(self):
        grades = parse_student_grades({"s1": {"subjectName": "Math"}, "stray": 42})
        assert list(grades) == ["s1"]

    def test_none_document(self):
        assert parse_student_grades(None) == {}


class TestParseEnrollmentContext:
    """Tests for parse_enrollment_context."""

    def test_nested_enrollment_info(self):
        context = parse_enrollment_context(
            {"enrollmentInfo": {"level": "high-school", "department": "shs", "semester": "second-sem"}}
        )
        assert context.band == "senior"
        assert context.department == "SHS"
        assert context.semester == "second-sem"

    def test_flat_fields(self):
        context = parse_enrollment_context({"level": "College", "semester": "First Semester"})
        assert context.level == "college"
        assert context.semester == "first-sem"

    def test_grade_level_camel_case(self):
        context = parse_enrollment_context({"level": "high-school", "gradeLevel": "Grade 12"})
        assert context.band == "senior"

    def test_missing_level(self):
        assert parse_enrollment_context({"semester": "first-sem"}) is None
        assert parse_enrollment_context(None) is None


class TestDocIdHelpers:
    """Tests for derive_semester_from_doc_id and the enrollment fallback."""

    def test_semester(self):
        assert derive_semester_from_doc_id("AY2425_first_semester") == "first-sem"
        assert derive_semester_from_doc_id("AY2425_second_semester_transferee") == "second-sem"
        assert derive_semester_from_doc_id("AY2425") is None

    def test_non_string_doc_id(self):
        assert derive_semester_from_doc_id(2425) is None

    def test_enrollment_semester_from_doc_id(self):
        context = parse_enrollment_context(
            {"level": "high-school", "department": "SHS"}, "AY2425_second_semester"
        )
        assert context.semester == "second-sem"
        assert context.band == "senior"

    def test_explicit_semester_wins_over_doc_id(self):
        context = parse_enrollment_context(
            {"level": "college", "semester": "first-sem"}, "AY2425_second_semester"
        )
        assert context.semester == "first-sem"

    def test_bundle_ay_code(self):
        bundles = parse_student_bundles([
            {"studentId": "x1", "ayCode": "AY2425_second_semester", "enrollment": {"level": "college"}},
        ])
        assert bundles[0]["enrollment"].semester == "second-sem"


class TestParseUpload:
    """Tests for parse_upload and the grade sheet helpers."""

    def test_csv_returns_single_sheet(self):
        sheets = parse_upload(SAMPLE_CSV)
        assert list(sheets) == ["Sheet1"]

    def test_xlsx(self, tmp_path, sample_df):
        path = tmp_path / "grades.xlsx"
        sample_df.to_excel(path, index=False, engine="openpyxl")
        sheets = parse_upload(str(path))
        assert len(list(sheets.values())[0]) == len(sample_df)

    def test_corrupt_xlsx_raises_value_error(self, tmp_path):
        path = tmp_path / "grades.xlsx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(ValueError):
            parse_upload(str(path))

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "grades.txt"
        path.write_text("hello")
        with pytest.raises(ValueError):
            parse_upload(str(path))

    def test_column_mapping(self, sample_df):
        mapping = suggest_column_mapping(sample_df)
        assert mapping["student_id"] == "student_id"
        assert mapping["period4"] == "period4"
        assert mapping["special_status"] == "special_status"

    def test_column_aliases(self):
        df = pd.DataFrame(columns=["LRN", "Learner Name", "Subject", "Q1", "Q2", "Remarks"])
        mapping = suggest_column_mapping(df)
        assert mapping["student_id"] == "LRN"
        assert mapping["subject_name"] == "Subject"
        assert mapping["period1"] == "Q1"
        assert mapping["special_status"] == "Remarks"

    def test_sample_sheet_is_valid(self, sample_df):
        issues = validate_grade_sheet(sample_df)
        assert not any(i["severity"] == "critical" for i in issues)

    def test_missing_required_column_is_critical(self):
        df = pd.DataFrame({"name": ["A"], "q1": ["90"]})
        issues = validate_grade_sheet(df)
        assert issues[0]["severity"] == "critical"

    def test_invalid_and_out_of_range_scores(self):
        df = pd.DataFrame({
            "student_id": ["1", "2"],
            "subject_name": ["Math", "Math"],
            "period1": ["abc", "120"],
        })
        types = {i["type"] for i in validate_grade_sheet(df)}
        assert {"invalid_scores", "out_of_range"} <= types


class TestStudentsFromDataframe:
    """Tests for students_from_dataframe and parse_student_bundles."""

    def test_groups_rows_by_student(self, sample_df):
        students = students_from_dataframe(sample_df)
        assert len(students) == 7
        ana = students[0]
        assert ana["student_name"] == "Ana Reyes"
        assert ana["enrollment"].band == "college"
        assert set(ana["grades"]) == {"GE101", "GE102", "CS101", "PE101"}

    def test_blank_cells_become_none(self, sample_df):
        ana = students_from_dataframe(sample_df)[0]
        assert ana["grades"]["CS101"].period3 is None
        assert ana["grades"]["PE101"].special_status is SpecialStatus.INC

    def test_subject_id_falls_back_to_slug(self):
        df = pd.DataFrame({"student_id": ["1"], "subject_name": ["Earth Science"], "q1": ["90"]})
        students = students_from_dataframe(df)
        assert list(students[0]["grades"]) == ["earth-science"]
        assert students[0]["enrollment"] is None

    def test_missing_columns_raise(self):
        df = pd.DataFrame({"name": ["A"]})
        with pytest.raises(ValueError):
            students_from_dataframe(df)

    def test_json_bundles(self):
        bundles = parse_student_bundles([
            {
                "studentId": "x1",
                "studentName": "Ana",
                "enrollment": {"level": "college"},
                "grades": {"m": {"subjectName": "Math", "period1": 90}},
            },
            "not-a-student",
            {"grades": {}},
        ])
        assert len(bundles) == 2
        assert bundles[0]["student_id"] == "x1"
        assert bundles[0]["enrollment"].band == "college"
        assert bundles[1]["student_id"] == "student-3"
