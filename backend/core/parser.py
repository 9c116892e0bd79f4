"""
parser.py — Raw grade input -> typed records.

Supports:
- Grade documents as stored per student / academic year (subject id -> grade)
- Enrollment records (nested enrollmentInfo or a flat context)
- Grade sheets uploaded as CSV, Excel (.xlsx, .xls) or ODS, long format
  (one row per student-subject), with fuzzy column name mapping

Everything downstream works on SubjectGrade / EnrollmentContext only; the
numeric and status checks happen here, once.
"""

import logging
import math
import re
import zipfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from core.models import EnrollmentContext, SpecialStatus, SubjectGrade, coerce_special_status
from core.periods import normalize_semester

logger = logging.getLogger(__name__)

SAMPLE_DATA_DIR = Path(__file__).parent.parent / "sample_data"

# Non-grade fields stored alongside subjects in a grade document.
METADATA_FIELDS = frozenset({
    "studentName",
    "studentOfficialId",
    "studentSection",
    "studentLevel",
    "studentSemester",
    "createdAt",
    "updatedAt",
    "transfereeRecord",
    "recordSource",
    "recordNotes",
    "recordLevelType",
    "recordSemesterLabel",
    "ayDisplayLabel",
})

# Common column name variations for grade sheets
COLUMN_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "id", "user_id", "userid",
        "student_number", "student number", "student_no", "lrn",
    ],
    "student_name": [
        "student_name", "student name", "name", "full_name", "full name",
        "learner_name", "learner name",
    ],
    "level": ["level", "education_level", "education level"],
    "department": ["department", "dept"],
    "grade_level": ["grade_level", "grade level", "grade", "year_level", "year level"],
    "semester": ["semester", "sem", "term"],
    "subject_id": ["subject_id", "subjectid", "subject id"],
    "subject_code": ["subject_code", "subject code", "code"],
    "subject_name": ["subject_name", "subject name", "subject", "course"],
    "period1": ["period1", "period_1", "q1", "quarter 1", "prelim"],
    "period2": ["period2", "period_2", "q2", "quarter 2", "midterm"],
    "period3": ["period3", "period_3", "q3", "quarter 3", "finals", "final"],
    "period4": ["period4", "period_4", "q4", "quarter 4"],
    "special_status": ["special_status", "specialstatus", "special status", "status", "remarks"],
}

REQUIRED_SHEET_FIELDS = ("student_id", "subject_name")

# Raised by the Excel/ODS engines for corrupt or mislabelled files.
SPREADSHEET_READ_ERRORS = (zipfile.BadZipFile, InvalidFileException, XLRDError, KeyError)


# ── Scalars ─────────────────────────────────────────────────────────

def to_number_or_null(value: Any) -> Optional[float]:
    """Finite numbers and numeric strings pass; anything else is None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_special_status(value: Any) -> Optional[SpecialStatus]:
    return coerce_special_status(value)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    return text


def _pick(raw: Mapping, *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


# ── Grade documents ─────────────────────────────────────────────────

def parse_subject_grade(raw: Mapping, subject_id: Optional[str] = None) -> SubjectGrade:
    """Build a SubjectGrade from a camelCase or snake_case record."""
    return SubjectGrade(
        subject_name=_text(_pick(raw, "subjectName", "subject_name")) or "",
        period1=to_number_or_null(raw.get("period1")),
        period2=to_number_or_null(raw.get("period2")),
        period3=to_number_or_null(raw.get("period3")),
        period4=to_number_or_null(raw.get("period4")),
        special_status=parse_special_status(_pick(raw, "specialStatus", "special_status")),
        subject_id=subject_id or _text(_pick(raw, "subjectId", "subject_id")),
        subject_code=_text(_pick(raw, "subjectCode", "subject_code")),
    )


def parse_student_grades(document: Optional[Mapping]) -> Dict[str, SubjectGrade]:
    """Grade document (subject id -> raw grade) minus metadata fields."""
    grades: Dict[str, SubjectGrade] = {}
    if not isinstance(document, Mapping):
        return grades
    for key, raw in document.items():
        if key in METADATA_FIELDS:
            continue
        if not isinstance(raw, Mapping):
            logger.debug("Skipping non-grade field %r in grade document", key)
            continue
        grades[str(key)] = parse_subject_grade(raw, subject_id=str(key))
    return grades


def parse_enrollment_context(raw: Optional[Mapping], doc_id: Optional[str] = None) -> Optional[EnrollmentContext]:
    """Accepts {enrollmentInfo: {...}} as stored, or the flat fields.

    When the record carries no semester, the grade document id
    (e.g. AY2425_second_semester) supplies it.
    """
    if not isinstance(raw, Mapping):
        return None
    info = raw.get("enrollmentInfo") or raw.get("enrollment_info") or raw
    if not isinstance(info, Mapping):
        return None
    level = _text(info.get("level"))
    if level is None:
        return None
    department = _text(info.get("department"))
    return EnrollmentContext(
        level=level.lower(),
        department=department.upper() if department else None,
        semester=normalize_semester(_text(info.get("semester"))) or derive_semester_from_doc_id(doc_id),
        grade_level=_text(_pick(info, "gradeLevel", "grade_level")),
    )


def derive_semester_from_doc_id(doc_id: Optional[str]) -> Optional[str]:
    """'AY2425_first_semester' -> 'first-sem'."""
    if not isinstance(doc_id, str) or not doc_id:
        return None
    if "first_semester" in doc_id:
        return "first-sem"
    if "second_semester" in doc_id:
        return "second-sem"
    return None


# ── Grade sheets ────────────────────────────────────────────────────

def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded grade sheet and return {sheet_name: DataFrame}.
    CSV files come back as {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    if ext in (".xlsx", ".xls", ".ods"):
        engine = {".xlsx": "openpyxl", ".xls": "xlrd", ".ods": "odf"}[ext]
        sheets = {}
        try:
            xls = pd.ExcelFile(file_path, engine=engine)
            for sheet_name in xls.sheet_names:
                df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
                # Skip empty sheets
                if not df.empty and len(df.columns) > 1:
                    sheets[sheet_name] = df
        except SPREADSHEET_READ_ERRORS as e:
            logger.warning("Unreadable %s file %s: %r", ext, path.name, e)
            raise ValueError(f"The {ext} file is corrupt or not a valid spreadsheet.") from e
        if not sheets:
            raise ValueError(f"No valid sheets found in the {ext} file.")
        return sheets

    raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Map expected field names to actual column names.
    Returns: { expected_field: actual_column_name_or_None }
    """
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}
    used = set()
    for field, aliases in COLUMN_ALIASES.items():
        matched = None
        for alias in aliases:
            col = cols_lower.get(alias)
            if col is not None and col not in used:
                matched = col
                break
        if matched is not None:
            used.add(matched)
        mapping[field] = matched
    return mapping


def validate_grade_sheet(df: pd.DataFrame) -> List[Dict[str, str]]:
    """Issues found in a grade sheet, most severe first."""
    issues = []
    mapping = suggest_column_mapping(df)

    for field in REQUIRED_SHEET_FIELDS:
        if mapping.get(field) is None:
            issues.append({
                "type": "missing_column",
                "severity": "critical",
                "message": f"Required column '{field}' not found. "
                           f"Expected one of: {COLUMN_ALIASES[field]}",
            })

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The uploaded file contains no data rows.",
        })

    for key in ("period1", "period2", "period3", "period4"):
        col = mapping.get(key)
        if not col:
            continue
        raw = df[col]
        values = pd.to_numeric(raw, errors="coerce")
        invalid = int(values.isna().sum() - raw.isna().sum())
        if invalid > 0:
            issues.append({
                "type": "invalid_scores",
                "severity": "warning",
                "message": f"{invalid} value(s) in '{col}' could not be parsed as numbers.",
            })
        valid = values.dropna()
        if len(valid) and ((valid < 0) | (valid > 100)).any():
            issues.append({
                "type": "out_of_range",
                "severity": "warning",
                "message": f"Some values in '{col}' fall outside 0-100.",
            })

    status_col = mapping.get("special_status")
    if status_col:
        raw_status = df[status_col].dropna().astype(str).str.strip()
        raw_status = raw_status[raw_status != ""]
        unknown = sorted({s for s in raw_status if parse_special_status(s) is None})
        if unknown:
            issues.append({
                "type": "unknown_status",
                "severity": "info",
                "message": f"Ignored unrecognised status values: {', '.join(unknown)}.",
            })

    order = {"critical": 0, "warning": 1, "info": 2}
    return sorted(issues, key=lambda i: order[i["severity"]])


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-") or "subject"


def students_from_dataframe(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Group a long-format grade sheet into per-student bundles:
    { student_id, student_name, enrollment, grades: {subject_id: SubjectGrade} }
    """
    mapping = suggest_column_mapping(df)
    missing = [f for f in REQUIRED_SHEET_FIELDS if mapping.get(f) is None]
    if missing:
        raise ValueError(f"Grade sheet is missing required column(s): {', '.join(missing)}")

    def cell(row, field):
        col = mapping.get(field)
        return row.get(col) if col else None

    students: Dict[str, Dict[str, Any]] = {}
    for _, row in df.iterrows():
        student_id = _text(cell(row, "student_id"))
        subject_name = _text(cell(row, "subject_name"))
        if not student_id or not subject_name:
            continue

        bundle = students.get(student_id)
        if bundle is None:
            level = _text(cell(row, "level"))
            bundle = {
                "student_id": student_id,
                "student_name": _text(cell(row, "student_name")) or student_id,
                "enrollment": parse_enrollment_context({
                    "level": level,
                    "department": cell(row, "department"),
                    "semester": cell(row, "semester"),
                    "grade_level": cell(row, "grade_level"),
                }),
                "grades": {},
            }
            students[student_id] = bundle

        subject_id = (
            _text(cell(row, "subject_id"))
            or _text(cell(row, "subject_code"))
            or _slug(subject_name)
        )
        if subject_id in bundle["grades"]:
            logger.warning("Duplicate row for student %s subject %s; keeping the last one", student_id, subject_id)

        bundle["grades"][subject_id] = parse_subject_grade(
            {
                "subject_name": subject_name,
                "subject_code": cell(row, "subject_code"),
                "period1": cell(row, "period1"),
                "period2": cell(row, "period2"),
                "period3": cell(row, "period3"),
                "period4": cell(row, "period4"),
                "special_status": cell(row, "special_status"),
            },
            subject_id=subject_id,
        )

    return list(students.values())


def parse_student_bundles(records: Any) -> List[Dict[str, Any]]:
    """JSON student list (as posted to the API) -> per-student bundles."""
    bundles = []
    for idx, raw in enumerate(records or []):
        if not isinstance(raw, Mapping):
            continue
        student_id = _text(_pick(raw, "student_id", "studentId", "userId")) or f"student-{idx + 1}"
        bundles.append({
            "student_id": student_id,
            "student_name": _text(_pick(raw, "student_name", "studentName", "name")) or student_id,
            "enrollment": parse_enrollment_context(
                raw.get("enrollment"),
                _text(_pick(raw, "ay_code", "ayCode", "doc_id")),
            ),
            "grades": parse_student_grades(raw.get("grades")),
        })
    return bundles
