"""
transferee.py — Manually encoded historical records for transferees.

A transferee record is an ordinary grade document stored under a derived
academic-year code, e.g. 'AY2324_first_semester_transferee'. College
transcripts carry one 1.0-5.0 grade per subject, which is converted to its
percentage equivalent and written to every college period so the shared
averaging code reads it back unchanged.
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from core.analytics import compute_analytics
from core.grading_scale import gwa_point_to_percentage
from core.models import EnrollmentContext
from core.parser import parse_special_status, parse_subject_grade, to_number_or_null
from core.periods import FIRST_SEM, SECOND_SEM, normalize_semester

LEVEL_TYPES = ("college", "shs", "jhs")
RECORD_SOURCE = "transferee-manual"

SEMESTER_LABELS = {
    FIRST_SEM: "First Semester",
    SECOND_SEM: "Second Semester",
}

# Stored slots for the two SHS quarter fields, per semester.
SHS_SLOTS = {
    FIRST_SEM: ("period1", "period2"),
    SECOND_SEM: ("period3", "period4"),
}


class TransfereeValidationError(ValueError):
    """Raised with a field -> message mapping when a form is incomplete."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def format_ay_code(ay_code: Any, semester: Optional[str], level_type: str) -> str:
    base = _clean(ay_code).upper()
    if not base:
        return ""
    if level_type in ("college", "shs"):
        suffix = "second_semester" if semester == SECOND_SEM else "first_semester"
        return f"{base}_{suffix}_transferee"
    return f"{base}_transferee"


def validate_transferee_form(form: Mapping, existing_ay_codes: Optional[List[str]] = None) -> Dict[str, str]:
    """Field -> message for every problem found; empty when valid."""
    errors: Dict[str, str] = {}
    level_type = _clean(form.get("level_type")).lower()
    semester = normalize_semester(form.get("semester"))

    if level_type not in LEVEL_TYPES:
        errors["level_type"] = f"Record type must be one of: {', '.join(LEVEL_TYPES)}."

    base = _clean(form.get("ay_code")).upper()
    formatted = format_ay_code(base, semester, level_type)
    existing = {c.lower() for c in (existing_ay_codes or [])}
    if not base:
        errors["ay_code"] = "Academic year code is required."
    elif formatted and formatted.lower() in existing:
        errors["ay_code"] = "A record for this formatted academic year already exists."

    if level_type in ("college", "shs") and semester not in (FIRST_SEM, SECOND_SEM):
        errors["semester"] = "Semester is required for college and SHS transferee records."

    if not _clean(form.get("student_level_label")):
        errors["student_level_label"] = "Student level label is required."

    subjects = [
        s for s in (form.get("subjects") or [])
        if isinstance(s, Mapping) and (_clean(s.get("name")) or _clean(s.get("code")))
    ]
    if not subjects:
        errors["subjects"] = "Add at least one subject with details."
    elif any(not _clean(s.get("name")) for s in subjects):
        errors["subjects"] = "Each subject entry must include a subject name."

    return errors


def _subject_periods(subject: Mapping, level_type: str, semester: Optional[str]) -> Dict[str, Optional[float]]:
    slots: Dict[str, Optional[float]] = {"period1": None, "period2": None, "period3": None, "period4": None}
    if level_type == "college":
        pct = gwa_point_to_percentage(to_number_or_null(subject.get("college_average")))
        slots.update(period1=pct, period2=pct, period3=pct)
    elif level_type == "shs":
        first, second = SHS_SLOTS.get(semester, SHS_SLOTS[FIRST_SEM])
        # The form always labels its two fields period1/period2.
        slots[first] = to_number_or_null(subject.get("period1"))
        slots[second] = to_number_or_null(subject.get("period2"))
    else:
        for key in slots:
            slots[key] = to_number_or_null(subject.get(key))
    return slots


def build_transferee_record(form: Mapping, existing_ay_codes: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Validate a transferee form and build the grade document to store.

    Returns { ay_code, document } where document holds the record metadata
    plus one camelCase grade entry per subject.
    """
    errors = validate_transferee_form(form, existing_ay_codes)
    if errors:
        raise TransfereeValidationError(errors)

    level_type = _clean(form.get("level_type")).lower()
    semester = normalize_semester(form.get("semester"))
    base = _clean(form.get("ay_code")).upper()

    document: Dict[str, Any] = {
        "studentLevel": _clean(form.get("student_level_label")),
        "studentSection": _clean(form.get("student_section")),
        "studentSemester": "" if level_type == "jhs" else (semester or ""),
        "ayDisplayLabel": _clean(form.get("ay_label")) or base,
        "recordSource": RECORD_SOURCE,
        "transfereeRecord": True,
        "recordNotes": _clean(form.get("notes")),
        "recordLevelType": level_type,
        "recordSemesterLabel": "Full Year" if level_type == "jhs" else SEMESTER_LABELS.get(semester, ""),
    }
    if _clean(form.get("student_name")):
        document["studentName"] = _clean(form.get("student_name"))

    for idx, subject in enumerate(form.get("subjects") or []):
        if not isinstance(subject, Mapping) or not _clean(subject.get("name")):
            continue
        key = _clean(subject.get("document_key")) or _clean(subject.get("id")) or f"transferee-{idx + 1}"
        status = parse_special_status(subject.get("special_status"))
        entry: Dict[str, Any] = {
            "subjectName": _clean(subject.get("name")),
            **_subject_periods(subject, level_type, semester),
            "specialStatus": status.value if status else None,
        }
        if _clean(subject.get("code")):
            entry["subjectCode"] = _clean(subject.get("code"))
        if _clean(subject.get("linked_subject_id")):
            entry["linkedSubjectId"] = _clean(subject.get("linked_subject_id"))
        document[key] = entry

    return {"ay_code": format_ay_code(base, semester, level_type), "document": document}


def transferee_context(level_type: str, semester: Optional[str]) -> EnrollmentContext:
    if level_type == "college":
        return EnrollmentContext(level="college", semester=normalize_semester(semester))
    if level_type == "shs":
        return EnrollmentContext(level="high-school", department="SHS", semester=normalize_semester(semester))
    return EnrollmentContext(level="high-school", department="JHS")


def preview_transferee_record(form: Mapping, existing_ay_codes: Optional[List[str]] = None) -> Dict[str, Any]:
    """Built record plus the averages the registrar will see for it."""
    record = build_transferee_record(form, existing_ay_codes)
    level_type = record["document"]["recordLevelType"]
    context = transferee_context(level_type, form.get("semester"))
    grades = {
        key: parse_subject_grade(value, subject_id=key)
        for key, value in record["document"].items()
        if isinstance(value, Mapping)
    }
    record["analytics"] = compute_analytics(grades, context).to_dict()
    return record
