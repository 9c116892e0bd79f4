"""
Report routes — academic record PDF and grades Excel export endpoints.
"""

import os
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from core.analytics import compute_analytics
from core.cohort import subject_rows
from core.parser import parse_enrollment_context, parse_student_bundles, parse_student_grades
from core.report_builder import generate_grades_excel, generate_student_record_pdf

router = APIRouter()

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
REPORTS_DIR = UPLOAD_DIR / "reports"
REPORTS_DIR.mkdir(parents=True, exist_ok=True)


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Delete the generated file once the response is sent."""
    Path(path).unlink(missing_ok=True)


@router.post("/student-pdf")
async def student_record_pdf(payload: dict):
    """Generate one student's academic record PDF."""
    raw_grades = payload.get("grades")
    if not isinstance(raw_grades, dict):
        raise HTTPException(400, "Provide 'grades' as an object keyed by subject id.")

    grades = parse_student_grades(raw_grades)
    context = parse_enrollment_context(payload.get("enrollment"), payload.get("ay_code"))
    result = compute_analytics(grades, context)

    student_name = str(payload.get("student_name") or "Student")
    school_name = str(payload.get("school_name") or SCHOOL_NAME)
    report_id = str(uuid.uuid4())[:8]
    student_token = _safe_token(student_name, fallback="student")
    output_path = REPORTS_DIR / f"record_{student_token}_{report_id}.pdf"

    generate_student_record_pdf(
        output_path=str(output_path),
        school_name=school_name,
        student_name=student_name,
        result=result,
        grades=grades,
    )

    return FileResponse(
        str(output_path),
        media_type="application/pdf",
        filename=f"Academic_Record_{student_token}_{report_id}.pdf",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )


@router.post("/excel")
async def excel_export(payload: dict):
    """Export every student-subject row as an Excel workbook."""
    students = payload.get("students")
    if not students or not isinstance(students, list):
        raise HTTPException(400, "No students provided.")

    rows = subject_rows(parse_student_bundles(students))
    report_id = str(uuid.uuid4())[:8]
    output_path = REPORTS_DIR / f"grades_export_{report_id}.xlsx"

    generate_grades_excel(
        output_path=str(output_path),
        rows=rows,
        school_name=str(payload.get("school_name") or SCHOOL_NAME),
    )

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Grades_Export_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
