"""
Cohort routes — registrar analytics across a batch of students.
"""

from fastapi import APIRouter, HTTPException

from core.cohort import compute_cohort_summary, student_rows
from core.parser import parse_student_bundles

router = APIRouter()


def _bundles_from_payload(payload: dict):
    """Extract student bundles from request payload."""
    students = payload.get("students")
    if not students or not isinstance(students, list):
        raise HTTPException(400, "No students provided.")
    return parse_student_bundles(students)


@router.post("/summary")
async def summary(payload: dict):
    """Counts, averages, distribution, per-band and per-subject stats."""
    return compute_cohort_summary(_bundles_from_payload(payload))


@router.post("/students")
async def students(payload: dict):
    """One rollup row per student."""
    rows = student_rows(_bundles_from_payload(payload))
    rows = rows.astype(object).where(rows.notna(), None)
    return {"students": rows.to_dict(orient="records")}
