"""
Grade routes — per-student averaging, analytics and scale lookups.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException

from core.analytics import build_chart_data, compute_analytics, compute_term_trend
from core.averages import calculate_average
from core.grading_scale import (
    describe_grade,
    descriptive_mode,
    get_descriptive_scale,
    get_gwa_scale,
    gwa_point_to_percentage,
    percentage_to_gwa_point,
)
from core.insights import generate_student_insights
from core.parser import parse_enrollment_context, parse_student_grades, parse_subject_grade, to_number_or_null
from core.periods import active_terms, context_terms, resolve_band

logger = logging.getLogger(__name__)

router = APIRouter()


def _analytics_from_payload(payload: dict):
    """Parse {grades, enrollment, subjects?} and run the rollup."""
    raw_grades = payload.get("grades")
    if not isinstance(raw_grades, dict):
        raise HTTPException(400, "Provide 'grades' as an object keyed by subject id.")
    grades = parse_student_grades(raw_grades)
    context = parse_enrollment_context(payload.get("enrollment"), payload.get("ay_code"))
    catalog = payload.get("subjects") if isinstance(payload.get("subjects"), dict) else None
    logger.debug("Computing analytics for %d subject(s)", len(grades))
    return compute_analytics(grades, context, catalog)


@router.post("/subject-average")
async def subject_average(payload: dict):
    """Average of one subject over the enrollment's active periods."""
    raw = payload.get("grade")
    if not isinstance(raw, dict):
        raise HTTPException(400, "Provide 'grade' as an object.")
    grade = parse_subject_grade(raw)
    context = parse_enrollment_context(payload.get("enrollment"), payload.get("ay_code"))
    terms = context_terms(context)
    average, completed = calculate_average(grade, [key for key, _ in terms])
    return {
        "subject_name": grade.subject_name,
        "average": average,
        "completed_periods": completed,
        "special_status": grade.special_status.value if grade.special_status else None,
        "active_periods": [{"key": k, "label": label} for k, label in terms],
        "description": describe_grade(average).to_dict(),
        "remark": descriptive_mode(average),
    }


@router.post("/analytics")
async def analytics(payload: dict):
    """Full rollup: averages, GWA, standing counts, best/struggling, terms."""
    return _analytics_from_payload(payload).to_dict()


@router.post("/chart-data")
async def chart_data(payload: dict):
    """Chart series for the student analytics view."""
    return build_chart_data(_analytics_from_payload(payload))


@router.post("/insights")
async def insights(payload: dict):
    """Rule-based strengths, concerns and recommendations."""
    return generate_student_insights(_analytics_from_payload(payload))


@router.post("/trend")
async def trend(payload: dict):
    """Slope and direction of the per-term averages."""
    return compute_term_trend(_analytics_from_payload(payload).term_averages)


@router.post("/convert")
async def convert(payload: dict):
    """Convert a percentage to a GWA point, or a GWA point to a percentage."""
    if "percentage" in payload:
        pct = to_number_or_null(payload.get("percentage"))
        return {"percentage": pct, "gwa": percentage_to_gwa_point(pct)}
    if "gwa" in payload:
        point = to_number_or_null(payload.get("gwa"))
        return {"gwa": point, "percentage": gwa_point_to_percentage(point)}
    raise HTTPException(400, "Provide either 'percentage' or 'gwa'.")


@router.post("/describe")
async def describe(payload: dict):
    """Descriptive label and colour tier for a grade."""
    scale = payload.get("scale", "percentage")
    if scale not in ("percentage", "gwa"):
        raise HTTPException(400, "Scale must be 'percentage' or 'gwa'.")
    value = to_number_or_null(payload.get("value"))
    result = describe_grade(value, scale).to_dict()
    result["value"] = value
    result["scale"] = scale
    return result


@router.get("/periods")
async def periods(level: Optional[str] = None, department: Optional[str] = None, semester: Optional[str] = None):
    """Active period keys and labels for an enrollment."""
    band = resolve_band(level, department)
    return {
        "band": band,
        "periods": [{"key": k, "label": label} for k, label in active_terms(band, semester)],
    }


@router.get("/scales")
async def scales():
    """Legend tables for the GWA and descriptive scales."""
    return {
        "gwa": get_gwa_scale(),
        "descriptive": get_descriptive_scale(),
    }
