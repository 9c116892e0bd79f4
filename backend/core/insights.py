"""
insights.py — Rule-based insights for one student's grade rollup.

Every insight is a deterministic threshold check over an AnalyticsResult;
narratives are f-string templates.
"""

from typing import Any, Dict, List

from core.analytics import compute_term_trend
from core.grading_scale import PASSING_GRADE, describe_grade, special_status_label
from core.models import AnalyticsResult

EXCELLENT_AVERAGE = 90.0
STRONG_GWA = 1.75
WEAK_GWA = 3.0
MAX_ITEMS = 3


# ── Narratives ──────────────────────────────────────────────────────

def narrate_overall(result: AnalyticsResult) -> str:
    if result.overall_average is None:
        return (
            f"No graded subjects yet: {result.pending_count} of {result.total_subjects} "
            f"subject(s) are still pending."
        )
    label = describe_grade(result.overall_average).label
    text = (
        f"Overall average is {result.overall_average:.2f}% ({label}) across "
        f"{result.completed_subjects} graded subject(s). "
        f"{result.pass_count} passed, {result.fail_count} failed and "
        f"{result.pending_count} pending."
    )
    if result.gwa is not None:
        text += f" GWA is {result.gwa:.2f}."
    return text


def narrate_trend(trend: Dict[str, Any]) -> str:
    delta = trend.get("delta") or 0
    if trend["direction"] == "improving":
        return f"Grades are improving across terms (+{delta:.1f} points)."
    if trend["direction"] == "declining":
        return f"Grades are declining across terms ({delta:.1f} points)."
    return "Grades are steady across terms."


# ── Insight Rules ───────────────────────────────────────────────────

def generate_student_insights(result: AnalyticsResult) -> Dict[str, Any]:
    """Strengths, concerns and recommendations for one student."""
    strengths: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []

    overall = result.overall_average
    if overall is not None:
        if overall >= EXCELLENT_AVERAGE:
            strengths.append("Consistently excellent overall performance.")
        if overall < PASSING_GRADE:
            concerns.append(f"Overall average is below the passing grade ({PASSING_GRADE:.0f}).")
            recommendations.append("Set up a recovery plan with weekly check-ins on failing subjects.")

    best = result.best_subject
    worst = result.struggling_subject
    if best is not None:
        strengths.append(f"Strongest subject: {best.subject_name} ({best.average:.1f}).")
    if worst is not None and best is not None and worst.subject_id != best.subject_id:
        if worst.average < PASSING_GRADE:
            concerns.append(f"{worst.subject_name} is below passing ({worst.average:.1f}).")
        recommendations.append(f"Add extra practice and teacher consultation for {worst.subject_name}.")

    if result.fail_count > 1:
        concerns.append(f"{result.fail_count} subjects are currently failing.")

    flagged = [s for s in result.subject_averages if s.special_status is not None]
    if flagged:
        names = ", ".join(
            f"{s.subject_name} ({special_status_label(s.special_status.value)})" for s in flagged
        )
        concerns.append(f"Subjects with a special status: {names}.")
        recommendations.append("Coordinate with the registrar to resolve flagged subjects.")

    trend = compute_term_trend(result.term_averages)
    if trend["direction"] == "improving":
        strengths.append(narrate_trend(trend))
    elif trend["direction"] == "declining":
        concerns.append(narrate_trend(trend))
        recommendations.append("Review what changed this term and adjust the study routine early.")

    if result.gwa is not None:
        if result.gwa <= STRONG_GWA:
            strengths.append(f"GWA of {result.gwa:.2f} is within honors range.")
        elif result.gwa > WEAK_GWA:
            concerns.append(f"GWA of {result.gwa:.2f} is below the passing point (3.00).")

    # Deduplicate while preserving order
    strengths = list(dict.fromkeys(strengths))[:MAX_ITEMS]
    concerns = list(dict.fromkeys(concerns))[:MAX_ITEMS]
    recommendations = list(dict.fromkeys(recommendations))[:MAX_ITEMS]

    return {
        "summary": narrate_overall(result),
        "strengths": strengths,
        "concerns": concerns,
        "recommendations": recommendations,
        "trend": trend,
    }
