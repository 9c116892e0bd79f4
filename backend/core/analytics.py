"""
analytics.py — Per-student grade rollup.

Computes:
- Per-subject averages over the enrollment's active periods
- Overall average and (college only) GWA
- Pass / fail / pending counts at the 75 pass mark
- Best and struggling subject
- Per-term cross-section averages and GWA history
- Chart series for the analytics view
- Term-over-term trend (numpy polyfit)
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from core.averages import is_grade_value, subject_average
from core.grading_scale import percentage_to_gwa_point
from core.models import AnalyticsResult, EnrollmentContext, SubjectAverage, SubjectGrade, TermAverage
from core.parser import parse_subject_grade
from core.periods import COLLEGE, JUNIOR, context_terms

UNKNOWN_SUBJECT = "Unknown Subject"

Subjects = Union[Mapping, Sequence[SubjectGrade]]


def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return sum(values) / len(values)


def _as_grade(raw: Any, subject_id: Optional[str] = None) -> Optional[SubjectGrade]:
    # Raw grade-document entries are accepted alongside typed records;
    # anything else (metadata strings, numbers) is not a subject.
    if isinstance(raw, SubjectGrade):
        return raw
    if isinstance(raw, Mapping):
        return parse_subject_grade(raw, subject_id=subject_id)
    return None


def _entries(subjects: Subjects) -> List[tuple]:
    if isinstance(subjects, Mapping):
        pairs = [(str(k), _as_grade(v, str(k))) for k, v in subjects.items()]
        return [(sid, grade) for sid, grade in pairs if grade is not None]
    entries = []
    for idx, raw in enumerate(subjects or []):
        grade = _as_grade(raw)
        if grade is not None:
            entries.append((grade.subject_id or str(idx), grade))
    return entries


def _subject_name(subject_id: str, grade: SubjectGrade, catalog: Optional[Mapping]) -> str:
    if grade.subject_name:
        return grade.subject_name
    if catalog and subject_id in catalog:
        entry = catalog[subject_id]
        name = entry.get("name") if isinstance(entry, Mapping) else entry
        if name:
            return str(name)
    return UNKNOWN_SUBJECT


def compute_analytics(
    subjects: Subjects,
    context: Optional[EnrollmentContext] = None,
    catalog: Optional[Mapping] = None,
) -> AnalyticsResult:
    """Roll every subject of one enrollment up into an AnalyticsResult."""
    band = context.band if context else JUNIOR
    semester = context.semester if context else None
    terms = context_terms(context)
    active_keys = [key for key, _ in terms]
    entries = _entries(subjects)

    averages = [
        subject_average(sid, grade, active_keys, _subject_name(sid, grade, catalog))
        for sid, grade in entries
    ]
    completed = [s for s in averages if s.average is not None]

    overall_average = _mean([s.average for s in completed])

    gwa = None
    if band == COLLEGE:
        points = [percentage_to_gwa_point(s.average) for s in completed]
        gwa = _mean([p for p in points if p is not None])

    pass_count = fail_count = pending_count = 0
    for s in averages:
        standing = s.standing
        if standing == "pass":
            pass_count += 1
        elif standing == "fail":
            fail_count += 1
        else:
            pending_count += 1

    # max/min keep the first occurrence on ties.
    best = max(completed, key=lambda s: s.average) if completed else None
    struggling = min(completed, key=lambda s: s.average) if completed else None

    # The term cross-section reads raw values even for flagged subjects;
    # the special-status override only applies to the subject rollup.
    term_averages = []
    for key, label in terms:
        values = [grade.period(key) for _, grade in entries]
        term_averages.append(
            TermAverage(key=key, label=label, value=_mean([v for v in values if is_grade_value(v)]))
        )

    gpa_history = []
    if band == COLLEGE:
        gpa_history = [
            TermAverage(key=t.key, label=t.label, value=percentage_to_gwa_point(t.value))
            for t in term_averages
        ]

    return AnalyticsResult(
        band=band,
        semester=semester,
        total_subjects=len(averages),
        completed_subjects=len(completed),
        overall_average=overall_average,
        gwa=gwa,
        pass_count=pass_count,
        fail_count=fail_count,
        pending_count=pending_count,
        best_subject=best,
        struggling_subject=struggling,
        subject_averages=averages,
        term_averages=term_averages,
        gpa_history=gpa_history,
    )


# ── Chart Data ──────────────────────────────────────────────────────

def build_chart_data(result: AnalyticsResult, limit: int = 5) -> Dict[str, Any]:
    """Series for the student analytics charts."""
    completed = [s for s in result.subject_averages if s.average is not None]

    def _bar(subject: SubjectAverage) -> Dict[str, Any]:
        return {"name": subject.subject_name, "average": subject.average}

    pass_fail = [
        {"name": "Passed", "value": result.pass_count},
        {"name": "Failed", "value": result.fail_count},
        {"name": "Pending", "value": result.pending_count},
    ]

    return {
        "grade_trend": [{"name": t.label, "value": t.value} for t in result.term_averages],
        "subject_performance": [_bar(s) for s in sorted(completed, key=lambda s: s.average, reverse=True)[:limit]],
        "subject_risk": [_bar(s) for s in sorted(completed, key=lambda s: s.average)[:limit]],
        "pass_fail": [slice_ for slice_ in pass_fail if slice_["value"] > 0],
        "gwa_history": [{"name": t.label, "value": t.value} for t in result.gpa_history],
    }


# ── Term Trend ──────────────────────────────────────────────────────

def compute_term_trend(term_averages: Sequence[TermAverage], threshold: float = 1.0) -> Dict[str, Any]:
    """Least-squares slope across graded terms, in points per term."""
    points = [(idx, t.value) for idx, t in enumerate(term_averages) if t.value is not None]
    if len(points) < 2:
        return {"slope": None, "delta": None, "direction": "insufficient_data", "graded_terms": len(points)}

    x = np.array([p[0] for p in points], dtype=float)
    y = np.array([p[1] for p in points], dtype=float)
    slope = float(np.polyfit(x, y, 1)[0])
    delta = float(y[-1] - y[0])

    if slope >= threshold:
        direction = "improving"
    elif slope <= -threshold:
        direction = "declining"
    else:
        direction = "stable"

    return {
        "slope": round(slope, 2),
        "delta": round(delta, 2),
        "direction": direction,
        "graded_terms": len(points),
    }
