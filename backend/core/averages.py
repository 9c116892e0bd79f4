"""
averages.py — Per-subject averaging.

The average is the mean of the periods that actually hold a number. Missing
periods neither count as zero nor dilute the result, so a partial-term
average is shown before every period is graded.
"""

import math
from collections.abc import Mapping
from typing import Any, Iterable, NamedTuple, Optional

from core.models import SpecialStatus, SubjectAverage, SubjectGrade, coerce_special_status


class PeriodAverage(NamedTuple):
    average: Optional[float]
    completed_periods: int


def _read(grade: Any, key: str) -> Any:
    if isinstance(grade, Mapping):
        return grade.get(key)
    return getattr(grade, key, None)


def _special_status(grade: Any) -> Optional[SpecialStatus]:
    if isinstance(grade, Mapping):
        raw = grade.get("special_status", grade.get("specialStatus"))
    else:
        raw = getattr(grade, "special_status", None)
    return coerce_special_status(raw)


def is_grade_value(value: Any) -> bool:
    """True for a real, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (math.isnan(value) or math.isinf(value))


def calculate_average(grade: Any, active_keys: Iterable[str]) -> PeriodAverage:
    """Mean of the numeric values at active_keys.

    A special status short-circuits to (None, 0). Accepts a SubjectGrade or
    a plain mapping with period1..period4 keys.
    """
    if _special_status(grade) is not None:
        return PeriodAverage(None, 0)

    values = [v for v in (_read(grade, key) for key in active_keys) if is_grade_value(v)]
    if not values:
        return PeriodAverage(None, 0)

    return PeriodAverage(sum(values) / len(values), len(values))


def subject_average(
    subject_id: str,
    grade: SubjectGrade,
    active_keys: Iterable[str],
    subject_name: Optional[str] = None,
) -> SubjectAverage:
    average, completed = calculate_average(grade, active_keys)
    return SubjectAverage(
        subject_id=subject_id,
        subject_name=subject_name or grade.subject_name,
        average=average,
        completed_periods=completed,
        special_status=grade.special_status,
    )
