"""
periods.py — Which grade slots count for an enrollment.

  college          -> period1..period3 (Prelim, Midterm, Finals)
  senior, 1st sem  -> period1, period2 (Quarter 1, Quarter 2)
  senior, 2nd sem  -> period3, period4 (Quarter 3, Quarter 4)
  senior, no sem   -> all four
  junior / unknown -> all four (Quarter 1..4)
"""

import re
from types import MappingProxyType
from typing import Optional, Tuple

COLLEGE = "college"
SENIOR = "senior"
JUNIOR = "junior"

FIRST_SEM = "first-sem"
SECOND_SEM = "second-sem"

TERM_CONFIG = MappingProxyType({
    "college": (("period1", "Prelim"), ("period2", "Midterm"), ("period3", "Finals")),
    "shs_first": (("period1", "Quarter 1"), ("period2", "Quarter 2")),
    "shs_second": (("period3", "Quarter 3"), ("period4", "Quarter 4")),
    "full_year": (
        ("period1", "Quarter 1"),
        ("period2", "Quarter 2"),
        ("period3", "Quarter 3"),
        ("period4", "Quarter 4"),
    ),
})

_BAND_ALIASES = MappingProxyType({
    "college": COLLEGE,
    "senior": SENIOR,
    "senior-high": SENIOR,
    "senior_high": SENIOR,
    "shs": SENIOR,
    "junior": JUNIOR,
    "junior-high": JUNIOR,
    "junior_high": JUNIOR,
    "jhs": JUNIOR,
})

_SEMESTER_ALIASES = MappingProxyType({
    "first-sem": FIRST_SEM,
    "first_sem": FIRST_SEM,
    "first_semester": FIRST_SEM,
    "first semester": FIRST_SEM,
    "1st-sem": FIRST_SEM,
    "second-sem": SECOND_SEM,
    "second_sem": SECOND_SEM,
    "second_semester": SECOND_SEM,
    "second semester": SECOND_SEM,
    "2nd-sem": SECOND_SEM,
})


def normalize_semester(semester: Optional[str]) -> Optional[str]:
    if semester is None:
        return None
    return _SEMESTER_ALIASES.get(str(semester).strip().lower())


def _department_from_grade_level(grade_level: Optional[str]) -> Optional[str]:
    if grade_level is None:
        return None
    nums = re.findall(r"\d+", str(grade_level))
    if not nums:
        return None
    return "SHS" if int(nums[0]) >= 11 else "JHS"


def resolve_band(
    level: Optional[str],
    department: Optional[str] = None,
    grade_level: Optional[str] = None,
) -> str:
    """Collapse (level, department) into college / senior / junior."""
    key = str(level or "").strip().lower()
    if key in _BAND_ALIASES:
        return _BAND_ALIASES[key]
    if key == "high-school":
        dept = department or _department_from_grade_level(grade_level)
        if str(dept or "").strip().upper() == "SHS":
            return SENIOR
    return JUNIOR


def active_terms(level: Optional[str], semester: Optional[str] = None) -> Tuple[Tuple[str, str], ...]:
    """(period key, display label) pairs for the band and semester."""
    band = resolve_band(level)
    sem = normalize_semester(semester)
    if band == COLLEGE:
        return TERM_CONFIG["college"]
    if band == SENIOR and sem == FIRST_SEM:
        return TERM_CONFIG["shs_first"]
    if band == SENIOR and sem == SECOND_SEM:
        return TERM_CONFIG["shs_second"]
    return TERM_CONFIG["full_year"]


def select_active_periods(level: Optional[str], semester: Optional[str] = None) -> Tuple[str, ...]:
    """Ordered period keys that feed the average."""
    return tuple(key for key, _ in active_terms(level, semester))


def context_terms(context) -> Tuple[Tuple[str, str], ...]:
    """active_terms for an EnrollmentContext (or None)."""
    if context is None:
        return TERM_CONFIG["full_year"]
    return active_terms(context.band, context.semester)
