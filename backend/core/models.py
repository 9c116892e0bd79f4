"""
models.py — Typed records passed between the parser, the averaging core
and the API layer.

Raw grade documents are converted into these once, in core/parser.py.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.grading_scale import PASSING_GRADE
from core.periods import resolve_band

PERIOD_KEYS = ("period1", "period2", "period3", "period4")


class SpecialStatus(str, Enum):
    """
    Non-numeric grade dispositions. A subject carrying one of these is never
    averaged and always counts as pending.

    INC: Incomplete
    FA:  Failed due to absences
    FW:  Failed, withdrawn
    W:   Withdrawn
    """
    INC = "INC"
    FA = "FA"
    FW = "FW"
    W = "W"


def coerce_special_status(value: Any) -> Optional[SpecialStatus]:
    """Trimmed, case-insensitive lookup; anything unrecognised is None."""
    if isinstance(value, SpecialStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return SpecialStatus(value.strip().upper())
    except ValueError:
        return None


@dataclass(frozen=True)
class SubjectGrade:
    """
    One subject's grade slots for a student in one academic year/semester.

    period1..period4 are quarters for JHS/SHS and Prelim/Midterm/Finals for
    college (period4 unused there). When special_status is set the period
    values are kept for display but never read for averaging. Status strings
    are normalised on construction; an unrecognised one is dropped and the
    subject averages normally.
    """
    subject_name: str
    period1: Optional[float] = None
    period2: Optional[float] = None
    period3: Optional[float] = None
    period4: Optional[float] = None
    special_status: Optional[SpecialStatus] = None
    subject_id: Optional[str] = None
    subject_code: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "special_status", coerce_special_status(self.special_status))

    def period(self, key: str) -> Optional[float]:
        if key not in PERIOD_KEYS:
            return None
        return getattr(self, key)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "subject_code": self.subject_code,
            "period1": self.period1,
            "period2": self.period2,
            "period3": self.period3,
            "period4": self.period4,
            "special_status": self.special_status.value if self.special_status else None,
        }


@dataclass(frozen=True)
class EnrollmentContext:
    """
    The enrollment a set of grades belongs to. Owned by the enrollment
    subsystem; the grading code only reads it.

    level:      'college' or 'high-school'
    department: 'JHS' / 'SHS' for high school
    semester:   'first-sem' / 'second-sem' (college and SHS only)
    """
    level: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[str] = None
    grade_level: Optional[str] = None

    @property
    def band(self) -> str:
        return resolve_band(self.level, self.department, self.grade_level)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "department": self.department,
            "semester": self.semester,
            "grade_level": self.grade_level,
            "band": self.band,
        }


@dataclass(frozen=True)
class SubjectAverage:
    subject_id: str
    subject_name: str
    average: Optional[float]
    completed_periods: int
    special_status: Optional[SpecialStatus] = None

    def __post_init__(self):
        object.__setattr__(self, "special_status", coerce_special_status(self.special_status))

    @property
    def standing(self) -> str:
        """'pending' for flagged or ungraded subjects, else pass/fail at 75."""
        if self.special_status is not None or self.average is None:
            return "pending"
        return "pass" if self.average >= PASSING_GRADE else "fail"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "average": self.average,
            "completed_periods": self.completed_periods,
            "special_status": self.special_status.value if self.special_status else None,
            "standing": self.standing,
        }


@dataclass(frozen=True)
class TermAverage:
    key: str
    label: str
    value: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "value": self.value}


@dataclass(frozen=True)
class AnalyticsResult:
    """Per-student rollup across all subjects of one enrollment."""
    band: str
    semester: Optional[str]
    total_subjects: int
    completed_subjects: int
    overall_average: Optional[float]
    gwa: Optional[float]
    pass_count: int
    fail_count: int
    pending_count: int
    best_subject: Optional[SubjectAverage]
    struggling_subject: Optional[SubjectAverage]
    subject_averages: List[SubjectAverage] = field(default_factory=list)
    term_averages: List[TermAverage] = field(default_factory=list)
    gpa_history: List[TermAverage] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "band": self.band,
            "semester": self.semester,
            "total_subjects": self.total_subjects,
            "completed_subjects": self.completed_subjects,
            "overall_average": self.overall_average,
            "gwa": self.gwa,
            "pass_count": self.pass_count,
            "fail_count": self.fail_count,
            "pending_count": self.pending_count,
            "best_subject": self.best_subject.to_dict() if self.best_subject else None,
            "struggling_subject": self.struggling_subject.to_dict() if self.struggling_subject else None,
            "subject_averages": [s.to_dict() for s in self.subject_averages],
            "term_averages": [t.to_dict() for t in self.term_averages],
            "gpa_history": [t.to_dict() for t in self.gpa_history],
        }
