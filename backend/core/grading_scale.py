"""
grading_scale.py — Shared grading tables and scale conversions.

Every lookup table used by the averaging, analytics and report code lives
here as an immutable tuple or mapping proxy:

  - 1.0-5.0 collegiate GWA tiers (percentage -> grade point)
  - grade point -> percentage equivalents (transferee encoding)
  - descriptive labels + colour tiers for the analytics views
  - registrar remark scale (Excellent .. Failed)
  - special-status labels (INC, FA, FW, W)

Thresholds are evaluated top-down, first match wins, lower bound inclusive.
"""

import math
from types import MappingProxyType
from typing import Any, Dict, List, NamedTuple, Optional

PASSING_GRADE = 75.0

# (min_percentage, grade_point). Ordered best to worst.
GWA_TIERS = (
    (98.0, 1.00),
    (95.0, 1.25),
    (92.0, 1.50),
    (89.0, 1.75),
    (86.0, 2.00),
    (83.0, 2.25),
    (80.0, 2.50),
    (77.0, 2.75),
    (75.0, 3.00),
)
FAILING_GWA_POINT = 5.00

# Grade point -> percentage used when a transcript only carries the point.
GWA_POINT_TO_PERCENTAGE = MappingProxyType({
    1.00: 98.0,
    1.25: 95.0,
    1.50: 92.0,
    1.75: 89.0,
    2.00: 86.0,
    2.25: 83.0,
    2.50: 80.0,
    2.75: 77.0,
    3.00: 75.0,
    5.00: 70.0,
})

# (min_percentage, label, colour_tier). Ordered high to low.
DESCRIPTIVE_TIERS = (
    (90.0, "Excellent", "green"),
    (85.0, "Very Good", "blue"),
    (80.0, "Good", "yellow"),
    (75.0, "Fair", "orange"),
)
LOW_LABEL = ("Needs Improvement", "red")
NO_GRADE_LABEL = ("—", "gray")

# Registrar remark scale printed on academic records.
REMARK_TIERS = (
    (98.0, "Excellent"),
    (92.0, "Superior"),
    (86.0, "Very Good"),
    (83.0, "Good"),
    (80.0, "Fair"),
    (75.0, "Passed"),
)

SPECIAL_STATUS_LABELS = MappingProxyType({
    "INC": "Incomplete",
    "FA": "Failed (Absent)",
    "FW": "Failed (Withdrawn)",
    "W": "Withdrawn",
})

# Tailwind-style colour tier -> hex, shared by the PDF and Excel exports.
COLOR_HEX = MappingProxyType({
    "green": "#15803d",
    "blue": "#1e3a8a",
    "yellow": "#a16207",
    "orange": "#c2410c",
    "red": "#b91c1c",
    "gray": "#6b7280",
})


class GradeDescription(NamedTuple):
    label: str
    color_tier: str

    def to_dict(self) -> Dict[str, str]:
        return {"label": self.label, "color_tier": self.color_tier}


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def round_grade(value: Optional[float], places: int = 2) -> Optional[float]:
    """Round half-up for display; None passes through."""
    number = _as_number(value)
    if number is None:
        return None
    factor = 10 ** places
    return math.floor(number * factor + 0.5) / factor


# ── Percentage <-> GWA ──────────────────────────────────────────────

def percentage_to_gwa_point(percentage: Optional[float]) -> Optional[float]:
    """Map a 0-100 percentage to the 1.0 (best) .. 5.0 (worst) scale.

    There is no conditional 4.0 tier: anything under 75 is 5.00.
    """
    value = _as_number(percentage)
    if value is None or value == 0:
        return None
    for min_pct, point in GWA_TIERS:
        if value >= min_pct:
            return point
    return FAILING_GWA_POINT


def gwa_point_to_percentage(point: Optional[float]) -> Optional[float]:
    """Percentage equivalent of an exact tier point, else None."""
    value = _as_number(point)
    if value is None:
        return None
    normalized = round(value, 2)
    if 1 <= normalized <= 3 or normalized == FAILING_GWA_POINT:
        return GWA_POINT_TO_PERCENTAGE.get(normalized)
    return None


# ── Descriptive labels ──────────────────────────────────────────────

def _describe_percentage(value: Optional[float]) -> GradeDescription:
    if value is None:
        return GradeDescription(*NO_GRADE_LABEL)
    for min_pct, label, tier in DESCRIPTIVE_TIERS:
        if value >= min_pct:
            return GradeDescription(label, tier)
    return GradeDescription(*LOW_LABEL)


def _gwa_equivalent_percentage(point: Optional[float]) -> Optional[float]:
    # An averaged GWA (e.g. 1.63) is placed in the first tier that does not
    # beat it, then read through that tier's percentage equivalent.
    if point is None or point == 0 or point < 1.0 or point > FAILING_GWA_POINT:
        return None
    for min_pct, tier_point in GWA_TIERS:
        if point <= tier_point:
            return min_pct
    return GWA_POINT_TO_PERCENTAGE[FAILING_GWA_POINT]


def describe_grade(value: Optional[float], scale: str = "percentage") -> GradeDescription:
    """Human label and colour tier for a grade.

    A missing grade is '—' / gray, never 'Needs Improvement'.
    """
    number = _as_number(value)
    if scale == "gwa":
        return _describe_percentage(_gwa_equivalent_percentage(number))
    return _describe_percentage(number)


def descriptive_mode(percentage: Optional[float]) -> str:
    """Registrar remark for a percentage average."""
    value = _as_number(percentage)
    if value is None or value == 0:
        return "Incomplete"
    for min_pct, label in REMARK_TIERS:
        if value >= min_pct:
            return label
    return "Failed"


def special_status_label(status: Optional[str]) -> str:
    if not status:
        return ""
    return SPECIAL_STATUS_LABELS.get(str(status), str(status))


# ── Legends ─────────────────────────────────────────────────────────

def get_gwa_scale() -> List[Dict[str, Any]]:
    """Full percentage -> GWA table for legends."""
    rows = []
    for idx, (min_pct, point) in enumerate(GWA_TIERS):
        max_pct = 100.0 if idx == 0 else GWA_TIERS[idx - 1][0] - 0.01
        rows.append({
            "min": min_pct,
            "max": round(max_pct, 2),
            "point": point,
            "remark": descriptive_mode(min_pct),
        })
    rows.append({
        "min": 0.0,
        "max": round(GWA_TIERS[-1][0] - 0.01, 2),
        "point": FAILING_GWA_POINT,
        "remark": "Failed",
    })
    return rows


def get_descriptive_scale() -> List[Dict[str, Any]]:
    rows = []
    for idx, (min_pct, label, tier) in enumerate(DESCRIPTIVE_TIERS):
        max_pct = 100.0 if idx == 0 else DESCRIPTIVE_TIERS[idx - 1][0] - 0.01
        rows.append({"min": min_pct, "max": round(max_pct, 2), "label": label, "color_tier": tier})
    rows.append({
        "min": 0.0,
        "max": round(DESCRIPTIVE_TIERS[-1][0] - 0.01, 2),
        "label": LOW_LABEL[0],
        "color_tier": LOW_LABEL[1],
    })
    return rows
