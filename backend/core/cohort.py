"""
cohort.py — Registrar analytics across many students.

Each student bundle is rolled up with core.analytics first; the per-student
and per-subject results are then aggregated with pandas:

- Student counts, mean / median / std of overall averages
- Mean GWA among college students
- Standing totals (pass / fail / pending) and pass rate
- Distribution of student averages across the descriptive bands
- Per-band and per-subject breakdowns
- Top / bottom students
- Pearson correlations between subjects (scipy.stats.pearsonr)
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats as sp_stats

from core.analytics import compute_analytics
from core.grading_scale import descriptive_mode, percentage_to_gwa_point, special_status_label

DISTRIBUTION_BINS = [0, 75, 80, 85, 90, 100]


# ── Helpers ─────────────────────────────────────────────────────────

def _safe_float(val) -> Optional[float]:
    """Convert to float or return None."""
    try:
        v = float(val)
        return None if np.isnan(v) or np.isinf(v) else round(v, 2)
    except (TypeError, ValueError):
        return None


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _analyze(bundle: Dict[str, Any]):
    return compute_analytics(bundle.get("grades") or {}, bundle.get("enrollment"))


# ── Flat rows ───────────────────────────────────────────────────────

def subject_rows(students: List[Dict[str, Any]]) -> pd.DataFrame:
    """One row per student-subject, with computed average and standing."""
    records = []
    for bundle in students:
        result = _analyze(bundle)
        grades = bundle.get("grades") or {}
        for avg in result.subject_averages:
            grade = grades.get(avg.subject_id)
            status = avg.special_status.value if avg.special_status else None
            records.append({
                "student_id": bundle.get("student_id"),
                "student_name": bundle.get("student_name"),
                "band": result.band,
                "semester": result.semester,
                "subject_id": avg.subject_id,
                "subject_name": avg.subject_name,
                "period1": grade.period1 if grade else None,
                "period2": grade.period2 if grade else None,
                "period3": grade.period3 if grade else None,
                "period4": grade.period4 if grade else None,
                "special_status": status,
                "average": avg.average,
                "gwa_point": percentage_to_gwa_point(avg.average) if result.band == "college" else None,
                "remark": special_status_label(status) if status else descriptive_mode(avg.average),
                "standing": avg.standing,
            })
    columns = [
        "student_id", "student_name", "band", "semester", "subject_id", "subject_name",
        "period1", "period2", "period3", "period4", "special_status",
        "average", "gwa_point", "remark", "standing",
    ]
    return pd.DataFrame.from_records(records, columns=columns)


def student_rows(students: List[Dict[str, Any]]) -> pd.DataFrame:
    """One row per student with the rollup figures."""
    records = []
    for bundle in students:
        result = _analyze(bundle)
        records.append({
            "student_id": bundle.get("student_id"),
            "student_name": bundle.get("student_name"),
            "band": result.band,
            "total_subjects": result.total_subjects,
            "completed_subjects": result.completed_subjects,
            "overall_average": result.overall_average,
            "gwa": result.gwa,
            "pass_count": result.pass_count,
            "fail_count": result.fail_count,
            "pending_count": result.pending_count,
        })
    columns = [
        "student_id", "student_name", "band", "total_subjects", "completed_subjects",
        "overall_average", "gwa", "pass_count", "fail_count", "pending_count",
    ]
    return pd.DataFrame.from_records(records, columns=columns)


# ── Cohort Summary ──────────────────────────────────────────────────

def _subject_stats(rows: pd.DataFrame) -> List[Dict[str, Any]]:
    subjects = []
    for name, group in rows.groupby("subject_name"):
        avg = pd.to_numeric(group["average"], errors="coerce").dropna()
        standing = group["standing"]
        subjects.append({
            "subject": str(name),
            "count": int(len(group)),
            "graded": int(len(avg)),
            "mean": _safe_float(avg.mean()) if len(avg) else None,
            "median": _safe_float(avg.median()) if len(avg) else None,
            "std": _safe_float(avg.std()) if len(avg) > 1 else None,
            "min": _safe_float(avg.min()) if len(avg) else None,
            "max": _safe_float(avg.max()) if len(avg) else None,
            "pass_count": int((standing == "pass").sum()),
            "fail_count": int((standing == "fail").sum()),
            "pending_count": int((standing == "pending").sum()),
        })
    subjects.sort(key=lambda s: s["mean"] if s["mean"] is not None else -1, reverse=True)
    return subjects


def _subject_correlations(rows: pd.DataFrame) -> List[Dict[str, Any]]:
    graded = rows.dropna(subset=["average"])
    if graded.empty:
        return []
    pivot = graded.pivot_table(index="student_id", columns="subject_name", values="average", aggfunc="mean")
    pairs = []
    cols = list(pivot.columns)
    for i in range(len(cols)):
        for j in range(i + 1, len(cols)):
            col_a, col_b = cols[i], cols[j]
            valid = pivot[[col_a, col_b]].dropna()
            if len(valid) < 3:
                continue
            # pearsonr is undefined for a constant series
            if valid[col_a].nunique() < 2 or valid[col_b].nunique() < 2:
                continue
            r, p = sp_stats.pearsonr(valid[col_a], valid[col_b])
            pairs.append({
                "subject_a": str(col_a),
                "subject_b": str(col_b),
                "r": _safe_float(r),
                "p_value": _safe_float(p),
                "n": int(len(valid)),
            })
    pairs.sort(key=lambda x: abs(x["r"] or 0), reverse=True)
    return pairs


def compute_cohort_summary(students: List[Dict[str, Any]], top_n: int = 5) -> Dict[str, Any]:
    """School/section-wide grade summary for a batch of student bundles."""
    per_student = student_rows(students)
    per_subject = subject_rows(students)

    overall = pd.to_numeric(per_student["overall_average"], errors="coerce").dropna()
    gwa = pd.to_numeric(per_student["gwa"], errors="coerce").dropna()

    pass_total = int(per_student["pass_count"].sum()) if len(per_student) else 0
    fail_total = int(per_student["fail_count"].sum()) if len(per_student) else 0
    pending_total = int(per_student["pending_count"].sum()) if len(per_student) else 0
    decided = pass_total + fail_total

    summary: Dict[str, Any] = {
        "total_students": int(len(per_student)),
        "graded_students": int(len(overall)),
        "total_subject_records": int(len(per_subject)),
        "mean_average": _safe_float(overall.mean()) if len(overall) else None,
        "median_average": _safe_float(overall.median()) if len(overall) else None,
        "std_average": _safe_float(overall.std()) if len(overall) > 1 else None,
        "mean_gwa": _safe_float(gwa.mean()) if len(gwa) else None,
        "pass_count": pass_total,
        "fail_count": fail_total,
        "pending_count": pending_total,
        # Pending subjects are excluded from the rate.
        "pass_rate": _safe_float(pass_total / decided * 100) if decided else None,
    }

    if len(overall):
        counts, edges = np.histogram(overall, bins=DISTRIBUTION_BINS)
        summary["distribution"] = {
            "bins": [f"{int(edges[i])}-{int(edges[i + 1])}" for i in range(len(counts))],
            "counts": [int(c) for c in counts],
        }
    else:
        summary["distribution"] = {"bins": [], "counts": []}

    bands = []
    for band, group in per_student.groupby("band"):
        band_avg = pd.to_numeric(group["overall_average"], errors="coerce").dropna()
        bands.append({
            "band": str(band),
            "students": int(len(group)),
            "mean_average": _safe_float(band_avg.mean()) if len(band_avg) else None,
            "pass_count": int(group["pass_count"].sum()),
            "fail_count": int(group["fail_count"].sum()),
            "pending_count": int(group["pending_count"].sum()),
        })
    summary["bands"] = bands

    ranked = per_student.dropna(subset=["overall_average"]).sort_values(
        "overall_average", ascending=False, kind="mergesort"
    )
    summary["top_students"] = [
        {"student_id": r.student_id, "student_name": r.student_name, "average": _safe_float(r.overall_average)}
        for r in ranked.head(top_n).itertuples()
    ]
    summary["bottom_students"] = [
        {"student_id": r.student_id, "student_name": r.student_name, "average": _safe_float(r.overall_average)}
        for r in ranked.tail(top_n).iloc[::-1].itertuples()
    ]

    summary["subjects"] = _subject_stats(per_subject) if len(per_subject) else []
    summary["correlations"] = _subject_correlations(per_subject) if len(per_subject) else []

    return _sanitize(summary)
