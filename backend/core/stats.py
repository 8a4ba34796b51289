"""
stats.py — Per-student report aggregation.

Computes:
- Per-unit metrics (counselor mode: units in a range)
- Per-lesson metrics (head-of-class mode: one unit, lesson 0 = pre-test)
- Cohort baselines over other students' valid (> 0) values at the same key
- Time stats, badges and trend narratives
- Student lookups (available units, summaries, id search)

Everything here is a pure function of its inputs: rows are copied before
normalization and a fresh report dict is built on every call.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from core.badges import evaluate_counselor_badges, evaluate_headteacher_badges
from core.cleaner import normalize_records, parse_user_id, to_frame
from core.grading import lesson_label, translate_grade, unit_label
from core.narrative import (
    classify_accuracy_trend,
    classify_counselor_trend,
    classify_error_trend,
)
from core.settings import COUNSELOR, HEADTEACHER, ROLES

logger = logging.getLogger(__name__)

Rows = Union[pd.DataFrame, Iterable[Dict[str, Any]]]

TIME_COMMENTS = {
    COUNSELOR: "学习效率很高，表现出色。",
    HEADTEACHER: "一节课20分钟，短时高效，每天练出效果！",
}
MASTERY_ANALYSIS = "掌握扎实，超越平均"
REINFORCEMENT_ANALYSIS = "态度认真，请巩固错题"
DEFAULT_TEACHER = "老师"


# ── Helpers ─────────────────────────────────────────────────────────

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


def cohort_baseline(values: Iterable[Any]) -> float:
    """
    Mean of the strictly positive values; 0 when none are valid.

    A zero reading is treated as "no attempt" rather than a real score.
    """
    series = pd.to_numeric(pd.Series(list(values), dtype=object), errors="coerce")
    valid = series[series > 0]
    return float(valid.mean()) if len(valid) > 0 else 0.0


def check_role(role: str) -> str:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'. Expected one of: {list(ROLES)}")
    return role


def prepare_rows(rows: Rows) -> pd.DataFrame:
    """Normalize raw rows into canonical columns (input left untouched)."""
    normalized, _ = normalize_records(to_frame(rows))
    if "real_name" in normalized.columns:
        normalized["real_name"] = normalized["real_name"].astype(str)
    else:
        normalized["real_name"] = pd.Series([""] * len(normalized), dtype=str)
    return normalized


def _student_rows(df: pd.DataFrame, student_name: str) -> pd.DataFrame:
    return df[df["real_name"] == str(student_name).strip()]


def _peer_rows(df: pd.DataFrame, student_name: str) -> pd.DataFrame:
    return df[df["real_name"] != str(student_name).strip()]


def normalize_unit_range(unit_range) -> Optional[Dict[str, int]]:
    """Accept {'min': a, 'max': b} or (a, b); None passes through."""
    if unit_range is None:
        return None
    if isinstance(unit_range, dict):
        lo, hi = unit_range["min"], unit_range["max"]
    else:
        lo, hi = unit_range
    return {"min": int(lo), "max": int(hi)}


# ── Student Lookups ─────────────────────────────────────────────────

def get_available_units(rows: Rows, student_name: str) -> List[int]:
    """Sorted distinct unit numbers the student has rows for."""
    df = prepare_rows(rows)
    units = _student_rows(df, student_name)["unit_no"].dropna()
    return sorted({int(u) for u in units})


def get_student_summaries(rows: Rows) -> List[Dict[str, Any]]:
    """One summary per student, in first-seen order."""
    df = prepare_rows(rows)
    summaries: Dict[str, Dict[str, Any]] = {}
    for _, row in df.iterrows():
        name = row["real_name"]
        if name not in summaries:
            summaries[name] = {
                "name": name,
                "user_id": row.get("user_id"),
                "grade": translate_grade(row.get("package_grade")),
                "teacher": row.get("counselor_name"),
                "row_count": 0,
                "last_unit": 0,
            }
        entry = summaries[name]
        entry["row_count"] += 1
        if pd.notna(row["unit_no"]):
            entry["last_unit"] = max(entry["last_unit"], int(row["unit_no"]))
    return _sanitize(list(summaries.values()))


def find_student_by_id(rows: Rows, user_id: Any) -> Optional[str]:
    """Return the name of the first student whose user id matches."""
    df = prepare_rows(rows)
    target = parse_user_id(user_id)
    if "user_id" not in df.columns or target is None:
        return None
    matches = df[df["user_id"] == target]
    if matches.empty:
        return None
    return matches.iloc[0]["real_name"]


# ── Unit Metrics ────────────────────────────────────────────────────

def _unit_metric(number: int, label: str, completed: bool) -> Dict[str, Any]:
    return {
        "number": number,
        "label": label,
        "accuracy": 0.0,
        "pass_rate": 0.0,
        "time_spent_seconds": 0,
        "completed": completed,
        "status": "high" if completed else "low",
        "status_label": "已完成" if completed else "学习中",
        "wrong_count": 0,
        "class_accuracy": 0.0,
        "class_pass_rate": 0.0,
        "class_time_seconds": 0.0,
        "analysis": "",
    }


def _headteacher_lessons(
    df: pd.DataFrame, student_df: pd.DataFrame, student_name: str, target_unit: int
) -> List[Dict[str, Any]]:
    """One metric per lesson row of the target unit, baselines per lesson."""
    peers = _peer_rows(df, student_name)
    peers = peers[peers["unit_no"] == target_unit]

    lessons = []
    for _, row in student_df[student_df["unit_no"] == target_unit].iterrows():
        if pd.isna(row["lesson_no"]):
            continue
        seq = int(row["lesson_no"])
        same_key = peers[peers["lesson_no"] == seq]

        lesson = _unit_metric(seq, lesson_label(seq), bool(row["finished"]))
        lesson.update({
            "accuracy": float(row["accuracy"]),
            "pass_rate": float(row["pass_rate_pct"]),
            "time_spent_seconds": int(row["seconds"]),
            "wrong_count": int(row["wrong_count"]),
            "class_accuracy": cohort_baseline(same_key["accuracy"]),
            "class_pass_rate": cohort_baseline(same_key["pass_rate_pct"]),
            "class_time_seconds": cohort_baseline(same_key["seconds"]),
        })
        lessons.append(lesson)

    lessons.sort(key=lambda l: l["number"])
    return lessons


def _counselor_units(
    df: pd.DataFrame, student_df: pd.DataFrame, student_name: str, unit_range: Dict[str, int]
) -> List[Dict[str, Any]]:
    """One metric per unit in range; rows merge by running pairwise average."""
    buckets: Dict[int, Dict[str, Any]] = {}
    for _, row in student_df.iterrows():
        if pd.isna(row["unit_no"]):
            continue
        seq = int(row["unit_no"])
        if seq < unit_range["min"] or seq > unit_range["max"]:
            continue

        unit = buckets.get(seq)
        if unit is None:
            unit = _unit_metric(seq, unit_label(seq), False)
            unit["accuracy"] = float(row["accuracy"])
            unit["pass_rate"] = float(row["pass_rate_pct"])
            buckets[seq] = unit
        else:
            # Most recent row weighs half of the unit value.
            unit["accuracy"] = (unit["accuracy"] + float(row["accuracy"])) / 2
            unit["pass_rate"] = (unit["pass_rate"] + float(row["pass_rate_pct"])) / 2

        unit["time_spent_seconds"] += int(row["seconds"])
        unit["wrong_count"] += int(row["wrong_count"])
        if row["finished"]:
            unit.update({"completed": True, "status": "high", "status_label": "已完成"})

    peers = _peer_rows(df, student_name)
    units = [buckets[k] for k in sorted(buckets)]
    for unit in units:
        same_key = peers[peers["unit_no"] == unit["number"]]
        unit["class_accuracy"] = cohort_baseline(same_key["accuracy"])
        unit["class_pass_rate"] = cohort_baseline(same_key["pass_rate_pct"])
        unit["class_time_seconds"] = cohort_baseline(
            same_key.groupby("real_name", sort=False)["seconds"].sum()
        )
        if unit["completed"]:
            unit["analysis"] = (
                MASTERY_ANALYSIS if unit["accuracy"] >= unit["class_accuracy"]
                else REINFORCEMENT_ANALYSIS
            )
    return units


# ── Student Report ──────────────────────────────────────────────────

def compute_student_report(
    rows: Rows,
    student_name: str,
    role: str,
    unit_range=None,
) -> Optional[Dict[str, Any]]:
    """
    Build the report for one student.

    Returns None when the student has no rows. `unit_range` defaults to
    the student's first and last observed unit; head-of-class mode only
    uses its `max`.
    """
    check_role(role)
    df = prepare_rows(rows)
    student_df = _student_rows(df, student_name)
    if student_df.empty:
        logger.info("Student '%s' not found in %d rows", student_name, len(df))
        return None

    unit_range = normalize_unit_range(unit_range)
    if unit_range is None:
        units_seen = sorted({int(u) for u in student_df["unit_no"].dropna()})
        if units_seen:
            unit_range = {"min": units_seen[0], "max": units_seen[-1]}

    if unit_range is None:
        logger.warning("Student '%s' has no rows with a usable unit number", student_name)
        units: List[Dict[str, Any]] = []
    elif role == HEADTEACHER:
        units = _headteacher_lessons(df, student_df, student_name, unit_range["max"])
    else:
        units = _counselor_units(df, student_df, student_name, unit_range)

    first = student_df.iloc[0]
    teacher = first.get("counselor_name")
    total_time = sum(u["time_spent_seconds"] for u in units)
    completed = sum(1 for u in units if u["completed"])

    report: Dict[str, Any] = {
        "student_name": str(student_name).strip(),
        "user_id": first.get("user_id"),
        "grade": translate_grade(first.get("package_grade")),
        "grade_code": first.get("package_grade"),
        "teacher": teacher if isinstance(teacher, str) and teacher else DEFAULT_TEACHER,
        "role": role,
        "unit_range": unit_range,
        "total_time_seconds": total_time,
        "avg_time_per_session": total_time / (len(units) or 1),
        "time_comment": TIME_COMMENTS[role],
        "completed_units_count": completed,
        "average_accuracy": sum(u["accuracy"] for u in units) / (len(units) or 1),
        "units": units,
    }

    if role == HEADTEACHER:
        report["badges"] = evaluate_headteacher_badges(units)
        report["trend"] = classify_accuracy_trend(units)
        report["error_trend"] = classify_error_trend(units)
    else:
        report["badges"] = evaluate_counselor_badges(units)
        report["trend"] = classify_counselor_trend(units)

    logger.debug(
        "Built %s report for '%s': %d units, %d completed",
        role, report["student_name"], len(units), completed,
    )
    return _sanitize(report)
