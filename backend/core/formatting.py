"""
formatting.py — Display formatting for an aggregated report.

User overrides (custom unit names, association tags, knowledge-point and
error counts) arrive as an explicit ReportOverrides object. They only
affect what is displayed; the aggregated report is never modified.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from core.cleaner import format_duration, parse_count
from core.grading import (
    CURRICULA,
    DEFAULT_CURRICULUM,
    curriculum_key_for_grade,
    lesson_label,
    unit_label,
)
from core.settings import HEADTEACHER, MONTHLY_SUMMARY_UNITS, PRETEST_LESSON


@dataclass(frozen=True)
class ReportOverrides:
    """Per-unit display overrides, each indexed by unit number - 1."""

    unit_names: Sequence[str] = field(default_factory=tuple)
    associations: Sequence[str] = field(default_factory=tuple)
    knowledge_point_counts: Sequence[str] = field(default_factory=tuple)
    error_counts: Sequence[str] = field(default_factory=tuple)

    @classmethod
    def from_text(
        cls,
        unit_names: str = "",
        associations: str = "",
        knowledge_point_counts: str = "",
        error_counts: str = "",
    ) -> "ReportOverrides":
        """Build overrides from one-value-per-line text blocks."""
        return cls(
            unit_names=tuple(parse_override_lines(unit_names)),
            associations=tuple(parse_override_lines(associations)),
            knowledge_point_counts=tuple(parse_override_lines(knowledge_point_counts)),
            error_counts=tuple(parse_override_lines(error_counts)),
        )


def parse_override_lines(text: Optional[str]) -> List[str]:
    """Split a multi-line input into trimmed values (blank lines kept as '')."""
    if not text:
        return []
    return [line.strip() for line in str(text).split("\n")]


def _at(values: Sequence[str], number: int) -> str:
    idx = number - 1
    if 0 <= idx < len(values):
        return values[idx] or ""
    return ""


# ── Labels ──────────────────────────────────────────────────────────

def display_label(
    number: int,
    role: str,
    overrides: ReportOverrides,
    curriculum: Sequence[str],
) -> str:
    """Custom name → curriculum title (head-of-class lessons) → default label."""
    if number == PRETEST_LESSON:
        return lesson_label(number)
    custom = _at(overrides.unit_names, number).strip()
    if custom:
        return custom
    if role == HEADTEACHER:
        if 1 <= number <= len(curriculum):
            return curriculum[number - 1]
        return lesson_label(number)
    return unit_label(number)


def association_kind(text: str) -> str:
    """Classify a free-text association tag for styling."""
    if not text:
        return ""
    if "高频" in text:
        return "high_frequency"
    if "重点" in text:
        return "focus"
    if "拓展" in text or "思维" in text:
        return "extension"
    return "plain"


# ── Monthly Summary (counselor) ─────────────────────────────────────

def monthly_summary(
    rows: Sequence[Dict[str, Any]],
    overrides: ReportOverrides,
    total_time_seconds: float,
) -> Dict[str, Any]:
    total_kps = 0
    total_errors = 0
    above: List[str] = []
    below: List[str] = []
    for row in rows:
        total_kps += parse_count(_at(overrides.knowledge_point_counts, row["number"]))
        total_errors += parse_count(_at(overrides.error_counts, row["number"]))
        if row["accuracy"] > row["class_accuracy"]:
            above.append(row["label"])
        else:
            below.append(row["label"])

    return {
        "total_knowledge_points": total_kps,
        "total_errors": total_errors,
        "total_minutes": math.ceil(total_time_seconds / 60),
        "above_average_units": "、".join(above),
        "below_average_units": "、".join(below),
    }


# ── Report Formatting ───────────────────────────────────────────────

def format_report(
    report: Dict[str, Any],
    overrides: Optional[ReportOverrides] = None,
    curriculum_key: Optional[str] = None,
) -> Dict[str, Any]:
    """Produce display rows, title and summary for a report."""
    overrides = overrides or ReportOverrides()
    role = report["role"]
    is_ht = role == HEADTEACHER

    key = curriculum_key or curriculum_key_for_grade(report.get("grade_code")) or DEFAULT_CURRICULUM
    curriculum = CURRICULA.get(key, [])

    rows = []
    for unit in report["units"]:
        number = unit["number"]
        label = display_label(number, role, overrides, curriculum)
        association = "" if is_ht or number == PRETEST_LESSON else _at(overrides.associations, number)
        rows.append({
            **unit,
            "label": label,
            "association": association,
            "association_kind": association_kind(association),
            "analysis": unit["analysis"] if unit["completed"] else f"【{label}】等你挑战",
            "time_display": format_duration(unit["time_spent_seconds"]),
        })

    if is_ht:
        title = f"{report['student_name']} 专属学习报告"
    else:
        unit_range = report.get("unit_range") or {}
        title = f"{report['student_name']} {unit_range.get('min')}-{unit_range.get('max')}单元 学习报告"

    summary = None
    if not is_ht and len(rows) == MONTHLY_SUMMARY_UNITS:
        summary = monthly_summary(rows, overrides, report["total_time_seconds"])

    return {
        "title": title,
        "curriculum": key,
        "rows": rows,
        "total_time_display": format_duration(report["total_time_seconds"]),
        "monthly_summary": summary,
    }
