"""
cleaner.py — Field normalization for raw lesson records.

Handles:
- Rate parsing (fractions, percentage strings, plain percentages)
- Duration parsing ("2分30秒", "3m 20s", plain seconds)
- Unit / lesson sequence and wrong-count parsing
- Finish status standardization
- Canonical column derivation + cleaning report

Every parser here is total: malformed input becomes 0 (or None for
sequences) instead of raising, so aggregation never fails on a bad cell.
"""

import logging
import math
import re
from numbers import Number
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from core.settings import FINISHED_STATUS

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))")
_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")

_HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:小时|hours?|hrs?|h)", re.IGNORECASE)
_MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s*(?:分钟|分|minutes?|mins?|m(?![a-z]))", re.IGNORECASE)
_SECONDS = re.compile(r"(\d+(?:\.\d+)?)\s*(?:秒钟|秒|seconds?|secs?|s(?![a-z]))", re.IGNORECASE)


# ── Helpers ─────────────────────────────────────────────────────────

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (Number, np.number)) and not isinstance(value, (bool, np.bool_))


def _leading_float(text: str) -> Optional[float]:
    """parseFloat-style: read the leading number of a string, if any."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return None
    return float(match.group(1))


def _clamp_rate(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return max(0.0, min(100.0, value))


# ── Rate / Duration Parsing ─────────────────────────────────────────

def parse_rate(value: Any) -> float:
    """
    Normalize an accuracy / pass rate to a 0-100 percentage.

    Numbers are fractions of one (0.85 -> 85). Strings with '%' are read
    literally; other numeric strings <= 1 are fractions, larger ones are
    already percentages.
    """
    if _is_missing(value):
        return 0.0
    if _is_number(value):
        return _clamp_rate(float(value) * 100)
    if not isinstance(value, str):
        return 0.0

    text = value.strip()
    if "%" in text:
        parsed = _leading_float(text.replace("%", ""))
        return _clamp_rate(parsed) if parsed is not None else 0.0

    parsed = _leading_float(text)
    if parsed is None:
        return 0.0
    return _clamp_rate(parsed * 100 if parsed <= 1 else parsed)


def parse_seconds(value: Any) -> int:
    """Normalize an elapsed time to whole, non-negative seconds."""
    if _is_missing(value):
        return 0
    if _is_number(value):
        v = float(value)
        if math.isnan(v) or math.isinf(v):
            return 0
        return max(0, int(v))

    text = str(value).strip()
    if not text:
        return 0

    hours = _HOURS.search(text)
    minutes = _MINUTES.search(text)
    seconds = _SECONDS.search(text)
    if hours or minutes or seconds:
        total = 0.0
        if hours:
            total += float(hours.group(1)) * 3600
        if minutes:
            total += float(minutes.group(1)) * 60
        if seconds:
            total += float(seconds.group(1))
        return int(total)

    parsed = _leading_float(text)
    return max(0, int(parsed)) if parsed is not None else 0


def parse_sequence(value: Any) -> Optional[int]:
    """parseInt-style unit/lesson number; None when there is no number."""
    if _is_missing(value):
        return None
    if _is_number(value):
        v = float(value)
        return None if math.isnan(v) or math.isinf(v) else int(v)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def parse_count(value: Any) -> int:
    """Wrong-answer count; anything unparseable counts as 0."""
    seq = parse_sequence(value)
    return max(0, seq) if seq is not None else 0


def parse_user_id(value: Any) -> Optional[str]:
    """
    User id as text; None when missing.

    Integer-valued floats lose the '.0' pandas adds when a numeric id
    column also holds missing values (1001.0 -> "1001").
    """
    if _is_missing(value):
        return None
    if _is_number(value):
        v = float(value)
        if v.is_integer():
            return str(int(v))
    text = str(value).strip()
    return text or None


# ── Finish Status Standardization ──────────────────────────────────

FINISHED_ALIASES = {
    FINISHED_STATUS, "已完课", "已完成", "完成",
    "finished", "completed", "complete", "done",
}


def is_finished(status: Any) -> bool:
    """True when a row's finish status marks the lesson as completed."""
    if _is_missing(status):
        return False
    cleaned = str(status).strip()
    return cleaned in FINISHED_ALIASES or cleaned.lower() in FINISHED_ALIASES


def format_duration(seconds: Any) -> str:
    """Render seconds as '1小时 5分钟' / '12分钟' (minutes rounded up)."""
    try:
        total = float(seconds)
    except (TypeError, ValueError):
        return "0分钟"
    if not total or math.isnan(total) or total < 0:
        return "0分钟"

    hours = int(total // 3600)
    mins = math.ceil((total % 3600) / 60)
    if hours > 0:
        return f"{hours}小时 {mins}分钟" if mins > 0 else f"{hours}小时"
    return f"{mins}分钟"


# ── Main Normalization Pipeline ─────────────────────────────────────

def normalize_records(df: pd.DataFrame) -> Tuple[pd.DataFrame, Dict]:
    """
    Derive canonical numeric columns from raw rows.

    Returns (normalized_df, cleaning_report). The input frame is copied,
    never modified. Row order is preserved because counselor-mode unit
    averaging depends on it.
    """
    report: Dict = {
        "original_rows": len(df),
        "original_columns": len(df.columns),
        "steps": [],
        "warnings": [],
    }

    cleaned = df.copy().reset_index(drop=True)

    # ── 1. Trim identifiers ─────────────────────────────────────────
    for col in ("real_name", "counselor_name", "package_grade", "unit_finish_status"):
        if col in cleaned.columns:
            cleaned[col] = cleaned[col].apply(lambda v: v.strip() if isinstance(v, str) else v)
    if "user_id" in cleaned.columns:
        cleaned["user_id"] = cleaned["user_id"].apply(parse_user_id).astype(object)
    report["steps"].append("Trimmed whitespace from identifier fields.")

    # ── 2. Sequences ───────────────────────────────────────────────
    cleaned["unit_no"] = pd.to_numeric(
        _column(cleaned, "level_sequence").apply(parse_sequence), errors="coerce"
    )
    cleaned["lesson_no"] = pd.to_numeric(
        _column(cleaned, "unit_sequence").apply(parse_sequence), errors="coerce"
    )
    bad_units = int(cleaned["unit_no"].isna().sum())
    if bad_units:
        report["warnings"].append(
            f"{bad_units} rows have no usable unit number and will be ignored."
        )
    report["steps"].append("Parsed unit and lesson sequence numbers.")

    # ── 3. Rates and durations ─────────────────────────────────────
    cleaned["accuracy"] = _column(cleaned, "answer_right_rate").apply(parse_rate)
    cleaned["pass_rate_pct"] = _column(cleaned, "pass_rate").apply(parse_rate)
    cleaned["seconds"] = _column(cleaned, "first_cost_seconds").apply(parse_seconds)
    report["steps"].append("Converted rates to percentages and durations to seconds.")

    # ── 4. Wrong-answer counts ─────────────────────────────────────
    step_fail = _column(cleaned, "first_finish_answer_step_fail_cnt")
    wrong = _column(cleaned, "wrong_answer_count")
    cleaned["wrong_count"] = [
        parse_count(primary if not _is_missing(primary) else fallback)
        for primary, fallback in zip(step_fail, wrong)
    ]

    # ── 5. Completion ──────────────────────────────────────────────
    cleaned["finished"] = _column(cleaned, "unit_finish_status").apply(is_finished)
    report["steps"].append(
        f"Marked {int(cleaned['finished'].sum())} of {len(cleaned)} rows as completed."
    )

    zero_rates = int((cleaned["accuracy"] <= 0).sum())
    if zero_rates:
        report["warnings"].append(
            f"{zero_rates} rows have a zero accuracy; they are treated as missing "
            "in cohort averages."
        )

    report["cleaned_rows"] = len(cleaned)
    report["cleaned_columns"] = len(cleaned.columns)
    report["columns"] = list(cleaned.columns)
    logger.debug("Normalized %d rows (%d warnings)", len(cleaned), len(report["warnings"]))

    return cleaned, report


def generate_cleaning_report(report: Dict) -> str:
    """Generate a human-readable normalization report text."""
    lines = [
        "═══ Data Normalization Report ═══",
        f"Original:   {report['original_rows']} rows × {report['original_columns']} columns",
        f"Normalized: {report['cleaned_rows']} rows × {report['cleaned_columns']} columns",
        "",
        "Steps performed:",
    ]
    for i, step in enumerate(report["steps"], 1):
        lines.append(f"  {i}. {step}")

    if report["warnings"]:
        lines.append("")
        lines.append("⚠ Warnings:")
        for w in report["warnings"]:
            lines.append(f"  • {w}")

    return "\n".join(lines)


# ── Helpers ─────────────────────────────────────────────────────────

def _column(df: pd.DataFrame, name: str) -> pd.Series:
    """Return a column, or an all-missing series when it is absent."""
    if name in df.columns:
        return df[name]
    return pd.Series([None] * len(df), index=df.index, dtype=object)


def to_frame(rows) -> pd.DataFrame:
    """Accept a DataFrame or a list of row dicts."""
    if isinstance(rows, pd.DataFrame):
        return rows
    return pd.DataFrame(list(rows or []))
