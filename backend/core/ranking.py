"""
ranking.py — Cohort leaderboard.

Scores every student in the selected unit(s), sorts deterministically and
cuts a window of neighbours around the current student.

Head-of-class: total accuracy over the fixed lesson set RANKING_LESSONS,
ties keep first-seen order.
Counselor: completion rate first; among equal rates the current student
is listed first, then higher mean accuracy.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from core.settings import (
    HEADTEACHER,
    LEADERBOARD_RADIUS,
    MASK_CHAR,
    RANKING_LESSONS,
)
from core.stats import Rows, check_role, normalize_unit_range, prepare_rows

logger = logging.getLogger(__name__)


RANK_COMMENTS = {
    "first": "独占鳌头！你是全班最闪亮的学习明星，展现了非凡的掌握力！",
    "top3": "名列前茅！优秀的学习习惯是你成功的基石，保持这份冲劲！",
    "top20": "表现优异！已进入班级第一梯队，继续保持稳健的步伐，冲刺巅峰！",
    "top50": "进步显著！你正走在稳步提升的阶梯上，离尖子生行列仅一步之遥！",
    "rest": "潜力无限！保持专注与耐心，每一份汗水都会在未来开出灿烂之花！",
    "none": "继续努力，争取更好的成绩！",
}


# ── Helpers ─────────────────────────────────────────────────────────

def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _in_scope(unit: float, unit_range: Dict[str, int], role: str) -> bool:
    if pd.isna(unit):
        return False
    if role == HEADTEACHER:
        return unit == unit_range["max"]
    return unit_range["min"] <= unit <= unit_range["max"]


def mask_name(name: str, is_current: bool = False) -> str:
    """Keep the first character of other students' names, mask the rest."""
    if is_current or not name:
        return name
    return name[0] + MASK_CHAR * max(len(name) - 1, 1)


# ── Ranking ─────────────────────────────────────────────────────────

def compute_rankings(
    rows: Rows,
    unit_range,
    role: str,
    current_student: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Rank every student with rows in scope.

    Returns (entries sorted with 1-based ranks, number of ranked students).
    """
    check_role(role)
    current = str(current_student).strip() if current_student is not None else None
    df = prepare_rows(rows)
    unit_range = normalize_unit_range(unit_range)
    if unit_range is None:
        units = df["unit_no"].dropna()
        if units.empty:
            return [], 0
        unit_range = {"min": int(units.min()), "max": int(units.max())}

    buckets: Dict[str, Dict[str, Any]] = {}
    for _, row in df.iterrows():
        if not _in_scope(row["unit_no"], unit_range, role):
            continue
        bucket = buckets.setdefault(row["real_name"], {
            "accuracies": {},
            "rows": 0,
            "finished": 0,
            "user_id": row.get("user_id"),
        })
        if pd.notna(row["lesson_no"]):
            bucket["accuracies"][int(row["lesson_no"])] = float(row["accuracy"])
        bucket["rows"] += 1
        if row["finished"]:
            bucket["finished"] += 1

    entries = []
    for name, bucket in buckets.items():
        accuracies = bucket["accuracies"]
        if role == HEADTEACHER:
            total_score = _round_half_up(
                sum(accuracies[l] for l in RANKING_LESSONS if l in accuracies)
            )
            avg_accuracy = 0.0
        else:
            total_score = 0
            avg_accuracy = sum(accuracies.values()) / len(accuracies) if accuracies else 0.0

        entries.append({
            "name": name,
            "user_id": bucket["user_id"],
            "accuracies": dict(sorted(accuracies.items())),
            "total_score": total_score,
            "avg_accuracy": avg_accuracy,
            "completion_rate": bucket["finished"] / bucket["rows"] * 100 if bucket["rows"] else 0.0,
            "is_current": name == current,
        })

    if role == HEADTEACHER:
        entries.sort(key=lambda e: -e["total_score"])
    else:
        entries.sort(key=lambda e: (-e["completion_rate"], not e["is_current"], -e["avg_accuracy"]))

    for i, entry in enumerate(entries):
        entry["rank"] = i + 1
        entry["display_name"] = mask_name(entry["name"], entry["is_current"])

    logger.debug("Ranked %d students (%s, range %s)", len(entries), role, unit_range)
    return _sanitize(entries), len(entries)


def leaderboard_window(
    entries: List[Dict[str, Any]],
    current_student: str,
    radius: int = LEADERBOARD_RADIUS,
) -> List[Dict[str, Any]]:
    """Entries from `radius` places above to `radius` places below the student."""
    current = str(current_student).strip()
    idx = next((i for i, e in enumerate(entries) if e["name"] == current), None)
    if idx is None:
        return []
    return entries[max(0, idx - radius): idx + radius + 1]


def rank_comment(rank: Optional[int], total: int) -> str:
    """Encouragement line for the student's leaderboard position."""
    if not rank:
        return RANK_COMMENTS["none"]
    ratio = rank / (total or 1)
    if rank == 1:
        return RANK_COMMENTS["first"]
    if rank <= 3:
        return RANK_COMMENTS["top3"]
    if ratio <= 0.2:
        return RANK_COMMENTS["top20"]
    if ratio <= 0.5:
        return RANK_COMMENTS["top50"]
    return RANK_COMMENTS["rest"]


def build_leaderboard(
    rows: Rows,
    unit_range,
    role: str,
    current_student: str,
) -> Dict[str, Any]:
    """Ranking window, cohort size and comment for one student's report."""
    entries, total = compute_rankings(rows, unit_range, role, current_student)
    mine = next((e for e in entries if e["is_current"]), None)
    return {
        "entries": leaderboard_window(entries, current_student),
        "total": total,
        "current": mine,
        "comment": rank_comment(mine["rank"] if mine else None, total),
    }
