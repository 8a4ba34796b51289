"""
badges.py — Achievement badges derived from aggregated lesson metrics.

Head-of-class mode: four star badges (0–MAX_STARS), each counting the
lessons after the pre-test that satisfy one predicate:
- Progress:      accuracy above the pre-test accuracy
- Persistence:   lesson completed
- Time:          elapsed time below the lesson's cohort-average time
- Sprint:        accuracy at or above SPRINT_ACCURACY

Counselor mode: one completion badge and one accuracy badge, two tiers each.
"""

from typing import Any, Dict, List, Sequence

from core.narrative import split_pretest
from core.settings import (
    GOLD_COMPLETION_UNITS,
    MAX_STARS,
    MODEL_ACCURACY,
    SPRINT_ACCURACY,
)


# ── Badge Library ───────────────────────────────────────────────────

STAR_BADGES = {
    "progress": {
        "name": "学习进步徽章", "type": "accuracy", "level": "progress",
        "description": "每一次突破，都是对自我的超越，你是最棒的进步小达人！",
    },
    "persistence": {
        "name": "坚持小达人", "type": "completion", "level": "growth",
        "description": "滴水穿石，你的每一份坚持都在为成功的未来铺路，继续保持！",
    },
    "time": {
        "name": "时间小飞侠", "type": "accuracy", "level": "potential",
        "description": "灵动如闪电，你的高效思维让学习变得如此轻松，为你点赞！",
    },
    "sprint": {
        "name": "满分冲刺星", "type": "accuracy", "level": "master",
        "description": "瞄准目标，全力以赴，你的专注让每一个关卡都变得简单！",
    },
}

COMPLETION_BADGES = {
    "gold": {
        "name": "金牌完课王", "type": "completion", "level": "gold",
        "description": "金牌成就达成！全课程通关，你就是学习王者！",
    },
    "star": {
        "name": "学习之星", "type": "completion", "level": "star",
        "description": "学习之星已点亮！表现非常亮眼，加油向前冲！",
    },
}

ACCURACY_BADGES = {
    "model": {
        "name": "学习典范", "type": "accuracy", "level": "model",
        "description": "你的学习质量极高，展现典范级的掌握力。",
    },
    "master": {
        "name": "稳定高手", "type": "accuracy", "level": "master",
        "description": "稳定且扎实，保持这个节奏！",
    },
}


# ── Head-of-Class Stars ─────────────────────────────────────────────

def count_star_lessons(lessons: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    """Count qualifying lessons per badge predicate (unclamped)."""
    pretest, active = split_pretest(lessons)
    counts = {key: 0 for key in STAR_BADGES}

    for lesson in active:
        if pretest is not None:
            if lesson["accuracy"] > pretest["accuracy"]:
                counts["progress"] += 1
            if 0 < lesson["time_spent_seconds"] < lesson["class_time_seconds"]:
                counts["time"] += 1
        if lesson["completed"]:
            counts["persistence"] += 1
        if lesson["accuracy"] >= SPRINT_ACCURACY:
            counts["sprint"] += 1

    return counts


def evaluate_headteacher_badges(lessons: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    counts = count_star_lessons(lessons)
    return [
        {**STAR_BADGES[key], "stars": min(MAX_STARS, counts[key])}
        for key in STAR_BADGES
    ]


# ── Counselor Tiers ─────────────────────────────────────────────────

def completion_badge(completed_units: int) -> Dict[str, Any]:
    tier = "gold" if completed_units >= GOLD_COMPLETION_UNITS else "star"
    return dict(COMPLETION_BADGES[tier])


def accuracy_badge(average_accuracy: float) -> Dict[str, Any]:
    tier = "model" if average_accuracy >= MODEL_ACCURACY else "master"
    return dict(ACCURACY_BADGES[tier])


def evaluate_counselor_badges(units: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    completed = sum(1 for u in units if u["completed"])
    average = sum(u["accuracy"] for u in units) / len(units) if units else 0.0
    return [completion_badge(completed), accuracy_badge(average)]
