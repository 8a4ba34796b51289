"""
narrative.py — Rule-based trend classification and narrative templates.

Inspects a student's ordered per-lesson (or per-unit) metrics and picks one
narrative category. Templates are plain f-strings — zero AI dependency.

Rule set (head-of-class):
- accuracy: not started → strictly rising streak → pre-test comparison
  (improving / potential) → stable
- wrong answers: not started → non-increasing streak → pre-test comparison
  (improving / extension) → stable

Rule set (counselor): always at/above cohort and rising → always above →
tracking the cohort.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.settings import PRETEST_LESSON


# ── Sequence Helpers ────────────────────────────────────────────────

def split_pretest(units: Sequence[Dict[str, Any]]) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
    """Return (pre-test lesson or None, lessons after the pre-test in order)."""
    pretest = next((u for u in units if u["number"] == PRETEST_LESSON), None)
    active = sorted(
        (u for u in units if u["number"] > PRETEST_LESSON),
        key=lambda u: u["number"],
    )
    return pretest, active


def is_strictly_rising(values: Sequence[float]) -> bool:
    """Every consecutive pair increases; needs at least two points."""
    if len(values) < 2:
        return False
    return all(b > a for a, b in zip(values, values[1:]))


def is_non_increasing(values: Sequence[float]) -> bool:
    """No consecutive pair increases (ties allowed); needs at least two points."""
    if len(values) < 2:
        return False
    return all(b <= a for a, b in zip(values, values[1:]))


def _trend(status: str, title: str, content: str, **values: Any) -> Dict[str, Any]:
    return {"status": status, "title": title, "content": content, **values}


# ── Accuracy Narratives (head-of-class) ─────────────────────────────

def narrate_rising_accuracy(first: float, latest: float) -> str:
    return (
        f"完美的阶梯式成长！每一节课的挑战都稳稳拿下，正确率从{first:.0f}%"
        f"一路升至{latest:.0f}%，学习路径与孩子的努力同频共振。"
    )


def narrate_improvement(pretest: float, latest: float, lesson: int) -> str:
    gap = abs(latest - pretest)
    return (
        f"太棒了！对比课前测（正确率{pretest:.0f}%），第{lesson}课的正确率已提升至"
        f"{latest:.0f}%，{gap:.0f}个百分点的跨越清晰展现了进步！"
    )


def narrate_potential(lesson: int) -> str:
    return (
        f"值得点赞！从课前测到第{lesson}节课，孩子展现了出色的坚持与思考习惯。"
        f"面对不断升级的挑战仍兴趣盎然，这份专注力是未来突破的最大潜力。"
    )


def classify_accuracy_trend(units: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Pick the accuracy narrative for a head-of-class lesson sequence."""
    pretest, active = split_pretest(units)
    if not active:
        return _trend(
            "not_started", "开启挑战",
            "已准备就绪，期待开启精彩的思维闯关之旅！",
        )

    first, latest = active[0], active[-1]
    if is_strictly_rising([u["accuracy"] for u in active]):
        return _trend(
            "rising", "完美的阶梯式成长",
            narrate_rising_accuracy(first["accuracy"], latest["accuracy"]),
            first=first["accuracy"], latest=latest["accuracy"],
        )

    if pretest is not None:
        gap = latest["accuracy"] - pretest["accuracy"]
        values = {
            "pretest": pretest["accuracy"],
            "latest": latest["accuracy"],
            "gap": abs(gap),
            "lesson": latest["number"],
        }
        if gap > 0:
            return _trend(
                "improving", "进步跨越，表现亮眼",
                narrate_improvement(pretest["accuracy"], latest["accuracy"], latest["number"]),
                **values,
            )
        return _trend(
            "potential", "坚持思考，潜力无限",
            narrate_potential(latest["number"]),
            **values,
        )

    return _trend(
        "stable", "保持状态",
        "展现了出色的学习习惯，面对挑战毫不退缩。保持这份专注力，下一次突破就在眼前！",
        latest=latest["accuracy"],
    )


# ── Error-Count Narratives (head-of-class) ──────────────────────────

def narrate_error_streak(first: int, latest: int) -> str:
    if latest < first:
        return f"步步为营，错题从{first}次降到{latest}次，学习习惯与效果俱佳，进步飞速！"
    return "步步为营，错题逐课不增，学习习惯与效果俱佳，进步飞速！"


def classify_error_trend(units: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Pick the wrong-answer narrative for a head-of-class lesson sequence."""
    pretest, active = split_pretest(units)
    if not active:
        return _trend("not_started", "学习足迹", "暂无记录，期待精彩表现。")

    first, latest = active[0], active[-1]
    if is_non_increasing([u["wrong_count"] for u in active]):
        return _trend(
            "success", "步步为营，飞速进步",
            narrate_error_streak(first["wrong_count"], latest["wrong_count"]),
            first=first["wrong_count"], latest=latest["wrong_count"],
        )

    if pretest is not None:
        gap = latest["wrong_count"] - pretest["wrong_count"]
        values = {
            "pretest": pretest["wrong_count"],
            "latest": latest["wrong_count"],
            "gap": abs(gap),
        }
        if gap < 0:
            return _trend(
                "improving", "成效显著",
                f"错题比课前测少了{abs(gap)}次，可见知识掌握越发扎实牢固！",
                **values,
            )
        if gap > 0:
            return _trend(
                "extension", "思维拓展",
                "挑战升级，敢于尝试复杂题目，正是思维深入拓展的表现！",
                **values,
            )

    return _trend(
        "stable", "专注攻克",
        "每一道错题的订正都是一次思维的重塑，保持这种认真的学习态度。",
        latest=latest["wrong_count"],
    )


# ── Cohort Narratives (counselor) ───────────────────────────────────

def classify_counselor_trend(units: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Compare each unit against its cohort baseline and first vs last unit."""
    if not units:
        return _trend("stable", "稳步提升", "继续保持良好的学习状态！")

    first, last = units[0], units[-1]
    always_above = all(u["accuracy"] >= u["class_accuracy"] for u in units)
    rising = last["accuracy"] > first["accuracy"]
    values = {"first": first["accuracy"], "latest": last["accuracy"]}

    if always_above and rising:
        return _trend(
            "rising", "持续领先且上升",
            "表现优秀且持续进步！各单元正确率均不低于班级平均水平并稳步上升。",
            **values,
        )
    if always_above:
        return _trend(
            "above", "整体领先",
            "整体表现稳定领先！基础扎实，保持这个节奏。",
            **values,
        )
    return _trend(
        "stable", "紧跟步伐",
        "表现稳定，跟紧班级步伐，突破薄弱环节有望实现领先。",
        **values,
    )
