"""
grading.py - Grade code translation and default display labels.

Grade codes in the export are short English tokens (pk, k, one ... six);
reports show the Chinese grade name instead.
"""

from typing import Any, Dict, List, Optional

import pandas as pd


# Substring fallback tries the codes in this order, so "k_one" is a
# kindergarten code.
GRADE_NAMES = [
    ("pk", "幼儿园小班"),
    ("k", "幼儿园大班"),
    ("one", "一年级"),
    ("two", "二年级"),
    ("three", "三年级"),
    ("four", "四年级"),
    ("five", "五年级"),
    ("six", "六年级"),
]

UNKNOWN_GRADE = "未知年级"

# Lesson titles per grade, used for head-of-class lessons 1-5.
CURRICULA: Dict[str, List[str]] = {
    "一年级": ["应用题——比较多少初步", "应用题——比较多少进阶", "逻辑推理——顺序", "逻辑推理——不等", "逻辑推理——相等"],
    "一年级弹窗": ["空间想象——正方体计数", "空间想象——数数看不见", "逻辑推理——顺序", "逻辑推理——不等", "逻辑推理——相等"],
    "二年级": ["应用题——复杂的排队问题初步", "应用题——复杂的排队问题进阶", "应用题——还原倒推", "数感——横式数字谜初步", "数感——横式数字谜进阶"],
    "三年级": ["应用题——年龄问题初步", "应用题——年龄问题进阶", "转化思想—巧求最短路线", "计算——巧填算符", "计算——巧解整数计算"],
    "四年级": ["盈亏问题", "生活中的计数原理", "图形中的计数原理", "长方形中的倍数关系", "数形结合"],
    "五年级": ["基础行程问题", "环形路线问题", "火车行程问题", "小数乘除法巧算", "小数提取公因数"],
    "六年级": ["间隔发车问题", "特殊法比较分数大小", "操作与规律", "不定方程", "短除模型"],
}

DEFAULT_CURRICULUM = next(iter(CURRICULA))


def translate_grade(code: Any) -> str:
    """Map a grade code to its display name; unknown codes pass through."""
    if code is None or (not isinstance(code, str) and pd.isna(code)):
        return UNKNOWN_GRADE
    raw = str(code).strip()
    if not raw:
        return UNKNOWN_GRADE

    lowered = raw.lower()
    exact = dict(GRADE_NAMES)
    if lowered in exact:
        return exact[lowered]
    for key, name in GRADE_NAMES:
        if key in lowered:
            return name
    return raw


def curriculum_key_for_grade(code: Any) -> Optional[str]:
    """Pick the curriculum matching a student's grade (school grades only)."""
    name = translate_grade(code)
    return name if name in CURRICULA else None


def lesson_label(seq: int) -> str:
    return "课前测" if seq == 0 else f"第{seq}讲"


def unit_label(seq: int) -> str:
    return f"第{seq}单元"
