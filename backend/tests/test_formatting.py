"""
Tests for core/formatting.py — display labels, overrides and monthly summary.
"""

import copy
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.formatting import (
    ReportOverrides,
    association_kind,
    format_report,
    parse_override_lines,
)


def _unit(number, accuracy, class_accuracy, completed=True, seconds=600):
    return {
        "number": number,
        "label": f"第{number}单元",
        "accuracy": accuracy,
        "class_accuracy": class_accuracy,
        "completed": completed,
        "time_spent_seconds": seconds,
        "analysis": "掌握扎实，超越平均" if completed else "",
    }


@pytest.fixture
def counselor_report():
    return {
        "student_name": "A",
        "role": "counselor",
        "grade_code": "three",
        "unit_range": {"min": 1, "max": 4},
        "total_time_seconds": 3661,
        "units": [
            _unit(1, 80, 70),
            _unit(2, 60, 60),
            _unit(3, 90, 50),
            _unit(4, 0, 70, completed=False),
        ],
    }


@pytest.fixture
def headteacher_report():
    return {
        "student_name": "A",
        "role": "headteacher",
        "grade_code": "four",
        "unit_range": {"min": 1, "max": 1},
        "total_time_seconds": 1200,
        "units": [_unit(0, 40, 50), _unit(1, 60, 50), _unit(2, 70, 50), _unit(6, 80, 50)],
    }


@pytest.fixture
def overrides():
    return ReportOverrides.from_text(
        unit_names="分数\n\n小数",
        associations="高频考点\n重点\n思维拓展",
        knowledge_point_counts="3\n4\nx\n5",
        error_counts="1\n\n2\n2",
    )


class TestOverrides:

    def test_parse_lines(self):
        assert parse_override_lines("a\n b \n\nc") == ["a", "b", "", "c"]

    def test_parse_empty(self):
        assert parse_override_lines(None) == []
        assert parse_override_lines("") == []

    def test_from_text(self, overrides):
        assert overrides.unit_names == ("分数", "", "小数")

    def test_frozen(self, overrides):
        with pytest.raises(Exception):
            overrides.unit_names = ()

    def test_association_kind(self):
        assert association_kind("高频考点") == "high_frequency"
        assert association_kind("重点") == "focus"
        assert association_kind("思维拓展") == "extension"
        assert association_kind("其他") == "plain"
        assert association_kind("") == ""


class TestCounselorFormatting:

    def test_labels(self, counselor_report, overrides):
        result = format_report(counselor_report, overrides)
        assert [r["label"] for r in result["rows"]] == ["分数", "第2单元", "小数", "第4单元"]

    def test_associations(self, counselor_report, overrides):
        result = format_report(counselor_report, overrides)
        kinds = [r["association_kind"] for r in result["rows"]]
        assert kinds == ["high_frequency", "focus", "extension", ""]

    def test_incomplete_unit_invites_challenge(self, counselor_report, overrides):
        result = format_report(counselor_report, overrides)
        assert result["rows"][3]["analysis"] == "【第4单元】等你挑战"
        assert result["rows"][0]["analysis"] == "掌握扎实，超越平均"

    def test_monthly_summary(self, counselor_report, overrides):
        summary = format_report(counselor_report, overrides)["monthly_summary"]
        assert summary["total_knowledge_points"] == 12
        assert summary["total_errors"] == 5
        assert summary["total_minutes"] == 62
        assert summary["above_average_units"] == "分数、小数"
        assert summary["below_average_units"] == "第2单元、第4单元"

    def test_no_summary_unless_four_units(self, counselor_report):
        counselor_report["units"] = counselor_report["units"][:3]
        assert format_report(counselor_report)["monthly_summary"] is None

    def test_title_and_time(self, counselor_report):
        result = format_report(counselor_report)
        assert result["title"] == "A 1-4单元 学习报告"
        assert result["total_time_display"] == "1小时 2分钟"
        assert result["curriculum"] == "三年级"

    def test_report_not_modified(self, counselor_report, overrides):
        before = copy.deepcopy(counselor_report)
        format_report(counselor_report, overrides)
        assert counselor_report == before


class TestHeadteacherFormatting:

    def test_curriculum_titles(self, headteacher_report):
        rows = format_report(headteacher_report)["rows"]
        assert [r["label"] for r in rows] == ["课前测", "盈亏问题", "生活中的计数原理", "第6讲"]

    def test_custom_name_wins(self, headteacher_report):
        rows = format_report(headteacher_report, ReportOverrides.from_text(unit_names="\n自定义"))["rows"]
        assert rows[2]["label"] == "自定义"

    def test_explicit_curriculum(self, headteacher_report):
        rows = format_report(headteacher_report, curriculum_key="五年级")["rows"]
        assert rows[1]["label"] == "基础行程问题"

    def test_default_curriculum_for_kindergarten(self, headteacher_report):
        headteacher_report["grade_code"] = "k"
        assert format_report(headteacher_report)["curriculum"] == "一年级"

    def test_no_associations(self, headteacher_report, overrides):
        rows = format_report(headteacher_report, overrides)["rows"]
        assert all(r["association"] == "" for r in rows)

    def test_title(self, headteacher_report):
        result = format_report(headteacher_report)
        assert result["title"] == "A 专属学习报告"
        assert result["monthly_summary"] is None
