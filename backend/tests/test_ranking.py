"""
Tests for core/ranking.py — scoring, ordering, tie-breaks, masking and windowing.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.ranking import (
    RANK_COMMENTS,
    build_leaderboard,
    compute_rankings,
    leaderboard_window,
    mask_name,
    rank_comment,
)


def _row(name, unit, lesson, rate, status="完课"):
    return {
        "real_name": name,
        "level_sequence": str(unit),
        "unit_sequence": str(lesson),
        "unit_finish_status": status,
        "answer_right_rate": rate,
    }


@pytest.fixture
def headteacher_rows():
    return [
        _row("P", 2, 0, "50%"),
        _row("P", 2, 1, "60%"),
        _row("Q", 2, 0, "80%"),
        _row("Q", 2, 1, "30%"),
        _row("Q", 2, 6, "90%"),
        _row("R", 2, 0, "45.5%"),
        _row("R", 2, 1, "0%"),
        _row("R", 1, 1, "100%"),
    ]


@pytest.fixture
def counselor_rows():
    return [
        _row("X", 1, 1, "90%"),
        _row("T", 1, 1, "60%"),
        _row("Y", 1, 1, "99%", status="未完课"),
    ]


class TestHeadteacherRanking:

    def test_scores_fixed_lesson_set(self, headteacher_rows):
        entries, total = compute_rankings(headteacher_rows, (2, 2), "headteacher")
        scores = {e["name"]: e["total_score"] for e in entries}
        assert total == 3
        assert scores == {"P": 110, "Q": 110, "R": 46}

    def test_ties_keep_first_seen_order(self, headteacher_rows):
        entries, _ = compute_rankings(headteacher_rows, (2, 2), "headteacher")
        assert [e["name"] for e in entries] == ["P", "Q", "R"]
        assert [e["rank"] for e in entries] == [1, 2, 3]

    def test_score_rounds_half_up(self):
        entries, _ = compute_rankings([_row("A", 1, 1, "12.5%")], (1, 1), "headteacher")
        assert entries[0]["total_score"] == 13

    def test_only_target_unit(self, headteacher_rows):
        entries, total = compute_rankings(headteacher_rows, (1, 1), "headteacher")
        assert total == 1
        assert entries[0]["name"] == "R"
        assert entries[0]["total_score"] == 100

    def test_deterministic(self, headteacher_rows):
        first = compute_rankings(headteacher_rows, (2, 2), "headteacher", "Q")
        second = compute_rankings(headteacher_rows, (2, 2), "headteacher", "Q")
        assert first == second


class TestCounselorRanking:

    def test_current_student_wins_completion_tie(self, counselor_rows):
        entries, _ = compute_rankings(counselor_rows, (1, 1), "counselor", "T")
        assert [e["name"] for e in entries] == ["T", "X", "Y"]

    def test_accuracy_breaks_tie_without_current(self, counselor_rows):
        entries, _ = compute_rankings(counselor_rows, (1, 1), "counselor")
        assert [e["name"] for e in entries] == ["X", "T", "Y"]

    def test_completion_rate(self, counselor_rows):
        entries, _ = compute_rankings(counselor_rows, (1, 1), "counselor")
        rates = {e["name"]: e["completion_rate"] for e in entries}
        assert rates == {"X": 100, "T": 100, "Y": 0}

    def test_mean_accuracy_per_lesson(self):
        rows = [_row("A", 1, 1, "40%"), _row("A", 1, 2, "80%"), _row("A", 2, 1, "60%")]
        entries, _ = compute_rankings(rows, (1, 1), "counselor")
        assert entries[0]["avg_accuracy"] == 60

    def test_default_range_covers_all_units(self):
        rows = [_row("A", 1, 1, "40%"), _row("B", 3, 1, "80%")]
        _, total = compute_rankings(rows, None, "counselor")
        assert total == 2

    def test_no_units(self):
        assert compute_rankings([], None, "counselor") == ([], 0)

    def test_invalid_role(self, counselor_rows):
        with pytest.raises(ValueError):
            compute_rankings(counselor_rows, (1, 1), "nobody")


class TestMasking:

    def test_mask_other_students(self):
        assert mask_name("张三") == "张x"
        assert mask_name("欧阳娜娜") == "欧xxx"

    def test_single_character_name(self):
        assert mask_name("李") == "李x"

    def test_current_student_unmasked(self):
        assert mask_name("张三", is_current=True) == "张三"

    def test_display_names(self, counselor_rows):
        entries, _ = compute_rankings(counselor_rows, (1, 1), "counselor", "T")
        assert [e["display_name"] for e in entries] == ["T", "Xx", "Yx"]


class TestWindow:

    def test_window_of_eleven(self):
        entries = [{"name": f"S{i:02d}"} for i in range(20)]
        window = leaderboard_window(entries, "S10")
        assert len(window) == 11
        assert window[0]["name"] == "S05"
        assert window[-1]["name"] == "S15"

    def test_window_clipped_at_top(self):
        entries = [{"name": f"S{i:02d}"} for i in range(20)]
        window = leaderboard_window(entries, "S02")
        assert [e["name"] for e in window] == [f"S{i:02d}" for i in range(8)]

    def test_absent_student(self):
        assert leaderboard_window([{"name": "A"}], "B") == []

    def test_window_from_ranked_cohort(self):
        rows = [_row(f"S{i:02d}", 1, 1, f"{95 - i}%") for i in range(20)]
        board = build_leaderboard(rows, (1, 1), "headteacher", "S10")
        assert board["total"] == 20
        assert board["current"]["rank"] == 11
        assert [e["name"] for e in board["entries"]] == [f"S{i:02d}" for i in range(5, 16)]


class TestRankComment:

    @pytest.mark.parametrize("rank,total,key", [
        (1, 20, "first"),
        (3, 20, "top3"),
        (4, 20, "top20"),
        (10, 20, "top50"),
        (15, 20, "rest"),
        (None, 20, "none"),
    ])
    def test_comment_tiers(self, rank, total, key):
        assert rank_comment(rank, total) == RANK_COMMENTS[key]

    def test_leaderboard_without_student(self, counselor_rows):
        board = build_leaderboard(counselor_rows, (1, 1), "counselor", "Nobody")
        assert board["current"] is None
        assert board["entries"] == []
        assert board["comment"] == RANK_COMMENTS["none"]
