"""
settings.py — Report policy constants.

Thresholds can be tuned through environment variables (a `.env` file is
loaded by the entry point). Nothing in here is mutated at runtime.
"""

import os

COUNSELOR = "counselor"
HEADTEACHER = "headteacher"
ROLES = (COUNSELOR, HEADTEACHER)

# Lesson 0 of every unit is the pre-test.
PRETEST_LESSON = 0

# Lessons that contribute to the head-of-class leaderboard score.
RANKING_LESSONS = (0, 1, 2, 3, 4, 5)

MAX_STARS = int(os.getenv("MAX_STARS", "5"))
SPRINT_ACCURACY = float(os.getenv("SPRINT_ACCURACY", "50"))
MODEL_ACCURACY = float(os.getenv("MODEL_ACCURACY", "90"))
GOLD_COMPLETION_UNITS = int(os.getenv("GOLD_COMPLETION_UNITS", "4"))

LEADERBOARD_RADIUS = int(os.getenv("LEADERBOARD_RADIUS", "5"))
MASK_CHAR = "x"

# Monthly summary is only produced for a four-unit counselor report.
MONTHLY_SUMMARY_UNITS = 4

FINISHED_STATUS = "完课"
