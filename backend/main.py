"""
LessonReport — Per-student learning report generator.
Command-line entry point.

Usage:
    python main.py students lessons.csv
    python main.py report lessons.csv 张三 --role counselor --min 1 --max 4
    python main.py rank lessons.csv --role headteacher --max 2 --student 张三
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment before the policy constants are read
load_dotenv()

from core.cleaner import generate_cleaning_report, normalize_records  # noqa: E402
from core.formatting import ReportOverrides, format_report  # noqa: E402
from core.parser import load_records  # noqa: E402
from core.ranking import build_leaderboard, compute_rankings  # noqa: E402
from core.settings import COUNSELOR, ROLES  # noqa: E402
from core.stats import (  # noqa: E402
    compute_student_report,
    find_student_by_id,
    get_available_units,
    get_student_summaries,
)

logger = logging.getLogger("lesson_report")

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_BAD_INPUT = 2


def _read_text(path: Optional[str]) -> str:
    if not path:
        return ""
    return Path(path).read_text(encoding="utf-8")


def _unit_range(args) -> Optional[dict]:
    if args.min is None and args.max is None:
        return None
    hi = args.max if args.max is not None else args.min
    lo = args.min if args.min is not None else hi
    return {"min": lo, "max": hi}


def _emit(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


# ── Sub-commands ────────────────────────────────────────────────────

def cmd_students(args) -> int:
    rows = load_records(args.file)
    _, cleaning = normalize_records(rows)
    logger.info("\n%s", generate_cleaning_report(cleaning))
    summaries = get_student_summaries(rows)
    for summary in summaries:
        summary["units"] = get_available_units(rows, summary["name"])
    _emit(summaries)
    return EXIT_OK


def cmd_report(args) -> int:
    rows = load_records(args.file)
    student = args.student
    if args.by_id:
        student = find_student_by_id(rows, args.student)
        if student is None:
            print(f"No student with user id '{args.student}'", file=sys.stderr)
            return EXIT_NOT_FOUND

    report = compute_student_report(rows, student, args.role, _unit_range(args))
    if report is None:
        print(f"Student '{student}' not found", file=sys.stderr)
        return EXIT_NOT_FOUND

    overrides = ReportOverrides.from_text(
        unit_names=_read_text(args.unit_names),
        associations=_read_text(args.associations),
        knowledge_point_counts=_read_text(args.knowledge_points),
        error_counts=_read_text(args.error_counts),
    )
    payload = {
        "report": report,
        "display": format_report(report, overrides, args.curriculum),
    }
    if args.leaderboard and report["unit_range"] is not None:
        payload["leaderboard"] = build_leaderboard(
            rows, report["unit_range"], args.role, report["student_name"]
        )
    _emit(payload)
    return EXIT_OK


def cmd_rank(args) -> int:
    rows = load_records(args.file)
    entries, total = compute_rankings(rows, _unit_range(args), args.role, args.student)
    _emit({"total": total, "entries": entries})
    return EXIT_OK


# ── Argument Parsing ────────────────────────────────────────────────

def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="Lesson-record export (.csv, .xlsx, .xls, .ods)")
    parser.add_argument("--role", choices=ROLES, default=COUNSELOR)
    parser.add_argument("--min", type=int, help="First unit of the range")
    parser.add_argument("--max", type=int, help="Last unit of the range (head-of-class target unit)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lesson-report",
        description="Aggregate lesson records into per-student learning reports.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    students = sub.add_parser("students", help="List students found in an export")
    students.add_argument("file")
    students.set_defaults(func=cmd_students)

    report = sub.add_parser("report", help="Build one student's report")
    _add_common(report)
    report.add_argument("student", help="Student name (or user id with --by-id)")
    report.add_argument("--by-id", action="store_true", help="Look the student up by user id")
    report.add_argument("--curriculum", help="Curriculum key for lesson titles")
    report.add_argument("--unit-names", help="Text file, one custom unit name per line")
    report.add_argument("--associations", help="Text file, one association tag per line")
    report.add_argument("--knowledge-points", help="Text file, one knowledge-point count per line")
    report.add_argument("--error-counts", help="Text file, one error count per line")
    report.add_argument("--leaderboard", action="store_true", help="Include the ranking window")
    report.set_defaults(func=cmd_report)

    rank = sub.add_parser("rank", help="Rank every student in the selected unit(s)")
    _add_common(rank)
    rank.add_argument("--student", help="Current student (unmasked, tie-break priority)")
    rank.set_defaults(func=cmd_rank)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (ValueError, FileNotFoundError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
