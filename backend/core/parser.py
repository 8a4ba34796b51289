"""
parser.py — CSV, Excel, ODS ingestion of lesson-record exports.

Supports:
- CSV files
- Excel (.xlsx, .xls) — all non-empty sheets are stacked
- ODS (OpenDocument Spreadsheet)
- Header alias mapping onto the canonical export column names
- Required-field validation before the report engine runs
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = [
    "real_name",
    "level_sequence",
    "unit_sequence",
    "unit_finish_status",
    "answer_right_rate",
    "first_cost_seconds",
]

# Header variations seen in exports, keyed by canonical column name.
COLUMN_ALIASES = {
    "user_id": ["user_id", "userid", "user id", "uid", "学员id", "用户id"],
    "real_name": ["real_name", "name", "student_name", "student name", "姓名", "学员姓名"],
    "package_grade": ["package_grade", "grade", "年级"],
    "counselor_name": ["counselor_name", "counselor", "teacher", "辅导老师", "老师"],
    "level_sequence": ["level_sequence", "unit", "unit_no", "单元"],
    "unit_sequence": ["unit_sequence", "lesson", "lesson_no", "讲次", "课次"],
    "unit_finish_status": ["unit_finish_status", "finish_status", "status", "完课状态"],
    "answer_right_rate": ["answer_right_rate", "accuracy", "right_rate", "正确率"],
    "pass_rate": ["pass_rate", "passrate", "通关率"],
    "first_cost_seconds": ["first_cost_seconds", "cost_seconds", "time_spent", "用时"],
    "wrong_answer_count": ["wrong_answer_count", "wrong_count", "错题数"],
    "first_finish_answer_step_fail_cnt": ["first_finish_answer_step_fail_cnt", "step_fail_cnt"],
}


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an export file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str, encoding="utf-8-sig")
        return {"Sheet1": df}

    elif ext in (".xlsx", ".xls", ".ods"):
        engine = {".xlsx": "openpyxl", ".xls": "xlrd", ".ods": "odf"}[ext]
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError(f"No valid sheets found in the {ext} file.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from canonical field names to actual column names.
    Returns: { canonical_field: actual_column_name_or_None }
    """
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}

    for field, aliases in COLUMN_ALIASES.items():
        matched = None
        for alias in aliases:
            if alias in cols_lower:
                matched = cols_lower[alias]
                break
        mapping[field] = matched

    return mapping


def apply_column_mapping(df: pd.DataFrame, mapping: Optional[Dict[str, Optional[str]]] = None) -> pd.DataFrame:
    """Return a copy of df with mapped columns renamed to their canonical names."""
    mapping = mapping if mapping is not None else suggest_column_mapping(df)
    renames = {
        actual: field for field, actual in mapping.items()
        if actual is not None and actual != field and field not in df.columns
    }
    return df.rename(columns=renames)


def validate_data(df: pd.DataFrame) -> List[Dict]:
    """
    Validate the parsed data and return a list of issues found.
    Expects canonical column names (see apply_column_mapping).
    """
    issues = []

    missing = [f for f in REQUIRED_FIELDS if f not in df.columns]
    if missing:
        issues.append({
            "type": "missing_column",
            "severity": "critical",
            "message": f"Required columns missing: {', '.join(missing)}",
            "fields": missing,
        })

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The file contains no data rows.",
        })

    # Same student + unit + lesson more than once: tolerated, but reported.
    key_cols = ["real_name", "level_sequence", "unit_sequence"]
    if all(c in df.columns for c in key_cols) and len(df) > 0:
        dupe_count = int(df.duplicated(subset=key_cols, keep=False).sum())
        if dupe_count > 0:
            issues.append({
                "type": "duplicates",
                "severity": "warning",
                "message": f"{dupe_count} rows share the same student + unit + lesson.",
            })

    return issues


def load_records(file_path: str) -> pd.DataFrame:
    """
    Parse, map and validate an export in one step.

    All sheets are stacked into one frame. Raises ValueError when a critical
    issue (missing required column, no rows) is found.
    """
    sheets = parse_upload(file_path)
    frames = [apply_column_mapping(df) for df in sheets.values()]
    df = pd.concat(frames, ignore_index=True) if len(frames) > 1 else frames[0]

    issues = validate_data(df)
    for issue in issues:
        if issue["severity"] != "critical":
            logger.warning("%s: %s", Path(file_path).name, issue["message"])
    critical = [i["message"] for i in issues if i["severity"] == "critical"]
    if critical:
        raise ValueError("; ".join(critical))

    logger.info("Loaded %d rows from %s", len(df), Path(file_path).name)
    return df
