"""
parser.py — CSV and Excel ingestion of grade sheets.

Supports:
- CSV files
- Excel (.xlsx) — single and multi-sheet
- Fuzzy column name mapping to grade record fields
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

# Common column name variations for auto-mapping
COLUMN_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "admission_no",
        "admission no", "adm_no", "adm no", "reg_no", "roll", "roll_no",
        "student_number", "student number",
    ],
    "class_id": [
        "class_id", "class id", "class", "class_name", "class name",
        "grade_level", "form", "section",
    ],
    "subject": [
        "subject", "subject_name", "subject name", "course", "paper",
    ],
    "term": [
        "term", "semester", "period", "exam_period", "exam period",
    ],
    "academic_year": [
        "academic_year", "academic year", "year", "session", "acad_year",
    ],
    "marks": [
        "marks", "mark", "score", "total", "total_score", "total score",
        "obtained", "result",
    ],
    "remarks": [
        "remarks", "remark", "comment", "comments", "notes",
    ],
}


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    elif ext == ".xlsx":
        xls = pd.ExcelFile(file_path, engine="openpyxl")
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError("No valid sheets found in the Excel file.")
        return sheets

    else:
        raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """Map each grade field to the first matching column (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    mapping: Dict[str, Optional[str]] = {}
    used = set()
    for field, aliases in COLUMN_ALIASES.items():
        mapping[field] = None
        for alias in aliases:
            col = cols_lower.get(alias)
            if col is not None and col not in used:
                mapping[field] = col
                used.add(col)
                break
    return mapping


def records_from_dataframe(
    df: pd.DataFrame,
    mapping: Optional[Dict[str, Optional[str]]] = None,
    defaults: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """
    Turn sheet rows into grade payloads.

    `defaults` fills fields absent from the sheet (e.g. a class_id chosen in
    the upload form). Rows with blank marks are skipped.
    """
    mapping = mapping or suggest_column_mapping(df)
    defaults = defaults or {}
    payloads = []
    for _, row in df.iterrows():
        payload: Dict[str, Any] = {}
        for field in COLUMN_ALIASES:
            col = mapping.get(field)
            value = row.get(col) if col else None
            if value is None or pd.isna(value) or str(value).strip() == "":
                value = defaults.get(field)
            payload[field] = str(value).strip() if value is not None else None
        if payload.get("marks") is None:
            continue
        payloads.append(payload)
    return payloads
