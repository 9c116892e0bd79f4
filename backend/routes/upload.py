"""
Upload routes — grade sheet upload, validation and sample data loading.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List

from fastapi import APIRouter, File, HTTPException, UploadFile

from core.parser import (
    SAMPLE_DATA_DIR,
    parse_upload,
    students_from_dataframe,
    suggest_column_mapping,
    validate_grade_sheet,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".ods")
SAMPLE_FILE = SAMPLE_DATA_DIR / "sample_grades.csv"

# Keep upload path stable regardless of process working directory.
UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"
UPLOAD_DIR.mkdir(exist_ok=True)


def bundle_to_dict(bundle: Dict[str, Any]) -> Dict[str, Any]:
    """JSON shape of a parsed student bundle."""
    enrollment = bundle.get("enrollment")
    return {
        "student_id": bundle["student_id"],
        "student_name": bundle["student_name"],
        "enrollment": enrollment.to_dict() if enrollment else None,
        "grades": {sid: g.to_dict() for sid, g in bundle["grades"].items()},
    }


def _process_sheets(file_path: str) -> List[Dict[str, Any]]:
    sheets = []
    for sheet_name, df in parse_upload(file_path).items():
        issues = validate_grade_sheet(df)
        critical = any(i["severity"] == "critical" for i in issues)
        students = [] if critical else students_from_dataframe(df)
        sheets.append({
            "sheet": sheet_name,
            "row_count": len(df),
            "suggested_mapping": suggest_column_mapping(df),
            "issues": issues,
            "students": [bundle_to_dict(b) for b in students],
        })
    return sheets


@router.post("/grade-sheet")
async def upload_grade_sheet(file: UploadFile = File(...)):
    """
    Upload a CSV, Excel, or ODS grade sheet (one row per student-subject).
    Returns validation issues and the parsed students per sheet.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV, Excel, or ODS.")

    save_path = UPLOAD_DIR / f"{uuid.uuid4()}{ext}"
    try:
        with open(save_path, "wb") as f:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                f.write(chunk)

        sheets = _process_sheets(str(save_path))
    except ValueError as e:
        logger.warning("Rejected grade sheet %r: %s", file.filename, e)
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {e}")
    finally:
        save_path.unlink(missing_ok=True)

    logger.info("Parsed grade sheet %r (%d sheet(s))", file.filename, len(sheets))
    return {"filename": file.filename, "sheets": sheets}


@router.get("/sample")
async def load_sample():
    """Parse the bundled sample grade sheet."""
    if not SAMPLE_FILE.exists():
        raise HTTPException(404, "Sample data not found.")
    return {"filename": SAMPLE_FILE.name, "sheets": _process_sheets(str(SAMPLE_FILE))}
