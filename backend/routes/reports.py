"""
Report routes — report-card data and class sheet exports.
"""

import logging
import os
import re
import uuid
from pathlib import Path

from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse, PlainTextResponse
from starlette.background import BackgroundTask
import pandas as pd

from core.class_sheet import build_class_results, division_distribution, select_cohort
from core.exporter import class_sheet_csv, generate_class_sheet_excel
from core.grading import AssessmentType, GradingError, term_label
from core.report_cards import build_report_cards
from routes.grading import raise_for_grading_error

router = APIRouter()
logger = logging.getLogger(__name__)

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
CURRENT_TERM = int(os.getenv("CURRENT_TERM", "1"))
CURRENT_YEAR = int(os.getenv("CURRENT_YEAR", "2024"))
EXPORT_DIR = Path(__file__).resolve().parent.parent / "exports"
EXPORT_DIR.mkdir(parents=True, exist_ok=True)


def _safe_token(value: str, fallback: str = "item") -> str:
    """Create filesystem-safe token for filenames."""
    token = re.sub(r"[^A-Za-z0-9._-]+", "_", str(value)).strip("._-")
    return token or fallback


def _safe_unlink(path: str):
    """Delete a generated export once the response has been sent."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove export %s: %s", path, exc)


def _request_context(payload: dict):
    data = payload.get("data")
    class_level = payload.get("class_level")
    if not data or not class_level:
        raise HTTPException(400, "Provide 'data' and 'class_level'.")
    term = payload.get("term") or CURRENT_TERM
    year = payload.get("year") or CURRENT_YEAR
    return pd.DataFrame(data), class_level, term, year


def _class_sheet(payload: dict):
    df, class_level, term, year = _request_context(payload)
    assessment_type = payload.get("assessment_type") or AssessmentType.EOT.value
    cohort_df = select_cohort(df, class_level, term=term, year=year, assessment_type=assessment_type)
    if cohort_df.empty:
        raise HTTPException(404, f"No marks found for {class_level} {term_label(term)} {year} {assessment_type}.")
    results = build_class_results(cohort_df, class_level)
    title = f"{str(class_level).upper()} {term_label(term)} {year} {str(assessment_type).upper()}"
    return cohort_df, results, title


@router.post("/report-cards")
async def report_cards(payload: dict):
    """Report-card data (tables, positions, comments) for a whole class."""
    df, class_level, term, year = _request_context(payload)
    try:
        cards = build_report_cards(
            df,
            class_level,
            term,
            year,
            report_type=payload.get("report_type") or AssessmentType.EOT.value,
            pupils=payload.get("pupils"),
        )
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    if not cards:
        raise HTTPException(404, f"No pupils found for class '{class_level}'.")
    logger.info("Built %d report cards for %s %s %s", len(cards), class_level, term_label(term), year)
    return {"school_name": SCHOOL_NAME, "report_cards": cards}


@router.post("/class-sheet-csv")
async def class_sheet_csv_export(payload: dict):
    """Class sheet as CSV text."""
    try:
        _, results, _ = _class_sheet(payload)
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return PlainTextResponse(
        class_sheet_csv(results, include_comments=bool(payload.get("include_comments"))),
        media_type="text/csv",
    )


@router.post("/class-sheet-excel")
async def class_sheet_excel_export(payload: dict):
    """Styled class sheet workbook with a division summary."""
    try:
        cohort_df, results, title = _class_sheet(payload)
        counts = division_distribution(cohort_df, class_level=payload["class_level"])
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    report_id = str(uuid.uuid4())[:8]
    class_token = _safe_token(payload["class_level"], fallback="class")
    output_path = EXPORT_DIR / f"class_sheet_{class_token}_{report_id}.xlsx"

    generate_class_sheet_excel(
        output_path=str(output_path),
        results=results,
        school_name=SCHOOL_NAME,
        title=title,
        division_counts=counts,
        include_comments=bool(payload.get("include_comments")),
    )
    logger.info("Exported class sheet %s", output_path.name)

    return FileResponse(
        str(output_path),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=f"Class_Sheet_{class_token}_{report_id}.xlsx",
        background=BackgroundTask(_safe_unlink, str(output_path)),
    )
