"""
Analyze routes — class results and school-wide analytics.
"""

import logging

from fastapi import APIRouter, HTTPException
import pandas as pd

from core.class_sheet import (
    build_class_results,
    complete_count,
    compute_subject_summary,
    division_distribution,
    results_to_records,
    select_cohort,
)
from core.grading import GradingError
from routes.grading import raise_for_grading_error

router = APIRouter()
logger = logging.getLogger(__name__)


def _df_from_payload(payload: dict) -> pd.DataFrame:
    """Extract DataFrame from request payload."""
    data = payload.get("data")
    if not data:
        raise HTTPException(400, "No data provided.")
    return pd.DataFrame(data)


def _cohort_from_payload(payload: dict) -> pd.DataFrame:
    if not payload.get("class_level"):
        raise HTTPException(400, "Provide 'class_level'.")
    df = _df_from_payload(payload)
    return select_cohort(
        df,
        payload["class_level"],
        term=payload.get("term"),
        year=payload.get("year"),
        assessment_type=payload.get("assessment_type"),
    )


@router.post("/class-results")
async def class_results(payload: dict):
    """Grades, aggregate, division, position and comments for one cohort."""
    try:
        cohort_df = _cohort_from_payload(payload)
        results = build_class_results(cohort_df, payload["class_level"])
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))

    logger.info(
        "Class results for %s: %d pupils, %d complete",
        payload["class_level"], len(results), complete_count(results),
    )
    return {
        "class_level": str(payload["class_level"]).upper(),
        "cohort_size": len(results),
        "ranked": complete_count(results),
        "results": results_to_records(results),
    }


@router.post("/divisions")
async def divisions(payload: dict):
    """School-wide division distribution, recomputed from marks."""
    try:
        df = _df_from_payload(payload)
        return division_distribution(df, class_level=payload.get("class_level"))
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))


@router.post("/subjects")
async def subjects(payload: dict):
    """Per-subject statistics for one cohort."""
    try:
        cohort_df = _cohort_from_payload(payload)
        return compute_subject_summary(cohort_df, payload["class_level"])
    except GradingError as exc:
        raise_for_grading_error(exc)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
