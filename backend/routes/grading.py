"""
Grading routes — one endpoint per engine operation.

The marks-entry screen calls these to colour grades and preview
aggregates; they share the engine with every other surface.
"""

import logging

from fastapi import APIRouter, HTTPException

from core.comments import PupilFlags, overall_comment, subject_remark
from core.grading import (
    GRADING_POLICY_VERSION,
    SUBJECT_SETS,
    GradingConfigError,
    GradingError,
    compute_division,
    compute_grade,
    get_all_division_thresholds,
    get_all_grade_thresholds,
    grade_colour_band,
    grade_marks,
)
from core.ranking import rank_table

router = APIRouter()
logger = logging.getLogger(__name__)


def _require(payload: dict, *keys: str):
    missing = [k for k in keys if k not in payload]
    if missing:
        raise HTTPException(400, f"Missing field(s): {', '.join(missing)}.")


def raise_for_grading_error(exc: GradingError):
    """Map engine errors onto HTTP errors."""
    logger.warning("Rejected grading request: %s", exc)
    if isinstance(exc, GradingConfigError):
        raise HTTPException(422, str(exc))
    raise HTTPException(400, str(exc))


@router.get("/scales")
async def scales():
    """Grade bands, division bands and subject sets in force."""
    return {
        "policy_version": GRADING_POLICY_VERSION,
        "grades": get_all_grade_thresholds(),
        "divisions": get_all_division_thresholds(),
        "subject_sets": {
            level.value: [s.value for s in subjects]
            for level, subjects in SUBJECT_SETS.items()
        },
    }


@router.post("/grade")
async def grade(payload: dict):
    """Grade one mark. A null mark is absent."""
    _require(payload, "mark")
    try:
        result = compute_grade(payload["mark"])
        return {**result.to_dict(), "colour": grade_colour_band(payload["mark"])}
    except GradingError as exc:
        raise_for_grading_error(exc)


@router.post("/aggregate")
async def aggregate(payload: dict):
    """Grade a full mark set: per-subject grades, aggregate, division."""
    _require(payload, "class_level", "marks")
    if not isinstance(payload["marks"], dict):
        raise HTTPException(400, "'marks' must be an object of subject -> mark.")
    try:
        return grade_marks(payload["marks"], payload["class_level"])
    except GradingError as exc:
        raise_for_grading_error(exc)


@router.post("/division")
async def division(payload: dict):
    _require(payload, "aggregate")
    try:
        return {"aggregate": payload["aggregate"], "division": compute_division(payload["aggregate"]).value}
    except GradingError as exc:
        raise_for_grading_error(exc)


@router.post("/rank")
async def rank(payload: dict):
    """Rank a cohort of {pupil_id, aggregate, total_raw_marks} entries."""
    _require(payload, "cohort")
    try:
        return {"positions": rank_table(payload["cohort"])}
    except GradingError as exc:
        raise_for_grading_error(exc)
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("Rejected cohort: %s", exc)
        raise HTTPException(400, f"Invalid cohort: {exc}")


@router.post("/remark")
async def remark(payload: dict):
    _require(payload, "subject", "mark")
    try:
        return {"remark": subject_remark(payload["subject"], payload["mark"])}
    except GradingError as exc:
        raise_for_grading_error(exc)


@router.post("/comment")
async def comment(payload: dict):
    """Overall report-card comment for one role."""
    _require(payload, "role", "aggregate")
    try:
        text = overall_comment(
            payload["role"],
            payload["aggregate"],
            division=payload.get("division"),
            flags=PupilFlags.from_mapping(payload.get("flags")),
        )
        return {"comment": text}
    except GradingError as exc:
        raise_for_grading_error(exc)
