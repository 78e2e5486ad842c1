"""
class_sheet.py — pandas glue between stored mark records and the grading engine.

Handles:
- Column auto-detection for wide mark sheets (one row per pupil per assessment)
- Blank / NaN cells as absent marks
- Cohort selection by class, term, year and assessment type
- Class results (grades, aggregate, division, position, comments)
- School-wide division tallies
- Per-subject summaries
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from core.comments import PupilFlags, comment_pair
from core.grading import (
    GRADE_BANDS,
    INCOMPLETE_AGGREGATE,
    Division,
    GradingConfigError,
    InvalidMarkError,
    compute_aggregate,
    compute_division,
    compute_grade,
    resolve_class_level,
    subjects_for,
    term_label,
    total_raw_marks,
)
from core.ranking import CohortEntry, rank_cohort


COLUMN_ALIASES = {
    "pupil_id": ["pupil_id", "student_id", "studentid", "index_number", "indexnumber", "index_no", "id"],
    "name": ["name", "pupil_name", "student_name", "full_name"],
    "class_level": ["class_level", "classlevel", "class", "level"],
    "stream": ["stream"],
    "term": ["term"],
    "year": ["year", "academic_year"],
    "assessment_type": ["assessment_type", "type", "assessment", "exam_type"],
}

FLAG_COLUMNS = ["fees", "sickness", "absenteeism"]
TRUTHY = {"1", "true", "yes", "y", "on"}


# ── Helpers ─────────────────────────────────────────────────────────

def _find_col(df: pd.DataFrame, aliases: List[str]) -> Optional[str]:
    """Find the first column matching any alias (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    for a in aliases:
        if a.lower() in cols_lower:
            return cols_lower[a.lower()]
    return None


def _col(df: pd.DataFrame, field: str) -> Optional[str]:
    return _find_col(df, COLUMN_ALIASES[field])


def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, np.bool_):
        return bool(obj)
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip().lower() in {"nan", "-"}
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_mark(value) -> Optional[int]:
    """Coerce a spreadsheet cell to a mark.

    Blank / NaN -> None (absent). Integral floats and digit strings are
    accepted; anything else raises InvalidMarkError.
    """
    if _is_blank(value):
        return None
    if isinstance(value, (bool, np.bool_)):
        raise InvalidMarkError(f"Mark must be an integer, got {value!r}")
    if isinstance(value, (int, np.integer)):
        mark = int(value)
    elif isinstance(value, (float, np.floating)):
        if not float(value).is_integer():
            raise InvalidMarkError(f"Mark must be a whole number, got {value!r}")
        mark = int(value)
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        mark = int(value.strip())
    else:
        raise InvalidMarkError(f"Mark must be an integer, got {value!r}")

    if mark < 0 or mark > 100:
        raise InvalidMarkError(f"Mark {mark} is outside 0-100")
    return mark


def _parse_flag(value) -> bool:
    if _is_blank(value):
        return False
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    return str(value).strip().lower() in TRUTHY


def row_marks(row: pd.Series, df: pd.DataFrame, class_level) -> Dict[str, Optional[int]]:
    """Pull the level's subject marks out of one wide row."""
    marks = {}
    for subject in subjects_for(class_level):
        col = _find_col(df, [subject.value])
        marks[subject.value] = parse_mark(row[col]) if col else None
    return marks


def row_flags(row: pd.Series, df: pd.DataFrame) -> PupilFlags:
    values = {}
    for flag in FLAG_COLUMNS:
        col = _find_col(df, [flag])
        values[flag] = _parse_flag(row[col]) if col else False
    return PupilFlags(**values)


# ── Cohort Selection ────────────────────────────────────────────────

def _term_matches(value, wanted: str) -> bool:
    """Stored terms that do not parse simply fall outside every cohort."""
    if _is_blank(value):
        return False
    try:
        return term_label(value) == wanted
    except GradingConfigError:
        return False


def select_cohort(
    df: pd.DataFrame,
    class_level,
    term=None,
    year=None,
    assessment_type=None,
) -> pd.DataFrame:
    """Filter mark records to one class / term / year / assessment type.

    Filters whose column is missing from the data are skipped.
    """
    level = resolve_class_level(class_level)
    out = df.copy()

    level_col = _col(out, "class_level")
    if level_col:
        out = out[out[level_col].astype(str).str.strip().str.upper() == level.value]

    term_col = _col(out, "term")
    if term is not None and term_col:
        wanted = term_label(term)
        out = out[out[term_col].apply(lambda t: _term_matches(t, wanted))]

    year_col = _col(out, "year")
    if year is not None and year_col:
        out = out[pd.to_numeric(out[year_col], errors="coerce") == int(year)]

    type_col = _col(out, "assessment_type")
    if assessment_type is not None and type_col:
        wanted_type = str(getattr(assessment_type, "value", assessment_type)).strip().upper()
        out = out[out[type_col].astype(str).str.strip().str.upper() == wanted_type]

    return out


# ── Class Results ───────────────────────────────────────────────────

def build_class_results(df: pd.DataFrame, class_level) -> pd.DataFrame:
    """Grade, aggregate, divide, rank and comment one cohort.

    `df` must already be a single cohort (see select_cohort). Rows come
    back in class order: ranked pupils by position, unranked pupils last.
    """
    subjects = subjects_for(class_level)
    id_col = _col(df, "pupil_id")
    name_col = _col(df, "name")
    stream_col = _col(df, "stream")

    rows: Dict[str, Dict[str, Any]] = {}
    cohort: List[CohortEntry] = []

    for idx, row in df.iterrows():
        pupil_id = str(row[id_col]).strip() if id_col else str(idx)
        marks = row_marks(row, df, class_level)
        aggregate = compute_aggregate(marks, class_level)
        raw_total = total_raw_marks(marks, class_level)
        flags = row_flags(row, df)

        record: Dict[str, Any] = {
            "pupil_id": pupil_id,
            "name": "" if not name_col or _is_blank(row[name_col]) else str(row[name_col]).strip(),
            "stream": "" if not stream_col or _is_blank(row[stream_col]) else str(row[stream_col]).strip(),
        }
        for subject in subjects:
            mark = marks[subject.value]
            record[subject.value] = mark
            record[f"{subject.value}_grade"] = compute_grade(mark).letter or "-"
        record["total_marks"] = raw_total
        record["aggregate"] = aggregate
        record["division"] = compute_division(aggregate).value
        record.update(comment_pair(aggregate, flags))

        if pupil_id in rows:
            raise ValueError(f"Pupil '{pupil_id}' has more than one record in this cohort")
        rows[pupil_id] = record
        cohort.append(CohortEntry(pupil_id, aggregate, raw_total))

    ranks = rank_cohort(cohort)

    ordered = []
    for pupil_id, rank in ranks.items():
        record = rows[pupil_id]
        record["position"] = rank.position
        record["position_label"] = rank.label
        record["out_of"] = rank.out_of
        ordered.append(record)

    columns = ["pupil_id", "name", "stream"]
    for subject in subjects:
        columns += [subject.value, f"{subject.value}_grade"]
    columns += [
        "total_marks", "aggregate", "division", "position", "position_label",
        "out_of", "class_teacher_comment", "head_teacher_comment",
    ]
    results = pd.DataFrame(ordered, columns=columns)
    # Keep absent marks and unranked positions as real nulls, not NaN floats
    for col in [s.value for s in subjects] + ["position"]:
        results[col] = results[col].astype("Int64")
    return results


def results_to_records(results: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-safe rows; pandas NA becomes None."""
    records = results.astype(object).where(results.notna(), None).to_dict(orient="records")
    return _sanitize(records)


# ── Division Distribution ───────────────────────────────────────────

def division_distribution(df: pd.DataFrame, class_level=None) -> Dict[str, Any]:
    """Count divisions across mark records.

    Divisions are recomputed from the marks, never read from stored copies.
    Each row's class level comes from its own column unless `class_level`
    is given.
    """
    counts = {d.value: 0 for d in Division}
    level_col = _col(df, "class_level")
    if class_level is None and not level_col:
        raise ValueError("No class level column found in data.")

    for _, row in df.iterrows():
        level = class_level if class_level is not None else row[level_col]
        marks = row_marks(row, df, level)
        counts[compute_division(compute_aggregate(marks, level)).value] += 1

    total = int(sum(counts.values()))
    graded = total - counts[Division.X.value]
    return _sanitize({
        "counts": counts,
        "total": total,
        "graded": graded,
        "percentages": {
            k: round(v / graded * 100, 1) if graded and k != Division.X.value else None
            for k, v in counts.items()
        },
    })


# ── Subject Summary ─────────────────────────────────────────────────

def compute_subject_summary(df: pd.DataFrame, class_level) -> Dict[str, Any]:
    """Per-subject mean/median/min/max and grade distribution for a cohort."""
    letters = [band[2] for band in GRADE_BANDS]
    summaries = []

    for subject in subjects_for(class_level):
        col = _find_col(df, [subject.value])
        marks = [parse_mark(v) for v in df[col]] if col else [None] * len(df)
        present = np.array([m for m in marks if m is not None], dtype=float)

        grade_counts = {letter: 0 for letter in letters}
        for m in marks:
            letter = compute_grade(m).letter
            if letter:
                grade_counts[letter] += 1

        has_marks = present.size > 0
        summaries.append({
            "subject": subject.value,
            "count": int(present.size),
            "absent": int(len(marks) - present.size),
            "mean": round(float(np.mean(present)), 2) if has_marks else None,
            "median": round(float(np.median(present)), 2) if has_marks else None,
            "min": int(present.min()) if has_marks else None,
            "max": int(present.max()) if has_marks else None,
            "mean_points": (
                round(float(np.mean([compute_grade(int(m)).points for m in present])), 2)
                if has_marks else None
            ),
            "grade_counts": grade_counts,
        })

    # Strongest subject first (lowest mean points)
    summaries.sort(key=lambda s: (s["mean_points"] is None, s["mean_points"] or 0))
    return _sanitize({"class_level": resolve_class_level(class_level).value, "subjects": summaries})


def complete_count(results: pd.DataFrame) -> int:
    return int((results["aggregate"] != INCOMPLETE_AGGREGATE).sum())
