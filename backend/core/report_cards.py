"""
report_cards.py — Data for end-of-term and beginning-of-term report cards.

Builds, per pupil, the subject tables, aggregate, division, class position
and the two report-card comments. Layout and printing live elsewhere; this
module returns plain dicts only.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from core.class_sheet import (
    _col,
    _is_blank,
    _sanitize,
    build_class_results,
    results_to_records,
    row_flags,
    select_cohort,
)
from core.comments import PupilFlags, comment_pair, subject_remark
from core.grading import (
    INCOMPLETE_AGGREGATE,
    SUBJECT_NAMES,
    AssessmentType,
    GradingConfigError,
    compute_grade,
    grade_colour_band,
    resolve_class_level,
    subjects_for,
    term_label,
)
from core.ranking import UNRANKED_LABEL


def _resolve_report_type(report_type) -> AssessmentType:
    try:
        return AssessmentType(str(getattr(report_type, "value", report_type)).strip().upper())
    except ValueError:
        raise GradingConfigError(f"Unknown report type: {report_type!r}") from None


def _assessment_section(
    assessment_type: AssessmentType,
    class_level,
    result: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    rows = []
    for subject in subjects_for(class_level):
        mark = None
        if result is not None and not _is_blank(result.get(subject.value)):
            mark = int(result[subject.value])
        rows.append({
            "subject": subject.value,
            "subject_name": SUBJECT_NAMES[subject],
            "mark": mark,
            "grade": compute_grade(mark).letter or "-",
            "remark": subject_remark(subject, mark),
            "colour": grade_colour_band(mark),
        })

    if result is None:
        return {
            "assessment_type": assessment_type.value,
            "recorded": False,
            "subjects": rows,
            "aggregate": None,
            "division": "-",
            "position": None,
            "position_label": UNRANKED_LABEL,
            "out_of": None,
        }

    position = result.get("position")
    return {
        "assessment_type": assessment_type.value,
        "recorded": True,
        "subjects": rows,
        "aggregate": int(result["aggregate"]),
        "division": result["division"],
        "position": None if _is_blank(position) else int(position),
        "position_label": result["position_label"],
        "out_of": int(result["out_of"]),
    }


def _pupils_from_data(df: pd.DataFrame) -> List[Dict[str, Any]]:
    id_col = _col(df, "pupil_id")
    if not id_col:
        raise ValueError("No pupil id column found in data.")
    name_col = _col(df, "name")
    stream_col = _col(df, "stream")

    pupils: Dict[str, Dict[str, Any]] = {}
    for _, row in df.iterrows():
        pupil_id = str(row[id_col]).strip()
        if pupil_id in pupils:
            continue
        flags = row_flags(row, df)
        pupils[pupil_id] = {
            "pupil_id": pupil_id,
            "name": "" if not name_col or _is_blank(row[name_col]) else str(row[name_col]).strip(),
            "stream": "" if not stream_col or _is_blank(row[stream_col]) else str(row[stream_col]).strip(),
            "flags": {"fees": flags.fees, "sickness": flags.sickness, "absenteeism": flags.absenteeism},
        }
    return sorted(pupils.values(), key=lambda p: (p["name"].lower(), p["pupil_id"]))


def build_report_cards(
    df: pd.DataFrame,
    class_level,
    term,
    year,
    report_type=AssessmentType.EOT,
    pupils: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """
    Assemble report-card data for every pupil in a class.

    - BOT table is always included; the EOT table only on EOT reports.
    - Positions are ranked separately within the BOT and EOT cohorts.
    - Comments follow the report type's record; a pupil with no record
      for it gets the incomplete comment.

    `pupils` lists the class roster ({pupil_id, name, stream, flags});
    when omitted it is taken from the mark records, so pupils without any
    record for the term will not appear.
    """
    level = resolve_class_level(class_level)
    report_type = _resolve_report_type(report_type)

    cohorts = {}
    for assessment_type in AssessmentType:
        cohort_df = select_cohort(df, level, term=term, year=year, assessment_type=assessment_type)
        results = build_class_results(cohort_df, level)
        cohorts[assessment_type] = {row["pupil_id"]: row for row in results_to_records(results)}

    if pupils is None:
        pupils = _pupils_from_data(select_cohort(df, level, term=term, year=year))

    cards = []
    for pupil in pupils:
        pupil_id = str(pupil["pupil_id"]).strip()
        flags = PupilFlags.from_mapping(pupil.get("flags"))

        bot = cohorts[AssessmentType.BOT].get(pupil_id)
        eot = cohorts[AssessmentType.EOT].get(pupil_id)
        main = bot if report_type == AssessmentType.BOT else eot
        main_aggregate = int(main["aggregate"]) if main is not None else INCOMPLETE_AGGREGATE

        card = {
            "pupil_id": pupil_id,
            "name": pupil.get("name", ""),
            "stream": pupil.get("stream", ""),
            "class_level": level.value,
            "term": term_label(term),
            "year": int(year),
            "report_type": report_type.value,
            "assessments": [_assessment_section(AssessmentType.BOT, level, bot)],
        }
        if report_type == AssessmentType.EOT:
            card["assessments"].append(_assessment_section(AssessmentType.EOT, level, eot))
        card.update(comment_pair(main_aggregate, flags))
        cards.append(card)

    return _sanitize(cards)
