"""
comments.py — Fixed remark tables for report cards.

Two lookups, both table driven:
- subject_remark: short per-subject remark from the mark's band
- overall_comment: class-teacher / head-teacher comment from the
  aggregate band, with cautionary clauses for pupil flags
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.grading import (
    INCOMPLETE_AGGREGATE,
    GradingConfigError,
    InvalidAggregateError,
    Subject,
    compute_division,
    resolve_subject,
    validate_aggregate,
    validate_mark,
)


NO_REMARK = "-"


class Role(str, Enum):
    CLASS_TEACHER = "class_teacher"
    HEAD_TEACHER = "head_teacher"


@dataclass(frozen=True)
class PupilFlags:
    fees: bool = False
    sickness: bool = False
    absenteeism: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "PupilFlags":
        if not data:
            return cls()
        return cls(
            fees=bool(data.get("fees")),
            sickness=bool(data.get("sickness")),
            absenteeism=bool(data.get("absenteeism")),
        )


# ── Subject Remarks ─────────────────────────────────────────────────

# (min_mark, band, remark), best to worst.
SUBJECT_REMARK_BANDS = [
    (80, "strong", "Excellent work. Keep it up."),
    (60, "good", "Very good. Aim higher."),
    (50, "adequate", "Fair. More effort needed."),
    (40, "weak", "Weak. Revise {focus}."),
    (0, "poor", "Poor. Needs close support in {focus}."),
]

SUBJECT_FOCUS = {
    Subject.ENGLISH: "grammar and composition",
    Subject.MATHS: "number work",
    Subject.SCIENCE: "science concepts",
    Subject.SST: "map work and social studies",
    Subject.LITERACY1: "reading and writing",
    Subject.LITERACY2: "the literacy themes",
}


def subject_remark(subject, mark: Optional[int]) -> str:
    """Short remark for one subject; '-' when no mark was recorded."""
    focus = SUBJECT_FOCUS[resolve_subject(subject)]
    if validate_mark(mark) is None:
        return NO_REMARK
    for lo, _band, template in SUBJECT_REMARK_BANDS:
        if mark >= lo:
            return template.format(focus=focus)
    return NO_REMARK


# ── Overall Comments ────────────────────────────────────────────────

# (min_aggregate, max_aggregate, band), best to worst.
COMMENT_BANDS = [
    (4, 6, "distinction"),
    (7, 12, "first"),
    (13, 23, "second"),
    (24, 29, "third"),
    (30, 36, "ungraded"),
]

OVERALL_COMMENTS = {
    Role.CLASS_TEACHER: {
        "distinction": "Outstanding performance. Maintain this excellent standard.",
        "first": "Very good work. Keep revising to reach the top.",
        "second": "Good effort. Concentrate on your weaker subjects.",
        "third": "Fair performance. More reading and practice are needed.",
        "ungraded": "Performance is below expectation. Work much harder and seek help.",
        "incomplete": "No result yet assessed. Sit all papers to be graded.",
    },
    Role.HEAD_TEACHER: {
        "distinction": "Excellent results. The school is proud of you.",
        "first": "A fine result. Aim for a distinction next time.",
        "second": "Promising. With more effort you can reach Division One.",
        "third": "You can do better. Parents are encouraged to follow up closely.",
        "ungraded": "Weak results. A meeting with the parent is required.",
        "incomplete": "No result yet assessed for this assessment.",
    },
}

# Appended in this order when the matching flag is set.
FLAG_CLAUSES = {
    Role.CLASS_TEACHER: [
        ("sickness", "Poor health has affected learning; we wish you a quick recovery."),
        ("absenteeism", "Frequent absence is holding you back; attend school regularly."),
        ("fees", "Missed lessons over fees should be avoided."),
    ],
    Role.HEAD_TEACHER: [
        ("fees", "Please clear the outstanding school fees balance."),
        ("sickness", "Parents should attend to the child's health."),
        ("absenteeism", "Parents must ensure regular attendance."),
    ],
}


def resolve_role(role) -> Role:
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower().replace(" ", "_"))
    except ValueError:
        raise GradingConfigError(f"Unknown comment role: {role!r}") from None


def comment_band(aggregate: int) -> str:
    if validate_aggregate(aggregate) == INCOMPLETE_AGGREGATE:
        return "incomplete"
    for lo, hi, band in COMMENT_BANDS:
        if lo <= aggregate <= hi:
            return band
    raise GradingConfigError(f"No comment band covers {aggregate}")


def overall_comment(
    role,
    aggregate: int,
    division=None,
    flags: Optional[PupilFlags] = None,
) -> str:
    """Select the overall report-card comment for one role.

    `division`, when given, must match the aggregate. Flag clauses are
    appended after the band comment.
    """
    role = resolve_role(role)
    band = comment_band(aggregate)

    if division is not None:
        expected = compute_division(aggregate)
        if getattr(division, "value", division) != expected.value:
            raise InvalidAggregateError(
                f"Division {division!r} does not match aggregate {aggregate}"
            )

    parts: List[str] = [OVERALL_COMMENTS[role][band]]
    if flags is not None:
        for attr, clause in FLAG_CLAUSES[role]:
            if getattr(flags, attr):
                parts.append(clause)
    return " ".join(parts)


def comment_pair(aggregate: int, flags: Optional[PupilFlags] = None) -> Dict[str, str]:
    """Both report-card comments for one record."""
    return {
        "class_teacher_comment": overall_comment(Role.CLASS_TEACHER, aggregate, flags=flags),
        "head_teacher_comment": overall_comment(Role.HEAD_TEACHER, aggregate, flags=flags),
    }
