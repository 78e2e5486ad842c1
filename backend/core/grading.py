"""
grading.py — Primary leaving-exam grading model.

Turns raw marks into grades, grades into aggregates and aggregates into
divisions:
  D1 D2 C3 C4 C5 C6 P7 P8 F9   (1 = best, 9 = worst)
  Division I, II, III, U        (X = incomplete)

Every threshold lives in the tables below. Report cards, the marks-entry
screen and the spreadsheet exports all call into this module so that they
can never disagree.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


GRADING_POLICY_VERSION = "ple-2024.1"

INCOMPLETE_AGGREGATE = 0


# ── Errors ──────────────────────────────────────────────────────────

class GradingError(Exception):
    """Base class for every error raised by the grading engine."""


class InvalidMarkError(GradingError, ValueError):
    """A present mark that is not an integer in [0, 100]."""


class InvalidAggregateError(GradingError, ValueError):
    """An aggregate outside {0} ∪ [4, 36]."""


class GradingConfigError(GradingError, LookupError):
    """Unknown class level, subject or role, or a broken band table."""


# ── Closed vocabularies ─────────────────────────────────────────────

class ClassLevel(str, Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"
    P6 = "P6"
    P7 = "P7"


class Subject(str, Enum):
    ENGLISH = "english"
    MATHS = "maths"
    SCIENCE = "science"
    SST = "sst"
    LITERACY1 = "literacy1"
    LITERACY2 = "literacy2"


class AssessmentType(str, Enum):
    BOT = "BOT"  # beginning of term
    EOT = "EOT"  # end of term


class Division(str, Enum):
    I = "I"
    II = "II"
    III = "III"
    U = "U"
    X = "X"


SUBJECT_NAMES = {
    Subject.ENGLISH: "English",
    Subject.MATHS: "Mathematics",
    Subject.SCIENCE: "Science",
    Subject.SST: "Social Studies",
    Subject.LITERACY1: "Literacy I",
    Subject.LITERACY2: "Literacy II",
}

SUBJECTS_LOWER = (Subject.ENGLISH, Subject.MATHS, Subject.LITERACY1, Subject.LITERACY2)
SUBJECTS_UPPER = (Subject.ENGLISH, Subject.MATHS, Subject.SCIENCE, Subject.SST)

SUBJECT_SETS = {
    ClassLevel.P1: SUBJECTS_LOWER,
    ClassLevel.P2: SUBJECTS_LOWER,
    ClassLevel.P3: SUBJECTS_LOWER,
    ClassLevel.P4: SUBJECTS_UPPER,
    ClassLevel.P5: SUBJECTS_UPPER,
    ClassLevel.P6: SUBJECTS_UPPER,
    ClassLevel.P7: SUBJECTS_UPPER,
}


# ── Band tables ─────────────────────────────────────────────────────

# (min_mark, max_mark, letter, points, description), best to worst.
GRADE_BANDS = [
    (90, 100, "D1", 1, "Distinction 1"),
    (80, 89, "D2", 2, "Distinction 2"),
    (70, 79, "C3", 3, "Credit 3"),
    (60, 69, "C4", 4, "Credit 4"),
    (55, 59, "C5", 5, "Credit 5"),
    (50, 54, "C6", 6, "Credit 6"),
    (45, 49, "P7", 7, "Pass 7"),
    (40, 44, "P8", 8, "Pass 8"),
    (0, 39, "F9", 9, "Failure"),
]

# (min_aggregate, max_aggregate, division), best to worst.
DIVISION_BANDS = [
    (4, 12, Division.I),
    (13, 23, Division.II),
    (24, 29, Division.III),
    (30, 36, Division.U),
]

MIN_AGGREGATE = 4
MAX_AGGREGATE = 36


def _check_band_tables():
    expected_hi = 100
    for ordinal, (lo, hi, letter, points, _) in enumerate(GRADE_BANDS, 1):
        if hi != expected_hi or lo > hi:
            raise GradingConfigError(f"Grade band {letter} breaks contiguity at {lo}-{hi}")
        if points != ordinal:
            raise GradingConfigError(f"Grade band {letter} must carry {ordinal} points, not {points}")
        expected_hi = lo - 1
    if expected_hi != -1:
        raise GradingConfigError("Grade bands do not reach a mark of 0")

    expected_lo = MIN_AGGREGATE
    for lo, hi, division in DIVISION_BANDS:
        if lo != expected_lo or lo > hi:
            raise GradingConfigError(f"Division band {division.value} breaks contiguity at {lo}-{hi}")
        expected_lo = hi + 1
    if expected_lo != MAX_AGGREGATE + 1:
        raise GradingConfigError(f"Division bands do not reach an aggregate of {MAX_AGGREGATE}")


_check_band_tables()


# ── Results ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GradeResult:
    letter: Optional[str]
    points: Optional[int]

    @property
    def is_defined(self) -> bool:
        return self.letter is not None

    def to_dict(self) -> Dict[str, Any]:
        return {"letter": self.letter or "-", "points": self.points}


UNDEFINED_GRADE = GradeResult(letter=None, points=None)


# ── Lookups ─────────────────────────────────────────────────────────

def resolve_class_level(class_level) -> ClassLevel:
    """Accept 'P4', 'p4' or ClassLevel.P4."""
    if isinstance(class_level, ClassLevel):
        return class_level
    try:
        return ClassLevel(str(class_level).strip().upper())
    except ValueError:
        raise GradingConfigError(f"Unknown class level: {class_level!r}") from None


def resolve_subject(subject) -> Subject:
    if isinstance(subject, Subject):
        return subject
    try:
        return Subject(str(subject).strip().lower())
    except ValueError:
        raise GradingConfigError(f"Unknown subject: {subject!r}") from None


def subjects_for(class_level) -> tuple:
    """Return the four subjects aggregated at a class level."""
    return SUBJECT_SETS[resolve_class_level(class_level)]


# ── GradeScale ──────────────────────────────────────────────────────

def validate_mark(mark) -> Optional[int]:
    """Return the mark unchanged, or raise InvalidMarkError.

    None means absent and passes through.
    """
    if mark is None:
        return None
    if isinstance(mark, bool) or not isinstance(mark, int):
        raise InvalidMarkError(f"Mark must be an integer, got {mark!r}")
    if mark < 0 or mark > 100:
        raise InvalidMarkError(f"Mark {mark} is outside 0-100")
    return mark


def compute_grade(mark: Optional[int]) -> GradeResult:
    """Grade a single mark. Absent marks give UNDEFINED_GRADE."""
    if validate_mark(mark) is None:
        return UNDEFINED_GRADE
    for lo, _hi, letter, points, _desc in GRADE_BANDS:
        if mark >= lo:
            return GradeResult(letter=letter, points=points)
    # unreachable: the F9 band starts at 0
    raise GradingConfigError(f"No grade band covers {mark}")


def get_all_grade_thresholds() -> List[Dict[str, Any]]:
    """Return the full grade scale for legends and the settings screen."""
    return [
        {"min": lo, "max": hi, "label": letter, "points": points, "description": desc}
        for lo, hi, letter, points, desc in GRADE_BANDS
    ]


def get_all_division_thresholds() -> List[Dict[str, Any]]:
    bands = [
        {"min": lo, "max": hi, "label": division.value}
        for lo, hi, division in DIVISION_BANDS
    ]
    bands.append({"min": INCOMPLETE_AGGREGATE, "max": INCOMPLETE_AGGREGATE, "label": Division.X.value})
    return bands


# ── AggregateCalculator ─────────────────────────────────────────────

def _normalise_marks(marks: Mapping) -> Dict[Subject, Optional[int]]:
    normalised = {}
    for key, value in marks.items():
        normalised[resolve_subject(key)] = validate_mark(value)
    return normalised


def compute_aggregate(marks: Mapping, class_level) -> int:
    """Sum grade points over the level's four subjects.

    Returns INCOMPLETE_AGGREGATE (0) when any of the four is absent.
    """
    subjects = subjects_for(class_level)
    normalised = _normalise_marks(marks)

    total = 0
    for subject in subjects:
        grade = compute_grade(normalised.get(subject))
        if not grade.is_defined:
            return INCOMPLETE_AGGREGATE
        total += grade.points
    return total


def total_raw_marks(marks: Mapping, class_level) -> int:
    """Sum of the raw marks over the level's subjects; used to break ties."""
    subjects = subjects_for(class_level)
    normalised = _normalise_marks(marks)
    return sum(normalised.get(s) or 0 for s in subjects)


# ── DivisionClassifier ──────────────────────────────────────────────

def validate_aggregate(aggregate) -> int:
    if isinstance(aggregate, bool) or not isinstance(aggregate, int):
        raise InvalidAggregateError(f"Aggregate must be an integer, got {aggregate!r}")
    if aggregate != INCOMPLETE_AGGREGATE and not MIN_AGGREGATE <= aggregate <= MAX_AGGREGATE:
        raise InvalidAggregateError(
            f"Aggregate {aggregate} is outside {MIN_AGGREGATE}-{MAX_AGGREGATE}"
        )
    return aggregate


def compute_division(aggregate: int) -> Division:
    """Classify an aggregate. The incomplete sentinel is always X."""
    if validate_aggregate(aggregate) == INCOMPLETE_AGGREGATE:
        return Division.X
    for lo, hi, division in DIVISION_BANDS:
        if lo <= aggregate <= hi:
            return division
    raise GradingConfigError(f"No division band covers {aggregate}")


def grade_marks(marks: Mapping, class_level) -> Dict[str, Any]:
    """Grade a full mark set in one call.

    Returns per-subject grades plus aggregate, division and raw total,
    all as JSON-safe primitives.
    """
    subjects = subjects_for(class_level)
    normalised = _normalise_marks(marks)
    aggregate = compute_aggregate(normalised, class_level)
    return {
        "class_level": resolve_class_level(class_level).value,
        "subjects": [
            {
                "subject": s.value,
                "mark": normalised.get(s),
                **compute_grade(normalised.get(s)).to_dict(),
            }
            for s in subjects
        ],
        "aggregate": aggregate,
        "division": compute_division(aggregate).value,
        "total_marks": total_raw_marks(normalised, class_level),
    }


# ── On-screen colouring ─────────────────────────────────────────────

def grade_colour_band(mark: Optional[int]) -> str:
    """Colour bucket used by the marks-entry grid.

    strong = D1/D2, adequate = C3-C6, weak = P7-F9, none = absent.
    """
    grade = compute_grade(mark)
    if not grade.is_defined:
        return "none"
    if grade.points <= 2:
        return "strong"
    if grade.points <= 6:
        return "adequate"
    return "weak"


# Term ordering helpers retained for report headers.
TERMS = [1, 2, 3]


def term_label(term) -> str:
    """Turn 1, '1' or 'Term 1' into 'Term 1'."""
    import re

    nums = re.findall(r"\d+", str(term))
    if not nums or int(nums[-1]) not in TERMS:
        raise GradingConfigError(f"Unknown term: {term!r}")
    return f"Term {int(nums[-1])}"
