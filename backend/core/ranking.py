"""
ranking.py — Class position engine.

Ranks one cohort (a class, term, year and assessment type) by:
  1. aggregate, ascending (lower is better)
  2. total raw marks, descending (higher wins a tie on aggregate)

Pupils equal on both keys share a position and the next pupil skips
ahead (competition ranking: 1, 1, 3). Incomplete records (aggregate 0)
are returned as unranked and never consume a position.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.grading import INCOMPLETE_AGGREGATE, validate_aggregate


UNRANKED_LABEL = "—"


@dataclass(frozen=True)
class CohortEntry:
    pupil_id: str
    aggregate: int
    total_raw_marks: int

    @property
    def is_complete(self) -> bool:
        return self.aggregate != INCOMPLETE_AGGREGATE


@dataclass(frozen=True)
class RankResult:
    position: Optional[int]
    out_of: int
    tied: bool = False

    @property
    def is_ranked(self) -> bool:
        return self.position is not None

    @property
    def label(self) -> str:
        if self.position is None:
            return UNRANKED_LABEL
        return ordinal(self.position)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "label": self.label,
            "out_of": self.out_of,
            "tied": self.tied,
        }


def ordinal(n: int) -> str:
    """1 -> '1st', 12 -> '12th', 22 -> '22nd'."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def validate_raw_total(total) -> int:
    if isinstance(total, bool) or not isinstance(total, int):
        raise ValueError(f"Total raw marks must be an integer, got {total!r}")
    if total < 0:
        raise ValueError(f"Total raw marks cannot be negative, got {total}")
    return total


def _coerce_entry(entry) -> CohortEntry:
    if isinstance(entry, CohortEntry):
        validate_aggregate(entry.aggregate)
        validate_raw_total(entry.total_raw_marks)
        return entry
    if isinstance(entry, Mapping):
        raw_total = entry.get("total_raw_marks")
        return CohortEntry(
            pupil_id=str(entry["pupil_id"]),
            aggregate=validate_aggregate(entry["aggregate"]),
            total_raw_marks=validate_raw_total(0 if raw_total is None else raw_total),
        )
    raise TypeError(f"Cannot rank {type(entry).__name__}")


def _sort_key(entry: CohortEntry):
    return (entry.aggregate, -entry.total_raw_marks)


def rank_cohort(cohort: Iterable) -> Dict[str, RankResult]:
    """Rank a cohort; accepts CohortEntry objects or plain dicts.

    The returned dict iterates in position order (ties by pupil id),
    with unranked pupils last.
    """
    entries = [_coerce_entry(e) for e in cohort]

    seen = set()
    for e in entries:
        if e.pupil_id in seen:
            raise ValueError(f"Pupil '{e.pupil_id}' appears twice in the cohort")
        seen.add(e.pupil_id)

    pool = sorted(
        (e for e in entries if e.is_complete),
        key=lambda e: (_sort_key(e), e.pupil_id),
    )
    out_of = len(pool)

    key_counts: Dict[tuple, int] = {}
    for e in pool:
        key_counts[_sort_key(e)] = key_counts.get(_sort_key(e), 0) + 1

    results: Dict[str, RankResult] = {}
    position = 0
    previous_key = None
    for idx, e in enumerate(pool, 1):
        key = _sort_key(e)
        if key != previous_key:
            position = idx
            previous_key = key
        results[e.pupil_id] = RankResult(
            position=position, out_of=out_of, tied=key_counts[key] > 1
        )

    for e in sorted((e for e in entries if not e.is_complete), key=lambda e: e.pupil_id):
        results[e.pupil_id] = RankResult(position=None, out_of=out_of)

    return results


def rank_table(cohort: Iterable) -> List[Dict[str, Any]]:
    """rank_cohort flattened into JSON-safe rows."""
    return [
        {"pupil_id": pupil_id, **result.to_dict()}
        for pupil_id, result in rank_cohort(cohort).items()
    ]
