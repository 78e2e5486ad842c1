"""
Tests for core/ranking.py — class positions, ties and unranked pupils.
"""

import os
import random
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.grading import InvalidAggregateError
from core.ranking import UNRANKED_LABEL, CohortEntry, ordinal, rank_cohort, rank_table


def _entry(pupil_id, aggregate, total):
    return {"pupil_id": pupil_id, "aggregate": aggregate, "total_raw_marks": total}


class TestRankCohort:
    """Tests for the ranking comparator."""

    def test_empty_cohort(self):
        assert rank_cohort([]) == {}

    def test_lower_aggregate_ranks_first(self):
        ranks = rank_cohort([_entry("b", 20, 250), _entry("a", 8, 300), _entry("c", 30, 150)])
        assert ranks["a"].position == 1
        assert ranks["b"].position == 2
        assert ranks["c"].position == 3

    def test_raw_total_breaks_aggregate_tie(self):
        ranks = rank_cohort([_entry("B", 12, 320), _entry("A", 12, 340)])
        assert ranks["A"].position == 1
        assert ranks["B"].position == 2
        assert not ranks["A"].tied

    def test_full_tie_shares_position_and_skips(self):
        ranks = rank_cohort([
            _entry("p3", 10, 300),
            _entry("p2", 10, 300),
            _entry("p1", 5, 360),
            _entry("p4", 11, 290),
        ])
        assert ranks["p1"].position == 1
        assert ranks["p2"].position == 2
        assert ranks["p3"].position == 2
        assert ranks["p4"].position == 4
        assert ranks["p2"].tied and ranks["p3"].tied

    def test_tied_pupils_iterate_by_id(self):
        ranks = rank_cohort([_entry("z", 10, 300), _entry("m", 10, 300), _entry("a", 10, 300)])
        assert list(ranks) == ["a", "m", "z"]
        assert {r.position for r in ranks.values()} == {1}

    def test_incomplete_is_unranked(self):
        ranks = rank_cohort([_entry("x", 0, 400), _entry("y", 20, 200)])
        assert ranks["x"].position is None
        assert not ranks["x"].is_ranked
        assert ranks["x"].label == UNRANKED_LABEL
        assert ranks["y"].position == 1

    def test_incomplete_listed_last(self):
        ranks = rank_cohort([_entry("x", 0, 400), _entry("y", 20, 200), _entry("w", 0, 10)])
        assert list(ranks) == ["y", "w", "x"]

    def test_all_incomplete(self):
        ranks = rank_cohort([_entry("a", 0, 100), _entry("b", 0, 200)])
        assert len(ranks) == 2
        assert all(r.position is None for r in ranks.values())
        assert all(r.out_of == 0 for r in ranks.values())

    def test_out_of_counts_ranked_pool_only(self):
        ranks = rank_cohort([_entry("a", 6, 350), _entry("b", 0, 200), _entry("c", 9, 330)])
        assert ranks["a"].out_of == 2
        assert ranks["b"].out_of == 2

    def test_idempotent_and_order_independent(self):
        cohort = [_entry(f"p{i:02d}", random.Random(i).randint(4, 36), 100 + i % 5) for i in range(40)]
        cohort.append(_entry("inc", 0, 0))
        first = rank_cohort(cohort)
        shuffled = list(cohort)
        random.Random(7).shuffle(shuffled)
        assert rank_cohort(cohort) == first
        assert rank_cohort(shuffled) == first
        assert list(rank_cohort(shuffled)) == list(first)

    def test_aggregate_order_respected(self):
        cohort = [_entry(f"p{i}", random.Random(i * 3).randint(4, 36), 200) for i in range(60)]
        ranks = rank_cohort(cohort)
        by_id = {e["pupil_id"]: e for e in cohort}
        for a in cohort:
            for b in cohort:
                if a["aggregate"] < b["aggregate"]:
                    assert ranks[a["pupil_id"]].position < ranks[b["pupil_id"]].position
        assert len(by_id) == len(ranks)

    def test_accepts_cohort_entries(self):
        ranks = rank_cohort([CohortEntry("a", 7, 330), CohortEntry("b", 4, 390)])
        assert ranks["b"].position == 1

    def test_duplicate_pupil_raises(self):
        with pytest.raises(ValueError):
            rank_cohort([_entry("a", 7, 330), _entry("a", 8, 300)])

    def test_invalid_aggregate_raises(self):
        with pytest.raises(InvalidAggregateError):
            rank_cohort([_entry("a", 2, 330)])

    @pytest.mark.parametrize("raw_total", [330.5, "330", True, -1])
    def test_invalid_raw_total_raises(self, raw_total):
        with pytest.raises(ValueError):
            rank_cohort([_entry("a", 7, raw_total)])

    def test_invalid_raw_total_on_cohort_entry(self):
        with pytest.raises(ValueError):
            rank_cohort([CohortEntry("a", 7, -5)])

    def test_missing_raw_total_counts_as_zero(self):
        ranks = rank_cohort([{"pupil_id": "a", "aggregate": 7}, _entry("b", 7, 10)])
        assert ranks["b"].position == 1
        assert ranks["a"].position == 2


class TestRankLabels:
    """Tests for position serialisation."""

    @pytest.mark.parametrize("n,label", [
        (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"),
        (11, "11th"), (12, "12th"), (13, "13th"),
        (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th"),
    ])
    def test_ordinal(self, n, label):
        assert ordinal(n) == label

    def test_rank_table_rows(self):
        rows = rank_table([_entry("a", 7, 330), _entry("b", 0, 0)])
        assert rows[0] == {"pupil_id": "a", "position": 1, "label": "1st", "out_of": 1, "tied": False}
        assert rows[1]["label"] == UNRANKED_LABEL
        assert rows[1]["position"] is None
