"""Tests for the numeric helpers."""

import math
from datetime import datetime, timedelta, timezone

from insights.lib.stats import (
    as_utc,
    days_between,
    mean,
    percentage,
    round_half_up,
    safe_div,
    stable_rank,
    upper_median,
    whole_days_between,
)


class TestSafeDivision:
    def test_divides(self):
        assert safe_div(3, 4) == 0.75

    def test_zero_denominator_returns_default(self):
        assert safe_div(3, 0) == 0.0
        assert safe_div(3, 0, default=-1) == -1

    def test_percentage(self):
        assert percentage(1, 4) == 25.0
        assert percentage(5, 0) == 0
        assert math.isfinite(percentage(0, 0))

    def test_mean(self):
        assert mean([]) == 0
        assert mean([100, 300]) == 200


class TestUpperMedian:
    def test_empty(self):
        assert upper_median([]) == 0

    def test_single(self):
        assert upper_median([10]) == 10

    def test_even_count_takes_upper_middle(self):
        assert upper_median([10, 20]) == 20
        assert upper_median([40, 10, 30, 20]) == 30

    def test_odd_count(self):
        assert upper_median([90, 5, 30]) == 30


class TestRounding:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_below_half_rounds_down(self):
        assert round_half_up(22.4) == 22
        assert round_half_up(0) == 0


class TestDays:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_days_between(self):
        assert days_between(self.start, self.start + timedelta(days=3, hours=12)) == 3.5

    def test_missing_bound(self):
        assert days_between(None, self.start) is None
        assert whole_days_between(self.start, None) is None

    def test_whole_days_floor(self):
        assert whole_days_between(self.start, self.start + timedelta(days=7, hours=23)) == 7
        assert whole_days_between(self.start, self.start + timedelta(days=8)) == 8

    def test_naive_treated_as_utc(self):
        naive = datetime(2024, 1, 1)
        assert as_utc(naive) == self.start
        assert as_utc(self.start) is self.start


class TestStableRank:
    def test_sorts_descending_and_keeps_tie_order(self):
        items = [
            {"k": "a", "n": 1},
            {"k": "b", "n": 3},
            {"k": "c", "n": 1},
            {"k": "d", "n": 3},
        ]
        ranked = stable_rank(items, "n")
        assert [i["k"] for i in ranked] == ["b", "d", "a", "c"]

    def test_limit(self):
        items = [{"n": i} for i in range(10)]
        assert len(stable_rank(items, "n", 5)) == 5
        assert stable_rank(items, "n", 5)[0]["n"] == 9
