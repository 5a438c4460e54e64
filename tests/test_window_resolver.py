#!/usr/bin/env python3
"""
Test suite for month-bucket window resolution
"""

import pytest

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.series_builder import build_intervals
from roster_analytics.analytics.window_resolver import (
    build_growth_inputs,
    build_window_meta,
    build_window_metrics,
    resolve_player_window_points,
    resolve_window,
)
from roster_analytics.schema.models import SeriesPoint, WindowMeta

DATES = [
    "2024-01-01T00:00:00Z",
    "2024-01-15T00:00:00Z",
    "2024-02-01T00:00:00Z",
    "2024-03-01T00:00:00Z",
]


def _point(date, base_stats, level=100, mine=0, treasury=0, guild_key="g1"):
    return SeriesPoint(
        date=date, base_stats=base_stats, level=level, exp=0, exp_next=0,
        mine=mine, treasury=treasury, guild_key=guild_key,
    )


class TestResolveWindow:
    """Test cases for resolve_window"""

    def test_one_month_extends_into_next_bucket(self):
        """A single-date end bucket ends on the next bucket's first date"""
        meta = resolve_window(DATES, 1)

        assert meta.start_date == "2024-02-01T00:00:00Z"
        assert meta.end_date == "2024-03-01T00:00:00Z"
        assert meta.possible_intervals == 1
        assert meta.start_month == "2024-02"
        assert meta.end_month == "2024-02"

    def test_three_months_reaches_back(self):
        """Start bucket is clamped to the first populated month"""
        meta = resolve_window(DATES, 3)

        assert meta.start_date == "2024-01-01T00:00:00Z"
        assert meta.end_date == "2024-03-01T00:00:00Z"
        assert meta.possible_intervals == 3

    def test_end_bucket_with_two_dates(self):
        """An end bucket with two dates ends on its last date"""
        dates = ["2024-01-01", "2024-01-20", "2024-02-05"]
        meta = resolve_window(dates, 1)

        assert meta.start_date == "2024-01-01"
        assert meta.end_date == "2024-01-20"
        assert meta.possible_intervals == 1

    def test_single_date(self):
        """One snapshot resolves to a zero-length window"""
        meta = resolve_window(["2024-01-01"], 3)

        assert meta.start_date == meta.end_date == "2024-01-01"
        assert meta.possible_intervals == 0

    def test_empty_dates(self):
        """No dates gives an empty window"""
        assert resolve_window([], 3) == WindowMeta()

    def test_idempotent_and_order_independent(self):
        """Resolution is a pure function of the date set"""
        first = build_window_meta(DATES, ["1", "3", "6", "12"])
        second = build_window_meta(list(reversed(DATES)), ["1", "3", "6", "12"])

        assert first == second
        assert first == build_window_meta(DATES, ["1", "3", "6", "12"])


class TestPlayerWindowPoints:
    """Test cases for per-player window points"""

    def test_thirty_day_window_metric(self):
        """Two points in one month give a 10 per day window"""
        points = [_point("2024-01-01T00:00:00Z", 1000), _point("2024-01-31T00:00:00Z", 1300)]
        meta = build_window_meta([p.date for p in points], ["3"])
        metrics = build_window_metrics(points, meta)

        assert metrics["baseStats"]["3"].per_day == 10
        assert metrics["baseStats"]["3"].days == 30

    def test_single_point_has_no_metric(self):
        """A single point cannot form a window"""
        points = [_point("2024-01-01", 1000)]
        meta = build_window_meta(["2024-01-01"], ["1", "3"])
        metrics = build_window_metrics(points, meta)

        assert all(value is None for by_window in metrics.values() for value in by_window.values())

    def test_player_missing_end_month_uses_next_point(self):
        """A player absent from the end month ends on their next point"""
        meta = resolve_window(DATES, 3)
        points = [_point("2024-01-01T00:00:00Z", 10), _point("2024-03-01T00:00:00Z", 40)]
        start, end = resolve_player_window_points(points, meta)

        assert start.date == "2024-01-01T00:00:00Z"
        assert end.date == "2024-03-01T00:00:00Z"

    def test_no_span_inside_window(self):
        """Start and end collapsing onto one point gives no window"""
        meta = resolve_window(DATES, 1)
        points = [_point("2024-01-01T00:00:00Z", 10), _point("2024-03-01T00:00:00Z", 40)]

        assert resolve_player_window_points(points, meta) == (None, None)

    def test_player_with_partial_history(self):
        """Start is the first point in or after the start month"""
        meta = resolve_window(DATES, 3)
        points = [
            _point("2024-01-15T00:00:00Z", 10),
            _point("2024-02-01T00:00:00Z", 20),
            _point("2024-03-01T00:00:00Z", 40),
        ]
        start, end = resolve_player_window_points(points, meta)

        assert start.date == "2024-01-15T00:00:00Z"
        assert end.date == "2024-03-01T00:00:00Z"


class TestGrowthInputs:
    """Test cases for window growth inputs"""

    def setup_method(self):
        self.config = EngineConfig()

    def test_growth_inputs_from_intervals(self):
        """Pace sums interval days and deltas inside the window"""
        points = [
            _point("2024-01-01T00:00:00Z", 1000, guild_key="g1"),
            _point("2024-01-31T00:00:00Z", 1300, guild_key="g2"),
        ]
        intervals = build_intervals([p.date for p in points], [p.base_stats for p in points])
        meta = build_window_meta([p.date for p in points], ["3"])
        inputs = build_growth_inputs(points, intervals, meta, self.config)["3"]

        assert inputs.window_days == 30
        assert inputs.window_delta == 300
        assert inputs.abs_per_day == 10
        assert inputs.rel_per_day == pytest.approx(10 / 1_000_000)
        assert inputs.real_guild_key == "g2"

    def test_negative_growth_clamps_to_zero(self):
        """Shrinking baseStats counts as zero pace"""
        points = [_point("2024-01-01", 5000), _point("2024-01-21", 4000)]
        intervals = build_intervals([p.date for p in points], [p.base_stats for p in points])
        meta = build_window_meta([p.date for p in points], ["1"])
        inputs = build_growth_inputs(points, intervals, meta, self.config)["1"]

        assert inputs.window_delta == 0
        assert inputs.abs_per_day == 0
        assert inputs.rel_per_day == 0

    def test_relative_pace_uses_large_base(self):
        """Relative pace divides by baseStats when above the floor"""
        points = [_point("2024-01-01", 4_000_000), _point("2024-01-11", 4_000_100)]
        intervals = build_intervals([p.date for p in points], [p.base_stats for p in points])
        meta = build_window_meta([p.date for p in points], ["1"])
        inputs = build_growth_inputs(points, intervals, meta, self.config)["1"]

        assert inputs.abs_per_day == 10
        assert inputs.rel_per_day == pytest.approx(10 / 4_000_000)
