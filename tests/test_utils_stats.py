#!/usr/bin/env python3
"""
Tests for date and ratio helpers
"""

import pytest

from roster_analytics.analytics.utils_stats import (
    diff_days,
    epoch_ms,
    map_ratio,
    month_key,
    resolve_ratio,
    sort_dates,
)


class TestDateHelpers:
    """Test snapshot date arithmetic"""

    def test_epoch_ms_is_utc(self):
        """Naive and offset timestamps resolve to the same instant"""
        assert epoch_ms("1970-01-02T00:00:00Z") == 86_400_000
        assert epoch_ms("2024-01-01T02:00:00+02:00") == epoch_ms("2024-01-01T00:00:00")

    def test_diff_days_rounds_half_up(self):
        """Day counts round half up and never drop below 1"""
        assert diff_days("2024-01-01T00:00:00Z", "2024-01-31T00:00:00Z") == 30
        assert diff_days("2024-01-01T00:00:00Z", "2024-01-02T12:00:00Z") == 2
        assert diff_days("2024-01-01T00:00:00Z", "2024-01-01T01:00:00Z") == 1

    def test_month_key(self):
        """Months bucket on the UTC date"""
        assert month_key("2024-02-29T23:00:00Z") == "2024-02"
        assert month_key("2024-03-01T01:00:00+02:00") == "2024-02"

    def test_sort_dates_dedupes(self):
        """Dates are unique and chronological"""
        dates = ["2024-03-01", "2024-01-01", "2024-03-01", "2024-02-01"]

        assert sort_dates(dates) == ["2024-01-01", "2024-02-01", "2024-03-01"]

    def test_unparseable_date(self):
        """Garbage dates raise ValueError"""
        with pytest.raises(ValueError):
            epoch_ms("not-a-date")


class TestRatios:
    """Test ratio helpers"""

    def test_resolve_ratio(self):
        """The first positive baseline is used, otherwise the ratio is neutral"""
        assert resolve_ratio(10, 5, 2) == 2
        assert resolve_ratio(10, 0, 2) == 5
        assert resolve_ratio(10, 0, 0) == 1.0

    def test_map_ratio(self):
        """Neutral ratio maps to 0.5 and non-positive ratios to 0"""
        assert map_ratio(1.0) == pytest.approx(0.5)
        assert map_ratio(0.0) == 0.0
        assert map_ratio(4.0) > 0.5
