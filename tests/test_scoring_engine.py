#!/usr/bin/env python3
"""
Test suite for the growth / consistency scorer
"""

import math

import pytest

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.growth_reference import (
    GroupAverage,
    GrowthBaselines,
    WindowBaselines,
    build_custom_group_map,
    select_growth_reference,
)
from roster_analytics.analytics.scoring_engine import (
    compute_consistency,
    compute_growth,
    compute_level_penalty,
    default_score_breakdown,
)
from roster_analytics.analytics.series_builder import build_intervals
from roster_analytics.schema.models import (
    GrowthInputs,
    GrowthReference,
    ReferenceKind,
    SeriesPoint,
    WindowMeta,
)


def _point(date, level):
    return SeriesPoint(
        date=date, base_stats=0, level=level, exp=0, exp_next=0,
        mine=0, treasury=0, guild_key="g1",
    )


class TestGrowth:
    """Test cases for the growth sub-score"""

    def test_pace_equal_to_server_is_half(self):
        """Matching the server average maps to the midpoint"""
        growth = compute_growth(GrowthInputs(abs_per_day=10), GrowthReference(), 10, 10)

        assert growth.abs_vs_server == 1
        assert growth.server_term == pytest.approx(0.5)
        assert growth.growth_score == pytest.approx(0.5)

    def test_no_server_baseline_is_neutral(self):
        """Without a server average the ratio is neutral"""
        growth = compute_growth(GrowthInputs(abs_per_day=25), GrowthReference(), 0, 0)

        assert growth.abs_vs_server == 1
        assert growth.growth_score == pytest.approx(0.5)

    def test_zero_pace_against_server(self):
        """Zero pace keeps only the neutral terms"""
        growth = compute_growth(GrowthInputs(abs_per_day=0), GrowthReference(), 10, 10)
        assert growth.growth_score == pytest.approx(0.15)

    def test_fast_pace_approaches_upper_bound(self):
        """Much faster than the server approaches 0.85"""
        growth = compute_growth(GrowthInputs(abs_per_day=1000), GrowthReference(), 10, 10)

        assert 0.84 < growth.growth_score <= 0.85

    def test_guild_ratio_reported(self):
        """Reference averages are reported as ratios"""
        reference = GrowthReference(ReferenceKind.REAL, "g1", abs_avg=20, rel_avg=0.001, count=3)
        growth = compute_growth(GrowthInputs(abs_per_day=10, rel_per_day=0.002), reference, 10, 40)

        assert growth.abs_vs_guild == 0.5
        assert growth.rel_vs_guild == pytest.approx(2)
        assert growth.abs_vs_top100 == 0.25


class TestConsistency:
    """Test cases for the consistency sub-score"""

    def setup_method(self):
        self.config = EngineConfig()
        self.dates = ["2024-01-01", "2024-01-11", "2024-01-21", "2024-01-31"]
        self.meta = WindowMeta(
            start_date="2024-01-01", end_date="2024-01-31", possible_intervals=3,
            start_month="2024-01", end_month="2024-01",
        )

    def _server(self, per_day):
        return {(a, b): per_day for a, b in zip(self.dates, self.dates[1:])}

    def test_matching_server_is_fully_consistent(self):
        """Paces equal to the server every interval score 1"""
        intervals = build_intervals(self.dates, [0, 100, 200, 300])
        result = compute_consistency(intervals, self.meta, self._server(10), self.config)

        assert result.ratios == (1.0, 1.0, 1.0)
        assert result.above_share == 1
        assert result.closeness == 1
        assert result.stability == 1
        assert result.consistency_score == pytest.approx(1.0)
        assert result.coverage == 1

    def test_ratios_are_clamped(self):
        """Ratios are clamped to [0.5, 1.5]"""
        intervals = build_intervals(self.dates, [0, 1000, 1000, 1001])
        result = compute_consistency(intervals, self.meta, self._server(10), self.config)

        assert result.ratios == (1.5, 0.5, 0.5)
        assert result.above_share == pytest.approx(1 / 3)
        assert 0 <= result.consistency_score <= 1

    def test_missing_server_baseline(self):
        """No server interval average gives the floor ratio"""
        intervals = build_intervals(self.dates[:2], [0, 100])
        result = compute_consistency(intervals, self.meta, {}, self.config)

        assert result.ratios == (0.5,)
        assert result.stability == 0.5
        assert result.gap == pytest.approx(abs(math.log(0.5)))

    def test_no_intervals(self):
        """No realized intervals scores 0"""
        result = compute_consistency([], self.meta, self._server(10), self.config)

        assert result.consistency_score == 0
        assert result.coverage == 0
        assert result.coverage_factor == 0.75

    def test_coverage_factor(self):
        """Coverage is realized over possible intervals, floored at 0.75"""
        intervals = build_intervals(["2024-01-01", "2024-01-11"], [0, 100])
        meta = WindowMeta("2024-01-01", "2024-01-31", 2, "2024-01", "2024-01")
        result = compute_consistency(intervals, meta, self._server(10), self.config)

        assert result.coverage == 0.5
        assert result.coverage_factor == 0.75


class TestLevelPenalty:
    """Test cases for the level-progression penalty"""

    def setup_method(self):
        self.config = EngineConfig()

    def test_no_levels_over_thirty_days(self):
        """Flat level is low leveling with the full penalty"""
        result = compute_level_penalty(_point("2024-01-01", 100), _point("2024-01-31", 100), self.config)

        assert result.window_days == 30
        assert result.level_per30 == 0
        assert result.low_leveling is True
        assert result.penalty == 1

    def test_partial_penalty(self):
        """Below target levelling is penalised proportionally"""
        result = compute_level_penalty(_point("2024-01-01", 100), _point("2024-01-31", 101), self.config)

        assert result.level_per30 == pytest.approx(1)
        assert result.penalty == pytest.approx(2 / 3)

    def test_on_target_has_no_penalty(self):
        """Meeting the target removes the penalty"""
        result = compute_level_penalty(_point("2024-01-01", 100), _point("2024-01-31", 106), self.config)

        assert result.low_leveling is False
        assert result.penalty == 0

    def test_unknown_points(self):
        """Unknown window points carry no penalty"""
        result = compute_level_penalty(None, None, self.config)

        assert result.penalty == 0
        assert result.level_per30 is None


class TestGrowthReference:
    """Test cases for reference precedence"""

    def setup_method(self):
        self.config = EngineConfig()

    def _baselines(self, custom=None, real=None, server_avg=5.0):
        window = WindowBaselines(
            server_avg={"s1": server_avg},
            real_guilds=real or {},
            custom_groups=custom or {},
        )
        return GrowthBaselines(
            by_window={"3": window},
            custom_group_by_player={"p1": "custom:col-2"},
        )

    def test_custom_group_first(self):
        """A valid custom group wins over the real guild"""
        baselines = self._baselines(
            custom={"custom:col-2": GroupAverage(8, 0.1, 3, 3)},
            real={"g1": GroupAverage(6, 0.1, 4, 4)},
        )
        reference = select_growth_reference(
            "p1", "s1", GrowthInputs(real_guild_key="g1"), baselines, "3", self.config
        )

        assert reference.kind == ReferenceKind.CUSTOM
        assert reference.key == "custom:col-2"

    def test_real_guild_when_custom_invalid(self):
        """An undersized custom group falls through to the real guild"""
        baselines = self._baselines(
            custom={"custom:col-2": GroupAverage(8, 0.1, 1, 1)},
            real={"g1": GroupAverage(6, 0.1, 4, 4)},
        )
        reference = select_growth_reference(
            "p1", "s1", GrowthInputs(real_guild_key="g1"), baselines, "3", self.config
        )

        assert reference.kind == ReferenceKind.REAL
        assert reference.abs_avg == 6

    def test_single_member_guild_falls_back_to_server(self):
        """A one-member guild is not a valid reference"""
        baselines = self._baselines(real={"g2": GroupAverage(6, 0.1, 1, 1)})
        reference = select_growth_reference(
            "p9", "s1", GrowthInputs(real_guild_key="g2"), baselines, "3", self.config
        )

        assert reference.kind == ReferenceKind.SERVER
        assert reference.abs_avg == 5.0

    def test_no_baseline(self):
        """Nothing usable yields NONE"""
        baselines = self._baselines(server_avg=0.0)
        reference = select_growth_reference("p9", "s1", GrowthInputs(), baselines, "3", self.config)

        assert reference.kind == ReferenceKind.NONE

    def test_custom_group_map_skips_reserved(self):
        """The reserved group id is ignored"""
        mapping = build_custom_group_map({"col-1": ["a"], "col-2": ["b", "c"], "col-3": "bad"})
        assert mapping == {"b": "custom:col-2", "c": "custom:col-2"}


class TestDefaultBreakdown:
    """Test cases for the neutral breakdown"""

    def test_default_breakdown(self):
        """The default breakdown is a zero score with configured weights"""
        breakdown = default_score_breakdown("3")

        assert breakdown.window_key == "3"
        assert breakdown.score == 0
        assert breakdown.weights.growth == 0.75
        assert breakdown.weights.consistency == 0.25
        assert breakdown.growth.relative_term == 0.5
