#!/usr/bin/env python3
"""
Growth / consistency scorer.

Combines a growth sub-score (window pace against the server baseline), a
consistency sub-score (interval paces against the server's pace for the
same intervals), a level-progression penalty and a coverage factor into a
bounded score per player and window. Every score carries a ScoreBreakdown
so the figures behind it can be inspected.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging
import math

from roster_analytics.analytics.config import EngineConfig, load_config
from roster_analytics.analytics.growth_reference import (
    GrowthBaselines,
    select_growth_reference,
)
from roster_analytics.analytics.percentiles import percentile_from_sorted
from roster_analytics.analytics.utils_stats import (
    average,
    clamp,
    diff_days,
    finite_or_zero,
    map_ratio,
    median_absolute_deviation,
    resolve_ratio,
)
from roster_analytics.analytics.window_resolver import (
    resolve_player_window_points,
    window_intervals,
)
from roster_analytics.schema.models import (
    ConsistencyBreakdown,
    GrowthBreakdown,
    GrowthInputs,
    GrowthReference,
    IntervalMetric,
    LevelBreakdown,
    PlayerComputed,
    ScoreBreakdown,
    ScoreWeights,
    SeriesPoint,
    WindowMeta,
    WindowMetric,
)

logger = logging.getLogger(__name__)

# Growth sub-score: server term plus fixed neutral relative and momentum terms
GROWTH_SERVER_WEIGHT = 0.7
GROWTH_RELATIVE_WEIGHT = 0.2
GROWTH_MOMENTUM_WEIGHT = 0.1
NEUTRAL_TERM = 0.5

# Consistency sub-score
RATIO_FLOOR = 0.5
RATIO_CEILING = 1.5
ABOVE_SHARE_WEIGHT = 0.4
CLOSENESS_WEIGHT = 0.35
STABILITY_WEIGHT = 0.25
CLOSENESS_DECAY = 3.0
STABILITY_DECAY = 6.0


@dataclass(frozen=True)
class ScoreContext:
    """Everything about one player needed to score a window."""

    player_key: str
    server: str
    points: Sequence[SeriesPoint]
    intervals: Sequence[IntervalMetric]
    window_metrics: Dict[str, Dict[str, Optional[WindowMetric]]]
    window_meta: Dict[str, WindowMeta]
    growth_inputs: Dict[str, GrowthInputs] = field(default_factory=dict)

    @classmethod
    def from_player(cls, player: PlayerComputed, window_meta: Dict[str, WindowMeta]) -> "ScoreContext":
        return cls(
            player_key=player.player_key,
            server=player.server,
            points=player.points,
            intervals=player.intervals.get("baseStats", []),
            window_metrics=player.window_metrics,
            window_meta=window_meta,
            growth_inputs=player.growth_inputs,
        )

    def window_metric(self, metric: str, window_key: str) -> Optional[WindowMetric]:
        return self.window_metrics.get(metric, {}).get(window_key)


def default_score_breakdown(window_key: str = "", config: Optional[EngineConfig] = None) -> ScoreBreakdown:
    """Zero score with neutral sub-terms, used for windows with nothing to score."""
    return ScoreBreakdown(window_key=window_key, weights=score_weights(config or load_config()))


def score_weights(config: EngineConfig) -> ScoreWeights:
    return ScoreWeights(
        growth=config.score_weight_growth,
        consistency=config.score_weight_consistency,
        level_penalty=config.level_penalty_weight,
    )


def compute_growth(inputs: GrowthInputs, reference: GrowthReference,
                   server_avg: float, top_average: float) -> GrowthBreakdown:
    """
    Growth sub-score from the window pace and the server baseline.

    The server ratio is squashed with map_ratio; without a positive server
    average the ratio is neutral (1.0, mapping to 0.5). Relative and
    momentum terms are fixed at 0.5. Guild and top-N ratios are reported
    for display only.

    Args:
        inputs: Player growth inputs for the window
        reference: Selected growth reference
        server_avg: Server average absolute pace
        top_average: Top-N display average

    Returns:
        GrowthBreakdown
    """
    abs_per_day = max(0.0, finite_or_zero(inputs.abs_per_day))
    rel_per_day = max(0.0, finite_or_zero(inputs.rel_per_day))

    abs_vs_server = resolve_ratio(abs_per_day, server_avg, 0.0)
    abs_vs_top100 = resolve_ratio(abs_per_day, top_average, server_avg)
    abs_vs_guild = resolve_ratio(abs_per_day, reference.abs_avg, server_avg)
    rel_vs_guild = rel_per_day / reference.rel_avg if reference.rel_avg > 0 else 1.0

    server_term = map_ratio(abs_vs_server)
    growth_score = clamp(
        GROWTH_SERVER_WEIGHT * server_term
        + GROWTH_RELATIVE_WEIGHT * NEUTRAL_TERM
        + GROWTH_MOMENTUM_WEIGHT * NEUTRAL_TERM,
        0.0, 1.0,
    )

    return GrowthBreakdown(
        abs_per_day=abs_per_day,
        rel_per_day=rel_per_day,
        server_avg=server_avg,
        top100_avg=top_average,
        abs_vs_server=abs_vs_server,
        abs_vs_top100=abs_vs_top100,
        abs_vs_guild=abs_vs_guild,
        rel_vs_guild=rel_vs_guild,
        reference=reference,
        server_term=server_term,
        relative_term=NEUTRAL_TERM,
        momentum_term=NEUTRAL_TERM,
        growth_score=growth_score,
    )


def compute_consistency(intervals: Sequence[IntervalMetric], meta: WindowMeta,
                        server_interval_avg: Dict, config: EngineConfig) -> ConsistencyBreakdown:
    """
    Consistency sub-score and coverage for the intervals inside a window.

    Each interval pace is divided by the server's average pace over the same
    interval (0 without one), clamped to [0.5, 1.5] and log-transformed.
    With no realized interval the score is 0.

    Args:
        intervals: Player baseStats intervals
        meta: Resolved window
        server_interval_avg: {(start_date, end_date): mean pace} for the server
        config: Engine configuration

    Returns:
        ConsistencyBreakdown
    """
    realized = window_intervals(intervals, meta)
    possible = meta.possible_intervals
    coverage = len(realized) / possible if possible > 0 else 1.0
    coverage_factor = clamp(coverage, config.coverage_floor, 1.0)

    if not realized:
        return ConsistencyBreakdown(
            interval_count=0,
            possible_intervals=possible,
            coverage=coverage,
            coverage_factor=coverage_factor,
        )

    ratios: List[float] = []
    for interval in realized:
        baseline = server_interval_avg.get((interval.start_date, interval.end_date), 0.0)
        ratio = interval.per_day / baseline if baseline > 0 else 0.0
        ratios.append(clamp(finite_or_zero(ratio), RATIO_FLOOR, RATIO_CEILING))

    logs = [math.log(r) for r in ratios]
    above_share = sum(1 for r in ratios if r >= 1.0) / len(ratios)
    gap = average([abs(x) for x in logs])
    closeness = math.exp(-CLOSENESS_DECAY * gap)
    stability = (
        math.exp(-STABILITY_DECAY * median_absolute_deviation(logs)) if len(logs) >= 2 else NEUTRAL_TERM
    )
    score = clamp(
        ABOVE_SHARE_WEIGHT * above_share + CLOSENESS_WEIGHT * closeness + STABILITY_WEIGHT * stability,
        0.0, 1.0,
    )

    return ConsistencyBreakdown(
        interval_count=len(realized),
        possible_intervals=possible,
        ratios=tuple(ratios),
        above_share=above_share,
        gap=gap,
        closeness=closeness,
        stability=stability,
        consistency_score=score,
        coverage=coverage,
        coverage_factor=coverage_factor,
    )


def compute_level_penalty(start: Optional[SeriesPoint], end: Optional[SeriesPoint],
                          config: EngineConfig) -> LevelBreakdown:
    """
    Penalty for levelling slower than LEVEL_PER30_TARGET levels per 30 days.

    Unknown window points give no penalty.
    """
    if start is None or end is None:
        return LevelBreakdown()

    window_days = diff_days(start.date, end.date)
    level_delta = max(0.0, end.level - start.level)
    level_per30 = level_delta / window_days * 30
    target = config.level_per30_target
    penalty = clamp((target - level_per30) / target, 0.0, 1.0) if target > 0 else 0.0

    return LevelBreakdown(
        level_start=start.level,
        level_end=end.level,
        level_delta=level_delta,
        window_days=window_days,
        level_per30=level_per30,
        low_leveling=level_per30 < target,
        penalty=penalty,
    )


def compute_score_for_window(context: ScoreContext, window_key: str,
                             baselines: GrowthBaselines, config: EngineConfig) -> ScoreBreakdown:
    """
    Score one player for one window.

    Args:
        context: Player data to score
        window_key: Window to score ("1", "3", "6", "12")
        baselines: Growth baselines of the whole population
        config: Engine configuration

    Returns:
        ScoreBreakdown whose ``score`` lies in [0, 1]
    """
    meta = context.window_meta.get(window_key, WindowMeta())
    window = baselines.window(window_key)
    inputs = context.growth_inputs.get(window_key, GrowthInputs())

    reference = select_growth_reference(
        context.player_key, context.server, inputs, baselines, window_key, config
    )
    growth = compute_growth(
        inputs,
        reference,
        window.server_avg.get(context.server, 0.0),
        window.top_average.get(context.server, 0.0),
    )
    consistency = compute_consistency(
        context.intervals, meta, baselines.server_interval_avg.get(context.server, {}), config
    )

    start, end = resolve_player_window_points(context.points, meta)
    level = compute_level_penalty(start, end, config)

    mine_capped = any(p is not None and p.mine >= config.mine_cap for p in (start, end))
    treasury_capped = any(p is not None and p.treasury >= config.treasury_cap for p in (start, end))

    base_metric = context.window_metric("baseStats", window_key)
    cohort = window.cohort_paces.get(context.server, [])
    percentile = percentile_from_sorted(cohort, base_metric.per_day if base_metric else 0.0)

    weights = score_weights(config)
    raw_score = weights.growth * growth.growth_score + weights.consistency * consistency.consistency_score
    score = clamp(
        raw_score * consistency.coverage_factor * (1 - weights.level_penalty * level.penalty),
        0.0, 1.0,
    )

    return ScoreBreakdown(
        window_key=window_key,
        raw_score=raw_score,
        score=score,
        weights=weights,
        growth=growth,
        consistency=consistency,
        level=level,
        percentile_top_cohort=percentile,
        mine_capped=mine_capped,
        treasury_capped=treasury_capped,
    )


def score_player(player: PlayerComputed, window_meta: Dict[str, WindowMeta],
                 baselines: GrowthBaselines, config: EngineConfig) -> None:
    """Attach per-window scores and breakdowns to ``player``."""
    context = ScoreContext.from_player(player, window_meta)
    for window_key in config.window_keys:
        breakdown = compute_score_for_window(context, window_key, baselines, config)
        player.score_breakdown_by_window[window_key] = breakdown
        player.score_by_window[window_key] = breakdown.score
    player.score = player.score_by_window.get(config.default_score_window, 0.0)
