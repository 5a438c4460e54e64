#!/usr/bin/env python3
"""
Series and interval builder.

Turns indexed snapshots into per-player and per-guild point histories,
consecutive interval deltas per metric, and the cumulative experience
total that bridges the fixed-exp level threshold.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.snapshot_index import (
    IndexedSnapshot,
    RosterScope,
    SnapshotPlayerStats,
)
from roster_analytics.analytics.utils_stats import (
    average,
    diff_days,
    median,
    weighted_per_day,
)
from roster_analytics.schema.models import (
    METRIC_KEYS,
    Coverage,
    GuildComputed,
    GuildSeriesPoint,
    IntervalMetric,
    PlayerComputed,
    PlayerSeries,
    SeriesPoint,
)

logger = logging.getLogger(__name__)


@dataclass
class SeriesCollection:
    """Raw histories gathered from every snapshot in one pass."""

    roster_players: Dict[str, PlayerSeries] = field(default_factory=dict)
    global_players: Dict[str, PlayerSeries] = field(default_factory=dict)
    guild_points: Dict[str, List[GuildSeriesPoint]] = field(default_factory=dict)
    roster_member_counts: List[int] = field(default_factory=list)


def point_from_stats(stats: SnapshotPlayerStats, date: str) -> SeriesPoint:
    return SeriesPoint(
        date=date,
        base_stats=stats.base_stats,
        level=stats.level,
        exp=stats.exp,
        exp_next=stats.exp_next,
        mine=stats.mine,
        treasury=stats.treasury,
        guild_key=stats.guild_key,
    )


def _append_point(series_map: Dict[str, PlayerSeries], stats: SnapshotPlayerStats, date: str) -> None:
    series = series_map.get(stats.player_key)
    if series is None:
        series = PlayerSeries(player_key=stats.player_key, name=stats.name, server=stats.server)
        series_map[stats.player_key] = series

    # Latest snapshot wins for identity fields
    series.name = stats.name
    series.server = stats.server
    series.player_id = stats.player_id
    series.class_id = stats.class_id

    point = point_from_stats(stats, date)
    if series.points and series.points[-1].date == date:
        series.points[-1] = point
    else:
        series.points.append(point)


def build_guild_point(date: str, members: Sequence[SnapshotPlayerStats]) -> GuildSeriesPoint:
    """Median and mean of each metric across the members present at one snapshot."""
    base_stats = [m.base_stats for m in members]
    levels = [m.level for m in members]
    mines = [m.mine for m in members]
    treasuries = [m.treasury for m in members]
    return GuildSeriesPoint(
        date=date,
        member_count=len(members),
        base_stats_median=median(base_stats),
        base_stats_avg=average(base_stats),
        level_median=median(levels),
        level_avg=average(levels),
        mine_median=median(mines),
        mine_avg=average(mines),
        treasury_median=median(treasuries),
        treasury_avg=average(treasuries),
    )


def collect_series(indexed_snapshots: Sequence[IndexedSnapshot], roster: RosterScope) -> SeriesCollection:
    """
    Gather roster, global and guild histories from ordered snapshots.

    Roster players are the latest members of the roster guilds; their points
    come from every snapshot they appear in, whatever guild they were in at
    the time. Global players are everyone seen in any snapshot.

    Args:
        indexed_snapshots: Snapshots in ascending scan order
        roster: Resolved roster scope

    Returns:
        SeriesCollection whose points are in ascending date order
    """
    collection = SeriesCollection()

    for indexed in indexed_snapshots:
        date = indexed.scanned_at
        snapshot_member_count = 0

        for guild_key in roster.guild_keys:
            present = []
            for player_key in roster.members_by_guild.get(guild_key, ()):
                stats = indexed.players_by_key.get(player_key)
                if stats is None:
                    continue
                present.append(stats)
                _append_point(collection.roster_players, stats, date)

            snapshot_member_count += len(present)
            if present:
                collection.guild_points.setdefault(guild_key, []).append(
                    build_guild_point(date, present)
                )

        for stats in indexed.players_by_key.values():
            _append_point(collection.global_players, stats, date)

        collection.roster_member_counts.append(snapshot_member_count)

    logger.debug(
        f"Collected {len(collection.roster_players)} roster and "
        f"{len(collection.global_players)} global player series"
    )
    return collection


def resolve_exp_per_level(level: float, exp_next: float, config: EngineConfig) -> float:
    if exp_next > 0:
        return exp_next
    return config.exp_per_level_high if level >= config.exp_level_threshold else 0.0


def compute_exp_delta(prev: SeriesPoint, curr: SeriesPoint, config: EngineConfig) -> float:
    """
    Experience earned between two consecutive points.

    Below the threshold each level costs its own ``exp_next``; from the
    threshold on every level costs ``exp_per_level_high``. A level-up closes
    out the remainder of the starting level, adds whole levels in between and
    then the exp already earned in the ending level.
    """
    threshold = config.exp_level_threshold
    high = config.exp_per_level_high

    if curr.level <= prev.level:
        return max(0.0, curr.exp - prev.exp)

    prev_per_level = resolve_exp_per_level(prev.level, prev.exp_next, config)
    curr_per_level = resolve_exp_per_level(curr.level, curr.exp_next, config)
    fallback_per_level = prev_per_level or curr_per_level or high
    levels_gained = curr.level - prev.level

    if prev.level < threshold <= curr.level:
        levels_below = max(0.0, threshold - prev.level)
        levels_above = curr.level - max(prev.level, threshold)
        delta = max(0.0, fallback_per_level - prev.exp)
        if levels_below > 1:
            delta += (levels_below - 1) * fallback_per_level
        if levels_above > 0:
            delta += levels_above * high
        return delta + max(0.0, curr.exp)

    per_level = high if prev.level >= threshold else fallback_per_level
    delta = max(0.0, per_level - prev.exp)
    if levels_gained > 1:
        delta += (levels_gained - 1) * per_level
    return delta + max(0.0, curr.exp)


def apply_exp_totals(points: Sequence[SeriesPoint], config: EngineConfig) -> List[SeriesPoint]:
    """Return copies of ``points`` carrying the running, non-decreasing exp total."""
    if not points:
        return []
    total = max(0.0, points[0].exp)
    result = [replace(points[0], exp_total=total)]
    for prev, curr in zip(points, points[1:]):
        total += compute_exp_delta(prev, curr, config)
        result.append(replace(curr, exp_total=total))
    return result


def build_intervals(dates: Sequence[str], values: Sequence[float]) -> List[IntervalMetric]:
    """
    Consecutive deltas between aligned date/value sequences.

    Args:
        dates: Ascending snapshot dates
        values: Metric value at each date

    Returns:
        One IntervalMetric per adjacent pair
    """
    intervals = []
    for index in range(1, len(dates)):
        delta = values[index] - values[index - 1]
        days = diff_days(dates[index - 1], dates[index])
        intervals.append(IntervalMetric(
            start_date=dates[index - 1],
            end_date=dates[index],
            days=days,
            delta=delta,
            per_day=delta / days,
        ))
    return intervals


def build_point_intervals(points: Sequence, value_of: Callable) -> List[IntervalMetric]:
    return build_intervals([p.date for p in points], [value_of(p) for p in points])


def best_and_worst(intervals: Sequence[IntervalMetric]) -> Tuple[Optional[IntervalMetric], Optional[IntervalMetric]]:
    if not intervals:
        return None, None
    best = max(intervals, key=lambda i: i.per_day)
    worst = min(intervals, key=lambda i: i.per_day)
    return best, worst


def build_player_computed(series: PlayerSeries, config: EngineConfig) -> PlayerComputed:
    """
    Series-level aggregates for one player.

    Window metrics, growth inputs, percentiles and scores are attached by
    later stages.
    """
    points = apply_exp_totals(series.points, config)

    intervals = {
        metric: build_point_intervals(points, lambda p, m=metric: p.metric(m))
        for metric in METRIC_KEYS
    }
    best, worst = best_and_worst(intervals["baseStats"])
    coverage_days = diff_days(points[0].date, points[-1].date) if len(points) > 1 else 0

    return PlayerComputed(
        player_key=series.player_key,
        name=series.name,
        server=series.server,
        player_id=series.player_id,
        class_id=series.class_id,
        latest_guild_key=points[-1].guild_key if points else None,
        points=points,
        intervals=intervals,
        last_intervals={m: (v[-1] if v else None) for m, v in intervals.items()},
        per_day_year={m: weighted_per_day(v) for m, v in intervals.items()},
        coverage=Coverage(points=len(points), days=coverage_days),
        best_interval=best,
        worst_interval=worst,
    )


def build_guild_computed(guild_key: str, guild_name: str,
                         points: Sequence[GuildSeriesPoint]) -> GuildComputed:
    """
    Guild aggregates from its per-snapshot medians.

    good_intervals / bad_intervals are the three best and three worst
    baseStats intervals by per-day pace.
    """
    points = list(points)
    intervals_by_metric = {
        metric: build_point_intervals(points, lambda p, m=metric: p.median_of(m))
        for metric in METRIC_KEYS
    }
    base_intervals = intervals_by_metric["baseStats"]
    ordered = sorted(base_intervals, key=lambda i: i.per_day, reverse=True)
    last = points[-1] if points else None

    return GuildComputed(
        guild_key=guild_key,
        guild_name=guild_name,
        points=points,
        intervals=base_intervals,
        intervals_by_metric=intervals_by_metric,
        per_day_year={m: weighted_per_day(v) for m, v in intervals_by_metric.items()},
        median_latest={m: (last.median_of(m) if last else 0.0) for m in METRIC_KEYS},
        good_intervals=ordered[:3],
        bad_intervals=list(reversed(ordered))[:3],
    )
