#!/usr/bin/env python3
"""
Growth baselines and reference selection.

Per window, computes the comparison baselines a player's pace is scored
against: the server average over the server's strongest players, the
top-N display average, real-guild and custom-group averages, per-interval
server averages for consistency, and the sorted pace cohort used for the
cohort percentile.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import math

import pandas as pd

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.snapshot_index import IndexedSnapshot
from roster_analytics.schema.models import (
    GrowthInputs,
    GrowthReference,
    PlayerComputed,
    ReferenceKind,
)

logger = logging.getLogger(__name__)

CUSTOM_GROUP_PREFIX = "custom:"

IntervalKey = Tuple[str, str]


@dataclass(frozen=True)
class GroupAverage:
    abs_avg: float
    rel_avg: float
    count: int
    positive_count: int

    def is_valid(self, min_count: int) -> bool:
        return self.positive_count >= min_count and self.abs_avg > 0


@dataclass
class WindowBaselines:
    server_avg: Dict[str, float] = field(default_factory=dict)
    top_average: Dict[str, float] = field(default_factory=dict)
    real_guilds: Dict[str, GroupAverage] = field(default_factory=dict)
    custom_groups: Dict[str, GroupAverage] = field(default_factory=dict)
    cohort_paces: Dict[str, List[float]] = field(default_factory=dict)


@dataclass
class GrowthBaselines:
    """Baselines for every window plus the window-independent lookups."""

    by_window: Dict[str, WindowBaselines] = field(default_factory=dict)
    server_interval_avg: Dict[str, Dict[IntervalKey, float]] = field(default_factory=dict)
    custom_group_by_player: Dict[str, str] = field(default_factory=dict)

    def window(self, window_key: str) -> WindowBaselines:
        return self.by_window.get(window_key, WindowBaselines())


def build_custom_group_map(custom_groups: Optional[Mapping[str, Iterable[str]]],
                           reserved_group_id: str = "col-1") -> Dict[str, str]:
    """
    Map player key -> custom group key (``custom:<group id>``).

    The reserved group id means "not grouped" and is skipped. A player listed
    in several groups keeps the last one.
    """
    result: Dict[str, str] = {}
    if not custom_groups:
        return result
    for group_id, player_keys in custom_groups.items():
        if group_id == reserved_group_id or not isinstance(player_keys, (list, tuple, set)):
            continue
        for player_key in player_keys:
            result[str(player_key)] = f"{CUSTOM_GROUP_PREFIX}{group_id}"
    return result


def rank_server_population(latest: IndexedSnapshot) -> Dict[str, List[str]]:
    """
    Player keys per server ordered by latest baseStats, strongest first.

    Ties keep snapshot order.
    """
    rows = [(s.server, s.player_key, s.base_stats) for s in latest.players_by_key.values()]
    if not rows:
        return {}
    df = pd.DataFrame(rows, columns=["server", "player_key", "base_stats"])
    df = df.sort_values("base_stats", ascending=False, kind="mergesort")
    return {server: list(group["player_key"]) for server, group in df.groupby("server", sort=False)}


def _top(keys: Sequence[str], limit: Optional[int]) -> Sequence[str]:
    return keys if limit is None else keys[:limit]


def _finite_mean(values: Iterable[float]) -> float:
    clean = [v for v in values if math.isfinite(v)]
    return sum(clean) / len(clean) if clean else 0.0


def _abs_pace(players_by_key: Mapping[str, PlayerComputed], key: str, window_key: str) -> float:
    player = players_by_key.get(key)
    if player is None:
        return 0.0
    return player.growth_inputs.get(window_key, GrowthInputs()).abs_per_day


def _group_averages(rows: List[Tuple[str, float, float]]) -> Dict[str, GroupAverage]:
    if not rows:
        return {}
    df = pd.DataFrame(rows, columns=["group", "abs_per_day", "rel_per_day"])
    df["positive"] = df["abs_per_day"] > 0
    grouped = df.groupby("group", sort=False).agg(
        abs_avg=("abs_per_day", "mean"),
        rel_avg=("rel_per_day", "mean"),
        count=("abs_per_day", "size"),
        positive_count=("positive", "sum"),
    )
    return {
        str(key): GroupAverage(
            abs_avg=float(row["abs_avg"]),
            rel_avg=float(row["rel_avg"]),
            count=int(row["count"]),
            positive_count=int(row["positive_count"]),
        )
        for key, row in grouped.iterrows()
    }


def build_server_interval_averages(players_by_key: Mapping[str, PlayerComputed],
                                   population: Mapping[str, Sequence[str]]
                                   ) -> Dict[str, Dict[IntervalKey, float]]:
    """
    Mean baseStats pace per server for every exact (start, end) interval.

    Args:
        players_by_key: Global players with intervals built
        population: Ranked player keys per server to average over

    Returns:
        {server: {(start_date, end_date): mean per_day}}
    """
    rows = []
    for server, keys in population.items():
        for key in keys:
            player = players_by_key.get(key)
            if player is None:
                continue
            for interval in player.intervals.get("baseStats", []):
                if math.isfinite(interval.per_day):
                    rows.append((server, interval.start_date, interval.end_date, interval.per_day))
    if not rows:
        return {}

    df = pd.DataFrame(rows, columns=["server", "start_date", "end_date", "per_day"])
    means = df.groupby(["server", "start_date", "end_date"], sort=False)["per_day"].mean()

    result: Dict[str, Dict[IntervalKey, float]] = {}
    for (server, start, end), value in means.items():
        result.setdefault(server, {})[(start, end)] = float(value)
    return result


def build_growth_baselines(global_players: Sequence[PlayerComputed], latest: IndexedSnapshot,
                           custom_groups: Optional[Mapping[str, Iterable[str]]],
                           config: EngineConfig) -> GrowthBaselines:
    """
    Compute every growth baseline from the global population.

    Server-level figures are restricted to players present in the latest
    snapshot, ranked per server by their latest baseStats: the server
    average uses the top SERVER_AVG_TOP_N (all when null), the display
    average the top TOP_AVERAGE_N and the pace cohort the top
    PERCENTILE_COHORT_N. Guild and custom-group averages use every global
    player.

    Args:
        global_players: Global players with growth inputs and window metrics
        latest: Latest indexed snapshot
        custom_groups: Optional group id -> player keys
        config: Engine configuration

    Returns:
        GrowthBaselines
    """
    players_by_key = {p.player_key: p for p in global_players}
    ranked = rank_server_population(latest)
    server_population = {s: _top(keys, config.server_avg_top_n) for s, keys in ranked.items()}
    custom_by_player = build_custom_group_map(custom_groups, config.reserved_group_id)

    baselines = GrowthBaselines(
        server_interval_avg=build_server_interval_averages(players_by_key, server_population),
        custom_group_by_player=custom_by_player,
    )

    for window_key in config.window_keys:
        window = WindowBaselines()

        for server, keys in ranked.items():
            window.server_avg[server] = _finite_mean(
                _abs_pace(players_by_key, k, window_key) for k in server_population[server]
            )
            window.top_average[server] = _finite_mean(
                _abs_pace(players_by_key, k, window_key) for k in _top(keys, config.top_average_n)
            )

            paces = []
            for key in _top(keys, config.percentile_cohort_n):
                player = players_by_key.get(key)
                metric = player.window_metrics.get("baseStats", {}).get(window_key) if player else None
                if metric is not None and math.isfinite(metric.per_day):
                    paces.append(metric.per_day)
            window.cohort_paces[server] = sorted(paces)

        real_rows = []
        custom_rows = []
        for player in global_players:
            inputs = player.growth_inputs.get(window_key)
            if inputs is None:
                continue
            if not (math.isfinite(inputs.abs_per_day) and math.isfinite(inputs.rel_per_day)):
                continue
            if inputs.real_guild_key:
                real_rows.append((inputs.real_guild_key, inputs.abs_per_day, inputs.rel_per_day))
            custom_key = custom_by_player.get(player.player_key)
            if custom_key:
                custom_rows.append((custom_key, inputs.abs_per_day, inputs.rel_per_day))

        window.real_guilds = _group_averages(real_rows)
        window.custom_groups = _group_averages(custom_rows)
        baselines.by_window[window_key] = window

    logger.debug(
        f"Growth baselines built for {len(ranked)} servers, "
        f"{len(custom_by_player)} custom-grouped players"
    )
    return baselines


def select_growth_reference(player_key: str, server: str, inputs: GrowthInputs,
                            baselines: GrowthBaselines, window_key: str,
                            config: EngineConfig) -> GrowthReference:
    """
    Choose the baseline group a player is compared against.

    Precedence is custom group, then real guild, then the server average.
    A group only qualifies with GROWTH_MIN_GUILD_COUNT positive-pace members
    and a positive average.
    """
    window = baselines.window(window_key)
    min_count = config.growth_min_guild_count

    custom_key = baselines.custom_group_by_player.get(player_key)
    custom = window.custom_groups.get(custom_key) if custom_key else None
    if custom is not None and custom.is_valid(min_count):
        return GrowthReference(ReferenceKind.CUSTOM, custom_key, custom.abs_avg, custom.rel_avg, custom.count)

    real_key = inputs.real_guild_key
    real = window.real_guilds.get(real_key) if real_key else None
    if real is not None and real.is_valid(min_count):
        return GrowthReference(ReferenceKind.REAL, real_key, real.abs_avg, real.rel_avg, real.count)

    server_avg = window.server_avg.get(server, 0.0)
    if server_avg > 0:
        return GrowthReference(ReferenceKind.SERVER, server, server_avg, 0.0, 0)

    return GrowthReference()
