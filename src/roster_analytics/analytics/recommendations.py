#!/usr/bin/env python3
"""
Ranking, recommendations, tags and top movers.
"""

from typing import Dict, List, Sequence, Tuple
import logging

import pandas as pd

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.scoring_engine import default_score_breakdown
from roster_analytics.analytics.utils_stats import round_half_up
from roster_analytics.schema.models import (
    METRIC_KEYS,
    PlayerComputed,
    PlayerWindowEntry,
    Recommendation,
    Recommendations,
    ScoreBreakdown,
    Tags,
)

logger = logging.getLogger(__name__)


def rank_players(players: Sequence[PlayerComputed], config: EngineConfig) -> List[PlayerComputed]:
    """
    Order players by default-window score, best first, and set 1-based ranks.

    Equal scores are ordered by player key so the ranking is deterministic.
    """
    window_key = config.default_score_window
    ranked = sorted(
        players,
        key=lambda p: (-p.score_by_window.get(window_key, p.score), p.player_key),
    )
    for position, player in enumerate(ranked):
        player.rank = position + 1
    return ranked


def assign_recommendations(ranked: Sequence[PlayerComputed], config: EngineConfig) -> Recommendations:
    """
    Partition ranked players into Main, Wing and None.

    The first MAIN_SIZE players are Main, the next WING_SIZE are Wing and
    everyone else is None.

    Args:
        ranked: Players in rank order
        config: Engine configuration

    Returns:
        Recommendations with the Main and Wing player keys in rank order
    """
    main_end = config.main_size
    wing_end = config.main_size + config.wing_size
    result = Recommendations()

    for position, player in enumerate(ranked):
        if position < main_end:
            player.recommendation = Recommendation.MAIN
            result.main.append(player.player_key)
        elif position < wing_end:
            player.recommendation = Recommendation.WING
            result.wing.append(player.player_key)
        else:
            player.recommendation = Recommendation.NONE

    return result


def build_tags(breakdown: ScoreBreakdown, config: EngineConfig) -> Tags:
    """
    Strength and weakness labels for a default-window breakdown.

    The cohort percentile label is always added, as a strength from 0.5 up
    and as a weakness below.
    """
    tags = Tags()
    threshold = config.tag_threshold

    if breakdown.growth.growth_score >= threshold:
        tags.strengths.append("BaseStats Pace")
    if breakdown.consistency.consistency_score >= threshold:
        tags.strengths.append("Consistent")
    if breakdown.mine_capped:
        tags.strengths.append("Mine Capped")
    if breakdown.treasury_capped:
        tags.strengths.append("Treasury Capped")

    label = f"Top{config.percentile_cohort_n} P{round_half_up(breakdown.percentile_top_cohort * 100)}"
    if breakdown.percentile_top_cohort >= 0.5:
        tags.strengths.append(label)
    else:
        tags.weaknesses.append(label)

    if breakdown.consistency.coverage < config.low_coverage_threshold:
        tags.weaknesses.append("Low Coverage")
    if breakdown.level.low_leveling:
        tags.weaknesses.append("Low Leveling")

    return tags


def apply_tags(players: Sequence[PlayerComputed], config: EngineConfig) -> None:
    window_key = config.default_score_window
    for player in players:
        breakdown = player.score_breakdown_by_window.get(window_key)
        if breakdown is None:
            breakdown = default_score_breakdown(window_key, config)
        player.tags = build_tags(breakdown, config)


def _mover_entries(players: Sequence[PlayerComputed], metric: str, window_key: str) -> List[PlayerWindowEntry]:
    entries = []
    for player in players:
        window_metric = player.window_metrics.get(metric, {}).get(window_key)
        if window_metric is None:
            continue
        entries.append(PlayerWindowEntry(
            player_key=player.player_key,
            name=player.name,
            guild_key=player.latest_guild_key,
            metric=metric,
            per_day=window_metric.per_day,
            delta=window_metric.delta,
        ))
    return entries


def build_top_movers(players: Sequence[PlayerComputed], config: EngineConfig
                     ) -> Tuple[Dict[str, List[PlayerWindowEntry]], Dict[str, Dict[str, List[PlayerWindowEntry]]]]:
    """
    Top movers per window and per metric.

    Level movers are ranked by total delta, every other metric by per-day
    pace. Ties keep the order of ``players``.

    Args:
        players: Roster players in rank order
        config: Engine configuration

    Returns:
        (baseStats movers per window, movers per metric per window)
    """
    limit = config.top_movers_limit
    by_metric: Dict[str, Dict[str, List[PlayerWindowEntry]]] = {}

    for metric in METRIC_KEYS:
        by_metric[metric] = {}
        for window_key in config.window_keys:
            entries = _mover_entries(players, metric, window_key)
            if metric == "level":
                entries.sort(key=lambda e: e.delta, reverse=True)
            else:
                entries.sort(key=lambda e: e.per_day, reverse=True)
            by_metric[metric][window_key] = entries[:limit]

    top_movers = {key: list(entries) for key, entries in by_metric["baseStats"].items()}
    return top_movers, by_metric


def ranking_frame(players: Sequence[PlayerComputed], config: EngineConfig) -> pd.DataFrame:
    """
    Tabular view of ranked players for logging and export.

    Args:
        players: Players in rank order
        config: Engine configuration

    Returns:
        DataFrame with one row per player
    """
    window_key = config.default_score_window
    rows = []
    for player in players:
        breakdown = player.score_breakdown_by_window.get(window_key) or default_score_breakdown(window_key, config)
        rows.append({
            "rank": player.rank,
            "player_key": player.player_key,
            "name": player.name,
            "server": player.server,
            "guild": player.latest_guild_name or player.latest_guild_key,
            "score": round(player.score, 4),
            "growth": round(breakdown.growth.growth_score, 4),
            "consistency": round(breakdown.consistency.consistency_score, 4),
            "level_penalty": round(breakdown.level.penalty, 4),
            "recommendation": player.recommendation.value,
        })
    return pd.DataFrame(rows, columns=[
        "rank", "player_key", "name", "server", "guild", "score",
        "growth", "consistency", "level_penalty", "recommendation",
    ])
