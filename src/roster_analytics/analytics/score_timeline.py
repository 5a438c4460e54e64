#!/usr/bin/env python3
"""
Score timeline builder.

Replays the default-window score over every prefix of a player's history,
as if the engine had been run when each point was the latest one.
"""

from typing import List
import logging

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.growth_reference import GrowthBaselines
from roster_analytics.analytics.scoring_engine import ScoreContext, compute_score_for_window
from roster_analytics.analytics.window_resolver import (
    build_growth_inputs,
    build_window_meta,
    build_window_metrics,
)
from roster_analytics.schema.models import PlayerComputed, ScoreSnapshot

logger = logging.getLogger(__name__)


def build_score_timeline(player: PlayerComputed, baselines: GrowthBaselines,
                         config: EngineConfig) -> List[ScoreSnapshot]:
    """
    Default-window score after each of the player's points.

    Window boundaries, window metrics and growth inputs are rebuilt from
    each prefix. The intervals of a prefix are the leading intervals of the
    full series, and the population baselines are those of the full dataset.

    Args:
        player: Player with points populated
        baselines: Growth baselines of the full dataset
        config: Engine configuration

    Returns:
        One ScoreSnapshot per point, in date order
    """
    window_key = config.default_score_window
    timeline = []
    base_intervals = player.intervals.get("baseStats", [])

    for end in range(1, len(player.points) + 1):
        prefix = player.points[:end]
        meta = build_window_meta([p.date for p in prefix], [window_key])
        intervals = base_intervals[:end - 1]
        context = ScoreContext(
            player_key=player.player_key,
            server=player.server,
            points=prefix,
            intervals=intervals,
            window_metrics=build_window_metrics(prefix, meta),
            window_meta=meta,
            growth_inputs=build_growth_inputs(prefix, intervals, meta, config),
        )
        breakdown = compute_score_for_window(context, window_key, baselines, config)
        timeline.append(ScoreSnapshot(date=prefix[-1].date, score=breakdown.score))

    return timeline
