#!/usr/bin/env python3
"""
Roster Analytics Engine

Runs the full pipeline over a list of guild roster snapshots: indexing,
roster resolution, series and intervals, window metrics, percentiles,
growth baselines, scoring, score timelines, ranking and recommendations.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import argparse
import json
import logging

from roster_analytics.analytics.config import EngineConfig, load_config
from roster_analytics.analytics.growth_reference import build_growth_baselines
from roster_analytics.analytics.percentiles import compute_percentiles
from roster_analytics.analytics.recommendations import (
    apply_tags,
    assign_recommendations,
    build_top_movers,
    rank_players,
    ranking_frame,
)
from roster_analytics.analytics.score_timeline import build_score_timeline
from roster_analytics.analytics.scoring_engine import score_player
from roster_analytics.analytics.series_builder import (
    build_guild_computed,
    build_player_computed,
    collect_series,
)
from roster_analytics.analytics.snapshot_index import (
    build_guild_roster,
    build_latest_players,
    index_snapshots,
    resolve_default_guilds,
    resolve_roster,
)
from roster_analytics.analytics.utils_stats import sort_dates
from roster_analytics.analytics.window_resolver import (
    build_growth_inputs,
    build_window_meta,
    build_window_metrics,
)
from roster_analytics.errors import RosterAnalyticsError, SnapshotContractError
from roster_analytics.io.safe_write import safe_write_json
from roster_analytics.schema.models import (
    METRIC_KEYS,
    DatasetResult,
    NormalizedSnapshot,
    Percentiles,
    PlayerComputed,
    SnapshotDescriptor,
    SnapshotSummary,
    WindowMeta,
)
from roster_analytics.utils.logger import get_logger

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


def _as_snapshot(value: Union[NormalizedSnapshot, Mapping[str, Any]]) -> NormalizedSnapshot:
    if isinstance(value, NormalizedSnapshot):
        return value
    if not isinstance(value, Mapping):
        raise SnapshotContractError(f"Snapshot must be an object, got {type(value).__name__}")
    return NormalizedSnapshot.from_dict(value)


def _as_descriptor(value: Union[SnapshotDescriptor, Mapping[str, Any], None]) -> Optional[SnapshotDescriptor]:
    if value is None or isinstance(value, SnapshotDescriptor):
        return value
    if not isinstance(value, Mapping):
        raise SnapshotContractError(f"Snapshot descriptor must be an object, got {type(value).__name__}")
    return SnapshotDescriptor.from_dict(value)


def _apply_percentiles(players: Sequence[PlayerComputed]) -> None:
    by_metric = {
        metric: compute_percentiles({p.player_key: p.per_day_year.get(metric, 0.0) for p in players})
        for metric in METRIC_KEYS
    }
    for player in players:
        mine = by_metric["mine"].get(player.player_key, 0.0)
        treasury = by_metric["treasury"].get(player.player_key, 0.0)
        player.percentiles = Percentiles(
            base_stats=by_metric["baseStats"].get(player.player_key, 0.0),
            level=by_metric["level"].get(player.player_key, 0.0),
            mine=mine,
            treasury=treasury,
            resource=(mine + treasury) / 2,
        )


def _attach_window_data(players: Sequence[PlayerComputed], window_meta: Dict[str, WindowMeta],
                        config: EngineConfig) -> None:
    for player in players:
        player.window_metrics = build_window_metrics(player.points, window_meta)
        player.growth_inputs = build_growth_inputs(
            player.points, player.intervals.get("baseStats", []), window_meta, config
        )


def compute_dataset(snapshots: Sequence[Union[NormalizedSnapshot, Mapping[str, Any]]],
                    snapshot_meta: Optional[Sequence[Union[SnapshotDescriptor, Mapping[str, Any]]]],
                    dataset_id: str,
                    guild_filter_keys: Optional[Iterable[str]] = None,
                    custom_groups: Optional[Mapping[str, Iterable[str]]] = None,
                    config: Optional[EngineConfig] = None,
                    progress: Optional[ProgressCallback] = None) -> DatasetResult:
    """
    Compute the full analytics dataset from roster snapshots.

    Args:
        snapshots: Normalized snapshots (or their camelCase dictionaries) in any order
        snapshot_meta: Descriptors aligned positionally with ``snapshots``
        dataset_id: Identifier echoed into the result
        guild_filter_keys: Optional subset of latest-snapshot guilds forming the roster
        custom_groups: Optional group id -> player keys used as growth references
        config: Engine configuration (packaged ranking_config.yaml when omitted)
        progress: Optional callable receiving a label per stage

    Returns:
        DatasetResult with roster and global players in rank order

    Raises:
        EmptySnapshotsError: If ``snapshots`` is empty
        SnapshotContractError: If a snapshot is structurally invalid
    """
    config = config or load_config()

    def stage(number: int, label: str) -> None:
        logger.info(f"Stage {number}: {label}")
        if progress is not None:
            progress(label)

    stage(1, "Indexing snapshots")
    indexed = index_snapshots(
        [_as_snapshot(s) for s in snapshots],
        [_as_descriptor(m) for m in (snapshot_meta or [])],
    )
    latest = indexed[-1]
    logger.info(f"Indexed {len(indexed)} snapshots, latest {latest.scanned_at}")

    stage(2, "Resolving roster")
    roster = resolve_roster(latest, guild_filter_keys)
    logger.info(f"Roster: {len(roster.guild_keys)} guilds, {len(roster.member_keys())} members")

    stage(3, "Building series")
    collection = collect_series(indexed, roster)
    players = [build_player_computed(s, config) for s in collection.roster_players.values()]
    global_players = [build_player_computed(s, config) for s in collection.global_players.values()]
    guilds = [
        build_guild_computed(key, latest.guild_names.get(key, key), collection.guild_points[key])
        for key in roster.guild_keys
        if key in collection.guild_points
    ]

    stage(4, "Computing metrics")
    window_meta = build_window_meta(sort_dates(s.scanned_at for s in indexed), config.window_keys)
    _attach_window_data(players, window_meta, config)
    _attach_window_data(global_players, window_meta, config)

    stage(5, "Computing percentiles")
    _apply_percentiles(players)
    _apply_percentiles(global_players)

    stage(6, "Computing growth baselines")
    baselines = build_growth_baselines(global_players, latest, custom_groups, config)

    stage(7, "Scoring players")
    for player in players + global_players:
        score_player(player, window_meta, baselines, config)
        player.latest_guild_name = latest.guild_names.get(player.latest_guild_key or "")
    apply_tags(players, config)
    apply_tags(global_players, config)

    stage(8, "Building score timelines")
    for player in players + global_players:
        player.score_timeline = build_score_timeline(player, baselines, config)

    stage(9, "Ranking players")
    players = rank_players(players, config)
    global_players = rank_players(global_players, config)
    recommendations = assign_recommendations(players, config)
    assign_recommendations(global_players, config)
    logger.info(
        f"Recommendations: {len(recommendations.main)} Main, {len(recommendations.wing)} Wing, "
        f"{len(players) - len(recommendations.main) - len(recommendations.wing)} None"
    )

    stage(10, "Collecting top movers")
    top_movers, top_movers_by_metric = build_top_movers(players, config)

    summaries = []
    for entry, member_count in zip(indexed, collection.roster_member_counts):
        meta = entry.meta
        summaries.append(SnapshotSummary(
            id=meta.id if meta and meta.id else entry.scanned_at,
            label=meta.label if meta and meta.label else entry.scanned_at,
            date=meta.date if meta and meta.date else entry.scanned_at,
            guild_count=len(roster.guild_keys),
            member_count=member_count,
        ))

    guild_roster = build_guild_roster(latest)

    result = DatasetResult(
        dataset_id=dataset_id,
        latest_date=latest.scanned_at,
        range_start=indexed[0].scanned_at,
        snapshots=summaries,
        players=players,
        global_players=global_players,
        guilds=guilds,
        top_movers=top_movers,
        top_movers_by_metric=top_movers_by_metric,
        recommendations=recommendations,
        guild_roster=guild_roster,
        latest_players=build_latest_players(latest),
        default_guild_keys=resolve_default_guilds(guild_roster),
    )
    logger.info(f"Dataset {dataset_id} complete: {len(players)} roster players, "
                f"{len(global_players)} global players, {len(guilds)} guilds")
    return result


def load_snapshot_files(paths: Sequence[Union[str, Path]]) -> List[Dict[str, Any]]:
    """
    Load normalized snapshot JSON files.

    Each file holds either one snapshot object or a list of them.
    """
    snapshots: List[Dict[str, Any]] = []
    for path in paths:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, list):
            snapshots.extend(data)
        else:
            snapshots.append(data)
        logger.info(f"Loaded snapshots from {path}")
    return snapshots


def main():
    """CLI entry point for the roster analytics engine."""
    parser = argparse.ArgumentParser(description="Guild Roster Analytics Engine")
    parser.add_argument("--snapshots", type=str, nargs="+", required=True,
                        help="Normalized snapshot JSON files")
    parser.add_argument("--dataset-id", type=str, required=True,
                        help="Dataset identifier")
    parser.add_argument("--guild-filter", type=str, default="",
                        help="Comma-separated guild keys forming the roster")
    parser.add_argument("--custom-groups", type=str, default=None,
                        help="JSON file mapping group id to player keys")
    parser.add_argument("--config", type=str, default=None,
                        help="Configuration file path")
    parser.add_argument("--output-root", type=str, default="data/analytics",
                        help="Output directory")
    parser.add_argument("--log-file", type=str, default=None,
                        help="Optional log file")

    args = parser.parse_args()

    # Route engine module loggers through the package logger
    run_logger = get_logger("roster_analytics", log_path=args.log_file)

    guild_filter = [k.strip() for k in args.guild_filter.split(",") if k.strip()]

    try:
        config = load_config(args.config)

        custom_groups = None
        if args.custom_groups:
            with open(args.custom_groups, "r", encoding="utf-8") as f:
                custom_groups = json.load(f)

        snapshots = load_snapshot_files(args.snapshots)
        result = compute_dataset(
            snapshots, [], args.dataset_id,
            guild_filter_keys=guild_filter or None,
            custom_groups=custom_groups,
            config=config,
        )

        frame = ranking_frame(result.players, config)
        if frame.empty:
            run_logger.warning("No roster players ranked")
        else:
            run_logger.info(f"Top of ranking:\n{frame.head(20).to_string(index=False)}")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M")
        output_file = Path(args.output_root) / f"dataset_{args.dataset_id}_{timestamp}.json"
        safe_write_json(result, output_file, logger=run_logger)

    except (RosterAnalyticsError, OSError, json.JSONDecodeError) as e:
        run_logger.error(f"Analytics run failed: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
