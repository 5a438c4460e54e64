#!/usr/bin/env python3
"""
Snapshot indexing and roster resolution.

Builds per-snapshot lookup tables (player-by-key, guild-membership-by-key)
from normalized input and decides which guilds and members make up the
roster universe as of the latest snapshot.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging
import math

from roster_analytics.analytics.utils_stats import to_timestamp
from roster_analytics.errors import EmptySnapshotsError, SnapshotContractError
from roster_analytics.schema.models import (
    GuildRosterEntry,
    LatestPlayerEntry,
    NormalizedSnapshot,
    SnapshotDescriptor,
)
from roster_analytics.schema.snapshot_schema import as_key, flatten_snapshot, validate_member_frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotPlayerStats:
    player_key: str
    name: str
    server: str
    player_id: Optional[str]
    class_id: Optional[int]
    base_stats: float
    level: float
    exp: float
    exp_next: float
    mine: float
    treasury: float
    guild_key: str
    guild_name: str


@dataclass
class IndexedSnapshot:
    snapshot: NormalizedSnapshot
    meta: Optional[SnapshotDescriptor]
    players_by_key: Dict[str, SnapshotPlayerStats] = field(default_factory=dict)
    guild_members: Dict[str, List[str]] = field(default_factory=dict)
    guild_names: Dict[str, str] = field(default_factory=dict)

    @property
    def scanned_at(self) -> str:
        return self.snapshot.scanned_at


@dataclass(frozen=True)
class RosterScope:
    """Roster guilds (in resolution order) and their latest member keys."""

    guild_keys: Tuple[str, ...]
    members_by_guild: Dict[str, Tuple[str, ...]]

    def member_keys(self) -> List[str]:
        seen = {}
        for guild_key in self.guild_keys:
            for player_key in self.members_by_guild.get(guild_key, ()):
                seen.setdefault(player_key, None)
        return list(seen)


def order_snapshots(snapshots: Sequence[NormalizedSnapshot],
                    snapshot_meta: Optional[Sequence[SnapshotDescriptor]] = None
                    ) -> List[Tuple[NormalizedSnapshot, Optional[SnapshotDescriptor]]]:
    """
    Pair snapshots with their descriptors and sort them by scan time.

    Args:
        snapshots: Normalized snapshots in any order
        snapshot_meta: Descriptors aligned positionally with ``snapshots``

    Returns:
        (snapshot, descriptor) pairs in ascending scannedAt order

    Raises:
        EmptySnapshotsError: If no snapshots were supplied
        SnapshotContractError: If a scannedAt value cannot be parsed
    """
    if not snapshots:
        raise EmptySnapshotsError("At least one snapshot is required")

    meta = list(snapshot_meta or [])
    if len(meta) > len(snapshots):
        logger.warning(
            f"Ignoring {len(meta) - len(snapshots)} snapshot descriptors "
            f"without a matching snapshot"
        )

    pairs = []
    for index, snapshot in enumerate(snapshots):
        try:
            ts = to_timestamp(snapshot.scanned_at)
        except (TypeError, ValueError) as e:
            raise SnapshotContractError(
                f"Snapshot #{index} has an unparseable scannedAt: {snapshot.scanned_at!r}"
            ) from e
        pairs.append((ts, index, snapshot, meta[index] if index < len(meta) else None))

    pairs.sort(key=lambda item: (item[0], item[1]))
    return [(snapshot, descriptor) for _, _, snapshot, descriptor in pairs]


def _optional_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if math.isfinite(number) else None


def index_snapshot(snapshot: NormalizedSnapshot,
                   meta: Optional[SnapshotDescriptor] = None) -> IndexedSnapshot:
    """
    Build the lookup tables for one snapshot.

    The first occurrence of a player key wins when a player is listed more
    than once; guild member lists keep every listed key in roster order.
    """
    frame = validate_member_frame(flatten_snapshot(snapshot), snapshot.scanned_at)

    duplicated = frame.duplicated(subset="player_key", keep="first")
    if duplicated.any():
        logger.warning(
            f"Snapshot {snapshot.scanned_at}: ignoring {int(duplicated.sum())} "
            f"duplicate member rows"
        )

    indexed = IndexedSnapshot(snapshot=snapshot, meta=meta)

    for row in frame[~duplicated].itertuples(index=False):
        indexed.players_by_key[row.player_key] = SnapshotPlayerStats(
            player_key=row.player_key,
            name=row.name,
            server=row.server,
            player_id=row.player_id if row.player_id else None,
            class_id=_optional_int(row.class_id),
            base_stats=float(row.base_stats),
            level=float(row.level),
            exp=float(row.exp),
            exp_next=float(row.exp_next),
            mine=float(row.mine),
            treasury=float(row.treasury),
            guild_key=row.guild_key,
            guild_name=row.guild_name,
        )

    for guild in snapshot.guilds:
        guild_key = as_key(guild.guild_key)
        members = indexed.guild_members.setdefault(guild_key, [])
        members.extend(as_key(member.player_key) for member in guild.members)
        indexed.guild_names[guild_key] = as_key(guild.guild_name)

    return indexed


def index_snapshots(snapshots: Sequence[NormalizedSnapshot],
                    snapshot_meta: Optional[Sequence[SnapshotDescriptor]] = None
                    ) -> List[IndexedSnapshot]:
    """Order and index every snapshot."""
    return [index_snapshot(snapshot, meta)
            for snapshot, meta in order_snapshots(snapshots, snapshot_meta)]


def resolve_roster(latest: IndexedSnapshot,
                   guild_filter_keys: Optional[Iterable[str]] = None) -> RosterScope:
    """
    Resolve the roster guilds and their members from the latest snapshot.

    Args:
        latest: Latest indexed snapshot
        guild_filter_keys: Optional subset of guild keys; keys missing from
            the latest snapshot are dropped

    Returns:
        RosterScope for the latest snapshot
    """
    latest_keys = list(latest.guild_members)
    filter_keys = list(dict.fromkeys(as_key(key) for key in guild_filter_keys or []))

    if filter_keys:
        guild_keys = [key for key in filter_keys if key in latest.guild_members]
        missing = [key for key in filter_keys if key not in latest.guild_members]
        if missing:
            logger.info(f"Guild filter keys not in latest snapshot, dropped: {missing}")
    else:
        guild_keys = latest_keys

    members_by_guild = {
        key: tuple(latest.guild_members.get(key, [])) for key in guild_keys
    }
    return RosterScope(guild_keys=tuple(guild_keys), members_by_guild=members_by_guild)


def build_guild_roster(latest: IndexedSnapshot) -> List[GuildRosterEntry]:
    return [
        GuildRosterEntry(
            guild_key=as_key(guild.guild_key),
            guild_name=as_key(guild.guild_name),
            member_count=len(guild.members),
        )
        for guild in latest.snapshot.guilds
    ]


def build_latest_players(latest: IndexedSnapshot) -> List[LatestPlayerEntry]:
    """Every member listed in the latest snapshot with its guild."""
    return [
        LatestPlayerEntry(
            player_key=as_key(member.player_key),
            name=as_key(member.name),
            server=as_key(member.server),
            player_id=member.player_id,
            guild_key=as_key(guild.guild_key),
            guild_name=as_key(guild.guild_name),
        )
        for guild in latest.snapshot.guilds
        for member in guild.members
    ]


def resolve_default_guilds(roster: Sequence[GuildRosterEntry], count: int = 2) -> List[str]:
    """Keys of the ``count`` largest guilds, ties kept in roster order."""
    ranked = sorted(roster, key=lambda entry: -entry.member_count)
    return [entry.guild_key for entry in ranked[:count]]
