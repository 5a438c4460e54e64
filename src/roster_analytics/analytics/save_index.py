#!/usr/bin/env python3
"""
Save index session.

Holds the raw per-player save arrays of each loaded snapshot and charts a
single save-array index over time, per player and per guild (median).
The host owns the session; nothing is cached at module level.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging
import math

from roster_analytics.analytics.utils_stats import median, to_timestamp
from roster_analytics.errors import SaveIndexCacheMissing, SnapshotContractError
from roster_analytics.schema.models import GuildRosterEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SavePlayer:
    player_key: str
    name: str
    guild_key: str
    guild_name: str
    save: Sequence[Any] = ()


@dataclass(frozen=True)
class SaveSnapshot:
    scanned_at: str
    players: Sequence[SavePlayer]
    guilds: Sequence[GuildRosterEntry]


@dataclass(frozen=True)
class SaveIndexPoint:
    date: str
    value: float


@dataclass
class SaveIndexPlayerSeries:
    player_key: str
    name: str
    guild_key: Optional[str] = None
    points: List[SaveIndexPoint] = field(default_factory=list)


@dataclass
class SaveIndexGuildSeries:
    guild_key: str
    guild_name: str
    points: List[SaveIndexPoint] = field(default_factory=list)


@dataclass
class SaveIndexResult:
    index: int
    range_start: str
    latest_date: str
    players: List[SaveIndexPlayerSeries] = field(default_factory=list)
    guilds: List[SaveIndexGuildSeries] = field(default_factory=list)


def save_value(save: Sequence[Any], index: int) -> float:
    """
    Numeric value at ``save[index]``.

    Numbers are used as they are, numeric strings are parsed and anything
    else (missing, non-numeric, non-finite) reads as 0.
    """
    if index < 0 or index >= len(save):
        return 0.0
    value = save[index]
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip() or 0)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


class SaveIndexSession:
    """
    Per-snapshot save arrays for one loaded dataset.

    Example:
        session = SaveIndexSession()
        session.add_snapshot("2024-01-01T00:00:00Z", players, guilds)
        result = session.compute(12, guild_filter_keys=["eu1_g7"])
    """

    def __init__(self):
        self._snapshots: List[SaveSnapshot] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    def add_snapshot(self, scanned_at: str, players: Iterable[SavePlayer],
                     guilds: Iterable[GuildRosterEntry]) -> None:
        """
        Store the save arrays of one snapshot.

        Raises:
            SnapshotContractError: If ``scanned_at`` cannot be parsed
        """
        try:
            to_timestamp(scanned_at)
        except (TypeError, ValueError) as e:
            raise SnapshotContractError(f"Unparseable scannedAt: {scanned_at!r}") from e
        self._snapshots.append(SaveSnapshot(scanned_at, tuple(players), tuple(guilds)))

    def clear(self) -> None:
        self._snapshots = []

    def compute(self, index: int, guild_filter_keys: Optional[Iterable[str]] = None) -> SaveIndexResult:
        """
        Chart save-array ``index`` across all stored snapshots.

        Args:
            index: Position in each player's save array
            guild_filter_keys: Optional guild keys; other guilds and their
                players are left out

        Returns:
            SaveIndexResult with player series and guild median series

        Raises:
            SaveIndexCacheMissing: If the session holds no snapshots
        """
        if not self._snapshots:
            raise SaveIndexCacheMissing("Save index cache missing.")

        filter_keys = set(guild_filter_keys or [])
        ordered = sorted(self._snapshots, key=lambda s: to_timestamp(s.scanned_at))

        players: Dict[str, SaveIndexPlayerSeries] = {}
        guilds: Dict[str, SaveIndexGuildSeries] = {}

        for snapshot in ordered:
            guild_values: Dict[str, List[float]] = {}
            for player in snapshot.players:
                if filter_keys and player.guild_key not in filter_keys:
                    continue
                value = save_value(player.save, index)
                series = players.setdefault(
                    player.player_key,
                    SaveIndexPlayerSeries(player.player_key, player.name, player.guild_key),
                )
                series.points.append(SaveIndexPoint(snapshot.scanned_at, value))
                guild_values.setdefault(player.guild_key, []).append(value)

            for guild in snapshot.guilds:
                if filter_keys and guild.guild_key not in filter_keys:
                    continue
                series = guilds.setdefault(
                    guild.guild_key, SaveIndexGuildSeries(guild.guild_key, guild.guild_name)
                )
                series.points.append(
                    SaveIndexPoint(snapshot.scanned_at, median(guild_values.get(guild.guild_key, [])))
                )

        logger.debug(f"Save index {index}: {len(players)} players, {len(guilds)} guilds")
        return SaveIndexResult(
            index=index,
            range_start=ordered[0].scanned_at,
            latest_date=ordered[-1].scanned_at,
            players=list(players.values()),
            guilds=list(guilds.values()),
        )
