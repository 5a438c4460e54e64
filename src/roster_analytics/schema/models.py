#!/usr/bin/env python3
"""
Data model for the roster analytics engine.

Input records (NormalizedSnapshot and friends) are frozen so the engine can
never mutate caller data. Computed aggregates (PlayerComputed, GuildComputed)
are filled in stage by stage within a single compute_dataset call and handed
to the caller, who owns their lifetime.

Metric and window identifiers are data keys, not attribute names:
metrics are "baseStats", "level", "mine", "treasury"; windows are "1", "3",
"6", "12" (months).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from roster_analytics.errors import SnapshotContractError
from roster_analytics.utils.json_safety import to_json_safe

METRIC_KEYS: Tuple[str, ...] = ("baseStats", "level", "mine", "treasury")

# Metric key -> SeriesPoint attribute
METRIC_FIELDS: Dict[str, str] = {
    "baseStats": "base_stats",
    "level": "level",
    "mine": "mine",
    "treasury": "treasury",
}


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _records(value: Any, field_name: str) -> List[Mapping[str, Any]]:
    """
    Check that a snapshot field holds a list of objects.

    Raises:
        SnapshotContractError: If the value is not a list of mappings
    """
    if not isinstance(value, (list, tuple)):
        raise SnapshotContractError(f"{field_name} must be a list, got {type(value).__name__}")
    for entry in value:
        if not isinstance(entry, Mapping):
            raise SnapshotContractError(
                f"{field_name} entries must be objects, got {type(entry).__name__}"
            )
    return list(value)


# ---------------------------------------------------------------------------
# Input records


@dataclass(frozen=True)
class NormalizedMember:
    player_key: str
    name: str
    server: str
    base_stats: Any = 0
    level: Any = 0
    exp: Any = 0
    exp_next: Any = 0
    mine: Any = 0
    treasury: Any = 0
    player_id: Optional[str] = None
    class_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedMember":
        return cls(
            player_key=_text(data.get("playerKey")),
            name=_text(data.get("name")),
            server=_text(data.get("server")),
            base_stats=data.get("baseStats", 0),
            level=data.get("level", 0),
            exp=data.get("exp", 0),
            exp_next=data.get("expNext", 0),
            mine=data.get("mine", 0),
            treasury=data.get("treasury", 0),
            player_id=_optional_str(data.get("playerId")),
            class_id=data.get("classId"),
        )


@dataclass(frozen=True)
class NormalizedGuild:
    guild_key: str
    guild_name: str
    members: Tuple[NormalizedMember, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedGuild":
        return cls(
            guild_key=_text(data.get("guildKey")),
            guild_name=_text(data.get("guildName", data.get("guildKey"))),
            members=tuple(NormalizedMember.from_dict(m) for m in _records(data.get("members", []), "members")),
        )


@dataclass(frozen=True)
class NormalizedSnapshot:
    """One scan in time: every guild roster with raw member stats."""

    scanned_at: str
    guilds: Tuple[NormalizedGuild, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedSnapshot":
        return cls(
            scanned_at=_text(data.get("scannedAt")),
            guilds=tuple(NormalizedGuild.from_dict(g) for g in _records(data.get("guilds", []), "guilds")),
        )


@dataclass(frozen=True)
class SnapshotDescriptor:
    id: str
    label: str
    date: str
    format: str = ""
    path: str = ""
    scope: str = ""
    dataset_id: str = ""
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SnapshotDescriptor":
        return cls(
            id=str(data.get("id", "")),
            label=str(data.get("label", "")),
            date=str(data.get("date", "")),
            format=str(data.get("format", "")),
            path=str(data.get("path", "")),
            scope=str(data.get("scope", "")),
            dataset_id=str(data.get("datasetId", "")),
            notes=data.get("notes"),
        )


# ---------------------------------------------------------------------------
# Series and intervals


@dataclass(frozen=True)
class SeriesPoint:
    date: str
    base_stats: float
    level: float
    exp: float
    exp_next: float
    mine: float
    treasury: float
    guild_key: str
    exp_total: float = 0.0

    def metric(self, metric_key: str) -> float:
        return getattr(self, METRIC_FIELDS[metric_key])


@dataclass
class PlayerSeries:
    player_key: str
    name: str
    server: str
    player_id: Optional[str] = None
    class_id: Optional[int] = None
    points: List[SeriesPoint] = field(default_factory=list)


@dataclass(frozen=True)
class IntervalMetric:
    start_date: str
    end_date: str
    days: int
    delta: float
    per_day: float


@dataclass(frozen=True)
class WindowMetric(IntervalMetric):
    """Interval spanning a resolved window rather than one snapshot step."""


@dataclass(frozen=True)
class WindowMeta:
    """
    Concrete boundaries of one trailing window.

    start_month/end_month are the YYYY-MM buckets the boundaries were taken
    from; players resolve their own points against those buckets.
    """

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    possible_intervals: int = 0
    start_month: Optional[str] = None
    end_month: Optional[str] = None


@dataclass(frozen=True)
class GrowthInputs:
    window_days: int = 0
    window_delta: float = 0.0
    base_start: float = 0.0
    base_end: float = 0.0
    abs_per_day: float = 0.0
    rel_per_day: float = 0.0
    real_guild_key: Optional[str] = None


@dataclass(frozen=True)
class GuildSeriesPoint:
    date: str
    member_count: int
    base_stats_median: float
    base_stats_avg: float
    level_median: float
    level_avg: float
    mine_median: float
    mine_avg: float
    treasury_median: float
    treasury_avg: float

    def median_of(self, metric_key: str) -> float:
        return getattr(self, f"{METRIC_FIELDS[metric_key]}_median")


# ---------------------------------------------------------------------------
# Growth reference and score breakdown


class ReferenceKind(str, Enum):
    CUSTOM = "Custom"
    REAL = "Real"
    SERVER = "Server"
    NONE = "None"


@dataclass(frozen=True)
class GrowthReference:
    """
    Baseline group a player's pace is compared against.

    kind is the only discriminator: CUSTOM and REAL carry the group key and
    its averages, SERVER carries the server average in ``abs_avg`` and NONE
    means no usable baseline existed.
    """

    kind: ReferenceKind = ReferenceKind.NONE
    key: Optional[str] = None
    abs_avg: float = 0.0
    rel_avg: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class ScoreWeights:
    growth: float = 0.75
    consistency: float = 0.25
    level_penalty: float = 0.15


@dataclass(frozen=True)
class GrowthBreakdown:
    abs_per_day: float = 0.0
    rel_per_day: float = 0.0
    server_avg: float = 0.0
    top100_avg: float = 0.0
    abs_vs_server: float = 0.0
    abs_vs_top100: float = 0.0
    abs_vs_guild: float = 0.0
    rel_vs_guild: float = 1.0
    reference: GrowthReference = field(default_factory=GrowthReference)
    server_term: float = 0.0
    relative_term: float = 0.5
    momentum_term: float = 0.5
    growth_score: float = 0.0


@dataclass(frozen=True)
class ConsistencyBreakdown:
    interval_count: int = 0
    possible_intervals: int = 0
    ratios: Tuple[float, ...] = ()
    above_share: float = 0.0
    gap: float = 0.0
    closeness: float = 0.0
    stability: float = 0.5
    consistency_score: float = 0.0
    coverage: float = 1.0
    coverage_factor: float = 1.0


@dataclass(frozen=True)
class LevelBreakdown:
    level_start: Optional[float] = None
    level_end: Optional[float] = None
    level_delta: Optional[float] = None
    window_days: Optional[int] = None
    level_per30: Optional[float] = None
    low_leveling: bool = False
    penalty: float = 0.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Complete audit trail of one player/window score."""

    window_key: str = ""
    raw_score: float = 0.0
    score: float = 0.0
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    growth: GrowthBreakdown = field(default_factory=GrowthBreakdown)
    consistency: ConsistencyBreakdown = field(default_factory=ConsistencyBreakdown)
    level: LevelBreakdown = field(default_factory=LevelBreakdown)
    percentile_top_cohort: float = 0.0
    mine_capped: bool = False
    treasury_capped: bool = False


# ---------------------------------------------------------------------------
# Computed aggregates


class Recommendation(str, Enum):
    MAIN = "Main"
    WING = "Wing"
    NONE = "None"


@dataclass(frozen=True)
class ScoreSnapshot:
    date: str
    score: float


@dataclass
class Percentiles:
    base_stats: float = 0.0
    level: float = 0.0
    mine: float = 0.0
    treasury: float = 0.0
    resource: float = 0.0


@dataclass
class Coverage:
    points: int = 0
    days: int = 0


@dataclass
class Tags:
    strengths: List[str] = field(default_factory=list)
    weaknesses: List[str] = field(default_factory=list)


@dataclass
class PlayerComputed:
    player_key: str
    name: str
    server: str
    player_id: Optional[str] = None
    class_id: Optional[int] = None
    latest_guild_key: Optional[str] = None
    latest_guild_name: Optional[str] = None
    points: List[SeriesPoint] = field(default_factory=list)
    intervals: Dict[str, List[IntervalMetric]] = field(default_factory=dict)
    last_intervals: Dict[str, Optional[IntervalMetric]] = field(default_factory=dict)
    per_day_year: Dict[str, float] = field(default_factory=dict)
    coverage: Coverage = field(default_factory=Coverage)
    window_metrics: Dict[str, Dict[str, Optional[WindowMetric]]] = field(default_factory=dict)
    growth_inputs: Dict[str, GrowthInputs] = field(default_factory=dict)
    best_interval: Optional[IntervalMetric] = None
    worst_interval: Optional[IntervalMetric] = None
    percentiles: Percentiles = field(default_factory=Percentiles)
    score: float = 0.0
    score_by_window: Dict[str, float] = field(default_factory=dict)
    score_breakdown_by_window: Dict[str, ScoreBreakdown] = field(default_factory=dict)
    score_timeline: List[ScoreSnapshot] = field(default_factory=list)
    rank: int = 0
    recommendation: Recommendation = Recommendation.NONE
    tags: Tags = field(default_factory=Tags)


@dataclass
class GuildComputed:
    guild_key: str
    guild_name: str
    points: List[GuildSeriesPoint] = field(default_factory=list)
    intervals: List[IntervalMetric] = field(default_factory=list)
    intervals_by_metric: Dict[str, List[IntervalMetric]] = field(default_factory=dict)
    per_day_year: Dict[str, float] = field(default_factory=dict)
    median_latest: Dict[str, float] = field(default_factory=dict)
    good_intervals: List[IntervalMetric] = field(default_factory=list)
    bad_intervals: List[IntervalMetric] = field(default_factory=list)


@dataclass(frozen=True)
class SnapshotSummary:
    id: str
    label: str
    date: str
    guild_count: int
    member_count: int


@dataclass(frozen=True)
class PlayerWindowEntry:
    player_key: str
    name: str
    guild_key: Optional[str]
    metric: str
    per_day: float
    delta: float


@dataclass(frozen=True)
class GuildRosterEntry:
    guild_key: str
    guild_name: str
    member_count: int


@dataclass(frozen=True)
class LatestPlayerEntry:
    player_key: str
    name: str
    server: str
    player_id: Optional[str] = None
    guild_key: Optional[str] = None
    guild_name: Optional[str] = None


@dataclass
class Recommendations:
    main: List[str] = field(default_factory=list)
    wing: List[str] = field(default_factory=list)


@dataclass
class DatasetResult:
    dataset_id: str
    latest_date: str
    range_start: str
    snapshots: List[SnapshotSummary] = field(default_factory=list)
    players: List[PlayerComputed] = field(default_factory=list)
    global_players: List[PlayerComputed] = field(default_factory=list)
    guilds: List[GuildComputed] = field(default_factory=list)
    top_movers: Dict[str, List[PlayerWindowEntry]] = field(default_factory=dict)
    top_movers_by_metric: Dict[str, Dict[str, List[PlayerWindowEntry]]] = field(default_factory=dict)
    recommendations: Recommendations = field(default_factory=Recommendations)
    guild_roster: List[GuildRosterEntry] = field(default_factory=list)
    latest_players: List[LatestPlayerEntry] = field(default_factory=list)
    default_guild_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe, camelCase representation for transport."""
        return to_json_safe(self)
