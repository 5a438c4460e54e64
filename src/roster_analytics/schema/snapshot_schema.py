#!/usr/bin/env python3
"""
Snapshot Member Schema Definition

Flattens a NormalizedSnapshot into one row per guild member and validates it
with Pandera. Numeric stats are coerced and sanitised (non-finite -> 0) before
validation, so only structural problems - empty keys, wrong shapes - fail.
"""

import logging

import numpy as np
import pandas as pd
import pandera as pa
from pandera.typing import Series
from typing import Optional

from roster_analytics.errors import SnapshotContractError
from roster_analytics.schema.models import NormalizedSnapshot

logger = logging.getLogger(__name__)

NUMERIC_COLUMNS = ["base_stats", "level", "exp", "exp_next", "mine", "treasury"]

MEMBER_COLUMNS = [
    "guild_key", "guild_name", "player_key", "name", "server",
    "player_id", "class_id", *NUMERIC_COLUMNS,
]


class SnapshotMemberSchema(pa.DataFrameModel):
    """
    Pandera schema for the flattened member table of one snapshot.

    Fields:
    - guild_key / player_key: non-empty identifiers
    - name / server: display strings (may be empty)
    - player_id: in-game id, empty string when unknown
    - class_id: optional class id
    - base_stats, level, exp, exp_next, mine, treasury: finite floats
    """

    guild_key: Series[str] = pa.Field(
        description="Guild identifier",
        str_length={"min_value": 1}
    )

    guild_name: Series[str] = pa.Field(description="Guild display name")

    player_key: Series[str] = pa.Field(
        description="Stable player identifier",
        str_length={"min_value": 1}
    )

    name: Series[str] = pa.Field(description="Player display name")

    server: Series[str] = pa.Field(description="Game server the player belongs to")

    player_id: Series[str] = pa.Field(description="In-game player id, empty when unknown")

    class_id: Optional[Series[float]] = pa.Field(
        description="Character class id",
        nullable=True
    )

    base_stats: Series[float] = pa.Field(description="Base stats total")
    level: Series[float] = pa.Field(description="Character level")
    exp: Series[float] = pa.Field(description="Exp counter within the level")
    exp_next: Series[float] = pa.Field(description="Exp required for next level")
    mine: Series[float] = pa.Field(description="Gem mine level")
    treasury: Series[float] = pa.Field(description="Treasury level")

    class Config:
        """Pandera configuration."""
        coerce = True
        strict = False

    @pa.check("base_stats", "level", "exp", "exp_next", "mine", "treasury")
    def all_finite(cls, series: Series[float]) -> Series[bool]:
        """Numeric stats must be finite once sanitised."""
        return pd.Series(np.isfinite(series.to_numpy(dtype=float)), index=series.index)


def as_key(value) -> str:
    """String form of an identifier as stored in the member table."""
    return "" if value is None else str(value)


def flatten_snapshot(snapshot: NormalizedSnapshot) -> pd.DataFrame:
    """
    Build the member table for one snapshot.

    Args:
        snapshot: Normalized snapshot

    Returns:
        DataFrame with MEMBER_COLUMNS, one row per member in roster order
    """
    rows = []
    for guild in snapshot.guilds:
        for member in guild.members:
            rows.append({
                "guild_key": as_key(guild.guild_key),
                "guild_name": as_key(guild.guild_name),
                "player_key": as_key(member.player_key),
                "name": as_key(member.name),
                "server": as_key(member.server),
                "player_id": as_key(member.player_id),
                "class_id": member.class_id,
                "base_stats": member.base_stats,
                "level": member.level,
                "exp": member.exp,
                "exp_next": member.exp_next,
                "mine": member.mine,
                "treasury": member.treasury,
            })

    df = pd.DataFrame(rows, columns=MEMBER_COLUMNS)

    for col in NUMERIC_COLUMNS:
        df[col] = (
            pd.to_numeric(df[col], errors="coerce")
            .astype(float)
            .replace([np.inf, -np.inf], np.nan)
            .fillna(0.0)
        )
    df["class_id"] = pd.to_numeric(df["class_id"], errors="coerce").astype(float)

    return df


def validate_member_frame(df: pd.DataFrame, scanned_at: str = "") -> pd.DataFrame:
    """
    Validate a flattened member table against SnapshotMemberSchema.

    Args:
        df: Output of flatten_snapshot
        scanned_at: Snapshot timestamp, used in error messages

    Returns:
        Validated DataFrame

    Raises:
        SnapshotContractError: If validation fails
    """
    try:
        return SnapshotMemberSchema.validate(df)
    except (pa.errors.SchemaError, pa.errors.SchemaErrors) as e:
        logger.error(f"Snapshot {scanned_at or '<unknown>'} failed member validation: {e}")
        failure_cases = getattr(e, "failure_cases", None)
        if failure_cases is not None:
            logger.error(f"Failure cases:\n{failure_cases}")
        raise SnapshotContractError(
            f"Snapshot {scanned_at or '<unknown>'} has invalid members: {e}"
        ) from e


def get_schema_summary() -> dict:
    """
    Get a summary of the schema definition.

    Returns:
        Dictionary with schema information
    """
    return {
        "schema_name": "SnapshotMemberSchema",
        "description": "Flattened member table of one roster snapshot",
        "columns": MEMBER_COLUMNS,
        "numeric_columns": NUMERIC_COLUMNS,
        "required_non_empty": ["guild_key", "player_key"],
    }
