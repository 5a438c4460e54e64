#!/usr/bin/env python3
"""
Tests for the snapshot member schema
"""

import pytest

from roster_analytics.errors import SnapshotContractError
from roster_analytics.schema.models import NormalizedSnapshot
from roster_analytics.schema.snapshot_schema import (
    MEMBER_COLUMNS,
    flatten_snapshot,
    get_schema_summary,
    validate_member_frame,
)


class TestFlattenSnapshot:
    """Test flattening a snapshot into a member table"""

    def test_one_row_per_member(self, snapshot, member):
        """Rows follow guild and member order"""
        data = snapshot("2024-01-01T00:00:00Z", {
            "g1": [member("a", 100), member("b", 200)],
            "g2": [member("c", 300)],
        })
        df = flatten_snapshot(NormalizedSnapshot.from_dict(data))

        assert list(df.columns) == MEMBER_COLUMNS
        assert list(df["player_key"]) == ["a", "b", "c"]
        assert list(df["guild_key"]) == ["g1", "g1", "g2"]
        assert list(df["base_stats"]) == [100.0, 200.0, 300.0]

    def test_non_numeric_values_become_zero(self, snapshot, member):
        """Garbage, NaN and infinite stats are sanitised to 0"""
        bad = member("a", "n/a")
        bad["mine"] = float("inf")
        bad["treasury"] = float("nan")
        bad["level"] = "42"
        df = flatten_snapshot(NormalizedSnapshot.from_dict(snapshot("2024-01-01", {"g1": [bad]})))

        row = df.iloc[0]
        assert row["base_stats"] == 0.0
        assert row["mine"] == 0.0
        assert row["treasury"] == 0.0
        assert row["level"] == 42.0

    def test_missing_player_id_is_empty(self, snapshot, member):
        """Unknown player ids are stored as empty strings"""
        df = flatten_snapshot(NormalizedSnapshot.from_dict(
            snapshot("2024-01-01", {"g1": [member("a", 1), member("b", 1, player_id="77")]})
        ))

        assert list(df["player_id"]) == ["", "77"]


class TestValidateMemberFrame:
    """Test member table validation"""

    def test_valid_frame_passes(self, snapshot, member):
        """A well-formed snapshot validates"""
        df = flatten_snapshot(NormalizedSnapshot.from_dict(
            snapshot("2024-01-01", {"g1": [member("a", 1)]})
        ))
        validated = validate_member_frame(df, "2024-01-01")

        assert len(validated) == 1

    def test_empty_player_key_fails(self, snapshot, member):
        """An empty player key is rejected"""
        df = flatten_snapshot(NormalizedSnapshot.from_dict(
            snapshot("2024-01-01", {"g1": [member("", 1)]})
        ))

        with pytest.raises(SnapshotContractError):
            validate_member_frame(df, "2024-01-01")

    def test_empty_guild_key_fails(self, snapshot, member):
        """An empty guild key is rejected"""
        df = flatten_snapshot(NormalizedSnapshot.from_dict(
            snapshot("2024-01-01", {"": [member("a", 1)]})
        ))

        with pytest.raises(SnapshotContractError):
            validate_member_frame(df)


def test_schema_summary():
    """Summary lists the member columns"""
    summary = get_schema_summary()

    assert summary["schema_name"] == "SnapshotMemberSchema"
    assert summary["columns"] == MEMBER_COLUMNS
    assert "player_key" in summary["required_non_empty"]
