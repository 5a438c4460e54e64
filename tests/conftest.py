#!/usr/bin/env python3
"""
Pytest configuration and fixtures
"""

import pytest
from pathlib import Path
import sys

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))


def _member(player_key, base_stats, level=100, server="s1", exp=0, exp_next=1000,
            mine=10, treasury=10, name=None, player_id=None):
    return {
        "playerKey": player_key,
        "name": name or player_key.upper(),
        "server": server,
        "playerId": player_id,
        "classId": 1,
        "baseStats": base_stats,
        "level": level,
        "exp": exp,
        "expNext": exp_next,
        "mine": mine,
        "treasury": treasury,
    }


def _snapshot(scanned_at, guilds):
    """guilds: {guild_key: [member dicts]}"""
    return {
        "scannedAt": scanned_at,
        "guilds": [
            {"guildKey": key, "guildName": f"Guild {key}", "members": members}
            for key, members in guilds.items()
        ],
    }


@pytest.fixture
def member():
    """Factory for camelCase member dictionaries"""
    return _member


@pytest.fixture
def snapshot():
    """Factory for camelCase snapshot dictionaries"""
    return _snapshot


@pytest.fixture
def thirty_day_snapshots():
    """Two snapshots 30 days apart, one player growing 1000 -> 1300"""
    return [
        _snapshot("2024-01-01T00:00:00Z", {"g1": [_member("p1", 1000)]}),
        _snapshot("2024-01-31T00:00:00Z", {"g1": [_member("p1", 1300)]}),
    ]


@pytest.fixture
def two_guild_snapshots():
    """
    Two guilds on one server over three monthly snapshots.

    g1 holds a and b (both growing, a levelling, b not), g2 holds only c.
    """
    def build(date, step):
        return _snapshot(date, {
            "g1": [
                _member("a", 1000 + 300 * step, level=100 + 5 * step),
                _member("b", 2000 + 150 * step, level=200),
            ],
            "g2": [
                _member("c", 1500 + 200 * step, level=150 + 4 * step),
            ],
        })

    return [
        build("2024-01-01T00:00:00Z", 0),
        build("2024-02-01T00:00:00Z", 1),
        build("2024-03-01T00:00:00Z", 2),
    ]


@pytest.fixture
def large_roster_snapshots():
    """120 players in one guild with distinct growth over two snapshots"""
    first = [_member(f"p{i:03d}", 10000) for i in range(120)]
    second = [_member(f"p{i:03d}", 10000 + 10 * i, level=100 + (i % 7)) for i in range(120)]
    return [
        _snapshot("2024-01-01T00:00:00Z", {"g1": first}),
        _snapshot("2024-01-31T00:00:00Z", {"g1": second}),
    ]
