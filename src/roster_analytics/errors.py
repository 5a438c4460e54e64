#!/usr/bin/env python3
"""
Exceptions raised for input-contract violations.

Sparse but valid data never raises; these are reserved for inputs the engine
cannot interpret at all.
"""


class RosterAnalyticsError(ValueError):
    """Base class for all reportable engine errors."""


class EmptySnapshotsError(RosterAnalyticsError):
    """No snapshots were supplied to a computation that needs at least one."""


class SnapshotContractError(RosterAnalyticsError):
    """A snapshot is structurally invalid (bad timestamp, empty keys, ...)."""


class SaveIndexCacheMissing(RosterAnalyticsError):
    """A save index was requested from a session holding no snapshots."""
