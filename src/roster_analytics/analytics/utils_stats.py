#!/usr/bin/env python3
"""
Statistical and date utilities for the roster analytics engine.

Provides helper functions for sanitising numbers, robust aggregates, ratio
squashing and snapshot date arithmetic used throughout the pipeline.
"""

from functools import lru_cache
from typing import Any, Iterable, List, Sequence
import math
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def finite_or_zero(value: Any) -> float:
    """
    Coerce a value to a finite float.

    None, non-numeric strings, NaN and +/-inf all degrade to 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def average(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.median(values))


def median_absolute_deviation(values: Sequence[float]) -> float:
    """
    Median of absolute deviations from the median.

    Args:
        values: Input values

    Returns:
        MAD (0.0 for an empty input)
    """
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.median(np.abs(arr - np.median(arr))))


def sigmoid(x: float) -> float:
    # Guard exp overflow for very negative inputs
    if x < -700:
        return 0.0
    return 1.0 / (1.0 + math.exp(-x))


def map_ratio(ratio: float) -> float:
    """
    Squash a pace ratio onto [0, 1] through a logistic of its logarithm.

    A ratio of 1 maps to 0.5, ratios towards 0 map to 0 and ratios towards
    infinity map to 1. Non-finite or non-positive ratios map to 0.

    Args:
        ratio: Player pace divided by a baseline pace

    Returns:
        Score in [0, 1]
    """
    if not math.isfinite(ratio) or ratio <= 0:
        return 0.0
    return clamp(sigmoid(math.log(ratio)), 0.0, 1.0)


def resolve_ratio(value: float, primary: float, fallback: float) -> float:
    """Divide by the first positive baseline; neutral 1.0 if there is none."""
    if primary > 0:
        return value / primary
    if fallback > 0:
        return value / fallback
    return 1.0


def weighted_per_day(intervals: Iterable[Any]) -> float:
    """
    Long-run pace across intervals: sum of deltas over sum of days.

    Args:
        intervals: Objects carrying ``delta`` and ``days``

    Returns:
        Weighted per-day pace (0.0 when there are no days)
    """
    total_days = 0
    total_delta = 0.0
    for interval in intervals:
        total_days += interval.days
        total_delta += interval.delta
    return total_delta / total_days if total_days > 0 else 0.0


@lru_cache(maxsize=8192)
def to_timestamp(value: str) -> pd.Timestamp:
    """
    Parse a snapshot date string into a UTC timestamp.

    Raises:
        ValueError: If the string cannot be parsed
    """
    ts = pd.Timestamp(value)
    if ts is pd.NaT:
        raise ValueError(f"Unparseable timestamp: {value!r}")
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


@lru_cache(maxsize=8192)
def epoch_ms(value: str) -> int:
    """Milliseconds since the epoch for a snapshot date string."""
    return to_timestamp(value).value // 1_000_000


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def diff_days(start: str, end: str) -> int:
    """
    Whole days between two snapshot dates, never less than 1.

    Args:
        start: Earlier date string
        end: Later date string

    Returns:
        Rounded day count, floored at 1
    """
    delta_ms = epoch_ms(end) - epoch_ms(start)
    return max(1, round_half_up(delta_ms / DAY_MS))


@lru_cache(maxsize=8192)
def month_key(value: str) -> str:
    """YYYY-MM bucket for a snapshot date."""
    ts = to_timestamp(value)
    return f"{ts.year:04d}-{ts.month:02d}"


def sort_dates(dates: Iterable[str]) -> List[str]:
    """Unique dates in chronological order."""
    unique = {}
    for date in dates:
        unique.setdefault(date, epoch_ms(date))
    return sorted(unique, key=lambda d: unique[d])
