#!/usr/bin/env python3
"""
Percentile helpers.

Tie-aware average-rank percentiles over a keyed set of values, and the
position of a single value inside a sorted cohort.
"""

from typing import Dict, Mapping, Sequence

import numpy as np
import pandas as pd

from roster_analytics.analytics.utils_stats import finite_or_zero


def compute_percentiles(values: Mapping[str, float]) -> Dict[str, float]:
    """
    Average-rank percentile of each value in [0, 1].

    Tied values share the mean of the positions they occupy, so a run of
    ties at sorted positions [i, j) maps to ((i + j - 1) / 2) / (n - 1).
    A single entry maps to 1.

    Args:
        values: Mapping of key to numeric value

    Returns:
        Mapping of key to percentile
    """
    if not values:
        return {}
    if len(values) == 1:
        return {key: 1.0 for key in values}

    series = pd.Series({key: finite_or_zero(v) for key, v in values.items()}, dtype=float)
    ranks = series.rank(method="average") - 1.0
    percentiles = ranks / (len(series) - 1)
    return {key: float(p) for key, p in percentiles.items()}


def percentile_from_sorted(sorted_values: Sequence[float], value: float) -> float:
    """
    Position of ``value`` within an ascending cohort.

    Uses the last index whose value is <= ``value``; 0 when none is, 1 for a
    single-element cohort and 0 for an empty one.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    if n == 1:
        return 1.0
    index = int(np.searchsorted(np.asarray(sorted_values, dtype=float), value, side="right")) - 1
    if index < 0:
        return 0.0
    return index / (n - 1)
