#!/usr/bin/env python3
"""
Window resolution.

Maps the 1/3/6/12-month trailing windows onto concrete snapshot dates by
bucketing dates into calendar months, then derives each player's window
metrics and growth inputs from the resolved boundaries.
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging

from roster_analytics.analytics.config import EngineConfig
from roster_analytics.analytics.utils_stats import (
    diff_days,
    epoch_ms,
    month_key,
    sort_dates,
)
from roster_analytics.schema.models import (
    METRIC_KEYS,
    GrowthInputs,
    IntervalMetric,
    SeriesPoint,
    WindowMeta,
    WindowMetric,
)

logger = logging.getLogger(__name__)


def bucket_by_month(dates: Sequence[str]) -> List[Tuple[str, List[str]]]:
    """
    Group ascending dates into (YYYY-MM, dates) buckets.

    Args:
        dates: Dates in ascending order

    Returns:
        Populated month buckets in chronological order
    """
    buckets: List[Tuple[str, List[str]]] = []
    for date in dates:
        key = month_key(date)
        if buckets and buckets[-1][0] == key:
            buckets[-1][1].append(date)
        else:
            buckets.append((key, [date]))
    return buckets


def resolve_window(dates: Sequence[str], months: int) -> WindowMeta:
    """
    Resolve an N-month window against a list of snapshot dates.

    The window ends in the second-to-last populated month (the latest month
    is usually partial) and reaches back N-1 populated months from there.
    The end date is the last date of the end month when it holds two or
    more snapshots, otherwise the first snapshot of the following month.

    Args:
        dates: Snapshot dates (any order, duplicates allowed)
        months: Window length in months

    Returns:
        WindowMeta; empty when there are no dates
    """
    ordered = sort_dates(dates)
    buckets = bucket_by_month(ordered)
    if not buckets:
        return WindowMeta()

    end_index = len(buckets) - 2 if len(buckets) >= 2 else 0
    start_index = max(0, end_index - (months - 1))

    start_month, start_dates = buckets[start_index]
    end_month, end_dates = buckets[end_index]

    start_date = start_dates[0]
    if len(end_dates) >= 2:
        end_date = end_dates[-1]
    elif end_index + 1 < len(buckets):
        end_date = buckets[end_index + 1][1][0]
    else:
        end_date = end_dates[0]

    start_ts = epoch_ms(start_date)
    end_ts = epoch_ms(end_date)
    inside = sum(1 for d in ordered if start_ts <= epoch_ms(d) <= end_ts)

    return WindowMeta(
        start_date=start_date,
        end_date=end_date,
        possible_intervals=max(0, inside - 1),
        start_month=start_month,
        end_month=end_month,
    )


def build_window_meta(dates: Sequence[str], window_keys: Sequence[str]) -> Dict[str, WindowMeta]:
    """Resolve every window key once for a date list."""
    return {key: resolve_window(dates, int(key)) for key in window_keys}


def is_within_window(date: str, meta: WindowMeta) -> bool:
    ts = epoch_ms(date)
    if meta.start_date and ts < epoch_ms(meta.start_date):
        return False
    if meta.end_date and ts > epoch_ms(meta.end_date):
        return False
    return True


def window_intervals(intervals: Sequence[IntervalMetric], meta: WindowMeta) -> List[IntervalMetric]:
    """Intervals whose start and end both fall inside the window."""
    return [
        interval for interval in intervals
        if is_within_window(interval.start_date, meta) and is_within_window(interval.end_date, meta)
    ]


def resolve_player_window_points(points: Sequence[SeriesPoint], meta: WindowMeta
                                 ) -> Tuple[Optional[SeriesPoint], Optional[SeriesPoint]]:
    """
    Pick a player's own start/end points for a resolved window.

    The start is the player's first point in or after the start month. The
    end follows the same rule as the global window: last point of the end
    month when the player has two or more there, otherwise the player's
    first point after the end month, otherwise the latest point they have.

    Returns:
        (start, end), or (None, None) when no usable span exists
    """
    if not points or meta.start_month is None or meta.end_month is None:
        return None, None

    months = [month_key(p.date) for p in points]

    start = next((p for p, m in zip(points, months) if m >= meta.start_month), None)

    in_end_month = [p for p, m in zip(points, months) if m == meta.end_month]
    after_end = [p for p, m in zip(points, months) if m > meta.end_month]
    before_end = [p for p, m in zip(points, months) if m < meta.end_month]

    if len(in_end_month) >= 2:
        end = in_end_month[-1]
    elif after_end:
        end = after_end[0]
    elif in_end_month:
        end = in_end_month[0]
    elif before_end:
        end = before_end[-1]
    else:
        end = None

    if start is None or end is None:
        return None, None
    if epoch_ms(end.date) <= epoch_ms(start.date):
        return None, None
    return start, end


def build_window_metric(start: SeriesPoint, end: SeriesPoint, metric: str) -> WindowMetric:
    delta = end.metric(metric) - start.metric(metric)
    days = diff_days(start.date, end.date)
    return WindowMetric(
        start_date=start.date,
        end_date=end.date,
        days=days,
        delta=delta,
        per_day=delta / days,
    )


def build_window_metrics(points: Sequence[SeriesPoint], meta_by_key: Dict[str, WindowMeta]
                         ) -> Dict[str, Dict[str, Optional[WindowMetric]]]:
    """
    Window metric per metric key and window key.

    Args:
        points: Player points in ascending order
        meta_by_key: Resolved windows

    Returns:
        {metric: {window: WindowMetric or None}}
    """
    metrics: Dict[str, Dict[str, Optional[WindowMetric]]] = {
        metric: {key: None for key in meta_by_key} for metric in METRIC_KEYS
    }
    for key, meta in meta_by_key.items():
        start, end = resolve_player_window_points(points, meta)
        if start is None or end is None:
            continue
        for metric in METRIC_KEYS:
            metrics[metric][key] = build_window_metric(start, end, metric)
    return metrics


def build_growth_inputs(points: Sequence[SeriesPoint], intervals: Sequence[IntervalMetric],
                        meta_by_key: Dict[str, WindowMeta],
                        config: EngineConfig) -> Dict[str, GrowthInputs]:
    """
    Absolute and relative baseStats pace per window.

    Days and delta are summed over the baseStats intervals lying wholly
    inside the window; with no such interval the pace is 0. Negative deltas
    clamp to 0 and the relative pace divides by the starting baseStats,
    floored at GROWTH_BASELINE.

    Args:
        points: Player points in ascending order
        intervals: The player's baseStats intervals
        meta_by_key: Resolved windows
        config: Engine configuration

    Returns:
        {window: GrowthInputs}
    """
    result = {}
    for key, meta in meta_by_key.items():
        window_points = [p for p in points if is_within_window(p.date, meta)]
        if not window_points:
            result[key] = GrowthInputs()
            continue

        base_start = window_points[0].base_stats
        base_end = window_points[-1].base_stats

        inside = window_intervals(intervals, meta)
        window_days = sum(i.days for i in inside)
        window_delta = sum(i.delta for i in inside) if inside else base_end - base_start
        window_delta = max(0.0, window_delta)

        abs_per_day = window_delta / window_days if window_days > 0 else 0.0
        rel_per_day = (
            abs_per_day / max(base_start, config.growth_baseline) if abs_per_day > 0 else 0.0
        )

        result[key] = GrowthInputs(
            window_days=window_days,
            window_delta=window_delta,
            base_start=base_start,
            base_end=base_end,
            abs_per_day=abs_per_day,
            rel_per_day=rel_per_day,
            real_guild_key=window_points[-1].guild_key or None,
        )
    return result
