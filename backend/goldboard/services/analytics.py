from __future__ import annotations

import math
from datetime import datetime, timezone as dt_timezone
from typing import Iterable, Sequence
from zoneinfo import ZoneInfo

from goldboard.schemas.stats import (
    CumulativeSeries,
    CumulativeSeriesPoint,
    Histogram,
    SummaryStats,
)
from goldboard.schemas.trade import Trade

FULL_LABEL_FORMAT = "%Y-%m-%d %H:%M:%S"
SHORT_LABEL_FORMAT = "%d/%m"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt_timezone.utc)
    return value


def format_local(value: datetime | None, timezone: str, fmt: str = FULL_LABEL_FORMAT) -> str:
    """Render a stored (UTC) timestamp in the display timezone; "-" when absent."""
    if value is None:
        return "-"
    return _as_utc(value).astimezone(ZoneInfo(timezone)).strftime(fmt)


def profit_of(trade: Trade) -> float:
    # Missing profit aggregates as zero; a reported 0.0 stays 0.0.
    return float(trade.profit) if trade.profit is not None else 0.0


def partition_trades(trades: Iterable[Trade]) -> tuple[list[Trade], list[Trade]]:
    """Split trades into (active, history) on whether close_time is set."""
    active: list[Trade] = []
    history: list[Trade] = []
    for trade in trades:
        if trade.is_active:
            active.append(trade)
        else:
            history.append(trade)
    return active, history


def compute_summary_stats(trades: Sequence[Trade]) -> SummaryStats:
    total = len(trades)
    if total == 0:
        return SummaryStats(total=0, net_sum=0.0, average=0.0, win_rate_percent=0.0)

    profits = [profit_of(trade) for trade in trades]
    net_sum = sum(profits)
    wins = [profit for profit in profits if profit >= 0]

    return SummaryStats(
        total=total,
        net_sum=net_sum,
        average=net_sum / total,
        win_rate_percent=100.0 * len(wins) / total,
    )


def build_histogram(profits: Sequence[float], bin_count: int) -> Histogram:
    """
    Bucket profits into ``bin_count`` equal-width bins spanning [min, max].

    The last bucket is closed on the right so the maximum lands in it. When all
    values are equal the range is taken as 1 and everything falls in bucket 0.
    """
    if bin_count < 1:
        raise ValueError("bin_count must be at least 1")
    if not profits:
        return Histogram(labels=[], counts=[])

    low = min(profits)
    high = max(profits)
    value_range = (high - low) or 1.0
    bin_width = value_range / bin_count

    counts = [0] * bin_count
    for profit in profits:
        index = min(bin_count - 1, math.floor((profit - low) / bin_width))
        counts[index] += 1

    labels = []
    for index in range(bin_count):
        lower = low + index * bin_width
        upper = lower + bin_width
        labels.append(f"[{lower:.2f}, {upper:.2f})")

    return Histogram(labels=labels, counts=counts)


def build_cumulative_series(trades: Iterable[Trade], timezone: str = "UTC") -> CumulativeSeries:
    tz = ZoneInfo(timezone)
    # sorted() is stable; equal open times keep their input order.
    ordered = sorted(
        (trade for trade in trades if trade.open_time is not None),
        key=lambda trade: _as_utc(trade.open_time),
    )

    series = CumulativeSeries()
    running_total = 0.0
    for trade in ordered:
        running_total += profit_of(trade)
        opened = _as_utc(trade.open_time)
        local_dt = opened.astimezone(tz)
        point = CumulativeSeriesPoint(
            timestamp=opened,
            display_label=local_dt.strftime(FULL_LABEL_FORMAT),
            short_label=local_dt.strftime(SHORT_LABEL_FORMAT),
            running_total=running_total,
        )
        series.points.append(point)
        series.labels.append(point.display_label)
        series.short_labels.append(point.short_label)
        series.cumulative.append(running_total)
    return series
