from __future__ import annotations

from goldboard.core.config import Settings
from goldboard.db.source import TradeSource
from goldboard.schemas.trade import Trade
from goldboard.schemas.views import AnalysisFilters, AnalysisView, DashboardTrade, DashboardView
from goldboard.services.analytics import (
    build_cumulative_series,
    build_histogram,
    compute_summary_stats,
    format_local,
    partition_trades,
    profit_of,
)
from goldboard.services.filters import parse_range, validate_bins
from goldboard.services.live_sync import LiveSyncController, UpdateListener


def _dashboard_rows(trades: list[Trade], timezone: str) -> list[DashboardTrade]:
    # Rows arrive oldest first; the tables list newest first.
    return [
        DashboardTrade(
            **trade.model_dump(),
            open_time_label=format_local(trade.open_time, timezone),
            open_clock_label=format_local(trade.open_time, timezone, "%H:%M:%S"),
        )
        for trade in reversed(trades)
    ]


def build_dashboard_view(controller: LiveSyncController, settings: Settings) -> DashboardView:
    active, history = partition_trades(controller.trades)
    # Closed-trade figures only; open positions have no realised profit yet.
    closed = compute_summary_stats(history)

    return DashboardView(
        configured=controller.configured,
        state=controller.state,
        active_trades=_dashboard_rows(active, settings.display_timezone),
        history_trades=_dashboard_rows(history, settings.display_timezone),
        account=controller.account,
        free_margin=controller.account.equity,
        closed_profit=closed.net_sum,
        win_rate_percent=closed.win_rate_percent,
        currency=settings.currency,
    )


def build_analysis_view(controller: LiveSyncController, settings: Settings) -> AnalysisView:
    trades = controller.trades
    profits = [profit_of(trade) for trade in trades]
    return AnalysisView(
        configured=controller.configured,
        state=controller.state,
        filters=AnalysisFilters(
            start=controller.start,
            end=controller.end,
            bins=controller.bins,
            bin_choices=list(settings.bin_choices),
        ),
        stats=compute_summary_stats(trades),
        histogram=build_histogram(profits, controller.bins),
        series=build_cumulative_series(trades, settings.display_timezone),
        currency=settings.currency,
    )


def make_dashboard_controller(source: TradeSource, settings: Settings, on_update: UpdateListener | None = None) -> LiveSyncController:
    return LiveSyncController(
        source,
        track_account=True,
        bins=settings.default_bins,
        on_update=on_update,
    )


def make_analysis_controller(
    source: TradeSource,
    settings: Settings,
    start: str | None = None,
    end: str | None = None,
    bins: int | str | None = None,
    on_update: UpdateListener | None = None,
) -> LiveSyncController:
    """Build an analysis controller from raw user filters; raises FilterValidationError."""
    start_utc, end_utc = parse_range(start, end, settings.display_timezone)
    bin_count = validate_bins(bins, settings.bin_choices, settings.default_bins)
    return LiveSyncController(
        source,
        bins=bin_count,
        start=start_utc,
        end=end_utc,
        on_update=on_update,
    )
