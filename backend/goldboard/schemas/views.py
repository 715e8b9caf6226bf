from __future__ import annotations

from datetime import datetime
from typing import Sequence

from pydantic import BaseModel, Field

from goldboard.models.enums import SyncState
from goldboard.schemas.stats import CumulativeSeries, Histogram, SummaryStats
from goldboard.schemas.trade import AccountStats, Trade


class DashboardTrade(Trade):
    # Open time rendered in the display timezone.
    open_time_label: str = "-"
    open_clock_label: str = "-"


class DashboardView(BaseModel):
    configured: bool
    state: SyncState
    active_trades: Sequence[DashboardTrade]
    history_trades: Sequence[DashboardTrade]
    account: AccountStats
    free_margin: float
    closed_profit: float
    win_rate_percent: float
    currency: str


class AnalysisFilters(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    bins: int
    bin_choices: list[int] = Field(default_factory=list)


class AnalysisView(BaseModel):
    configured: bool
    state: SyncState
    filters: AnalysisFilters
    stats: SummaryStats
    histogram: Histogram
    series: CumulativeSeries
    currency: str
