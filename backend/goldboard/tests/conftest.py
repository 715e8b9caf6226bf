from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from fastapi.testclient import TestClient

from goldboard.api.deps import get_app_settings
from goldboard.core.config import Settings
from goldboard.db.source import OnChange, Subscription, TradeSource
from goldboard.main import app
from goldboard.schemas.trade import AccountStats, Trade

T0 = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeSubscription(Subscription):
    def __init__(self, source: "FakeTradeSource", table: str, handler: OnChange) -> None:
        self.source = source
        self.table = table
        self.handler = handler
        self.closed = False

    async def close(self) -> None:
        self.closed = True
        handlers = self.source.handlers.get(self.table, [])
        if self.handler in handlers:
            handlers.remove(self.handler)


class FakeTradeSource(TradeSource):
    """In-memory stand-in for the Supabase adapter."""

    def __init__(self, settings: Settings, trades: list[Trade] | None = None, account: AccountStats | None = None) -> None:
        super().__init__(settings)
        self.trades = list(trades or [])
        self.account = account
        self.fetch_calls: list[tuple[datetime | None, datetime | None]] = []
        self.account_calls = 0
        self.handlers: dict[str, list[OnChange]] = {}
        self.subscriptions: list[FakeSubscription] = []
        # When set, fetch_trades parks on a future the test resolves.
        self.hold = False
        self.pending: list[asyncio.Future] = []

    async def fetch_trades(self, start: datetime | None = None, end: datetime | None = None) -> list[Trade]:
        self.fetch_calls.append((start, end))
        if self.hold:
            future = asyncio.get_running_loop().create_future()
            self.pending.append(future)
            return await future
        return [
            trade
            for trade in self.trades
            if (start is None or (trade.open_time is not None and trade.open_time >= start))
            and (end is None or (trade.open_time is not None and trade.open_time <= end))
        ]

    async def fetch_latest_account_stats(self) -> AccountStats | None:
        self.account_calls += 1
        return self.account

    async def subscribe_to_changes(self, table: str, on_change: OnChange) -> Subscription:
        self.handlers.setdefault(table, []).append(on_change)
        subscription = FakeSubscription(self, table, on_change)
        self.subscriptions.append(subscription)
        return subscription

    def emit(self, table: str, record: dict[str, Any] | None = None) -> None:
        for handler in list(self.handlers.get(table, [])):
            handler(record)


@pytest.fixture()
def settings() -> Settings:
    return Settings(_env_file=None, supabase_url=None, supabase_key=None, display_timezone="UTC")


@pytest.fixture()
def make_trade() -> Callable[..., Trade]:
    counter = iter(range(1, 10_000))

    def factory(
        profit: float | None = 0.0,
        minutes: int | None = 0,
        closed: bool = True,
        action: str = "BUY",
        ticket: int | None = None,
    ) -> Trade:
        open_time = T0 + timedelta(minutes=minutes) if minutes is not None else None
        return Trade(
            ticket=ticket if ticket is not None else next(counter),
            symbol="XAUUSD",
            action=action,
            open_price=2050.0,
            close_price=2051.0 if closed else None,
            profit=profit,
            open_time=open_time,
            close_time=(open_time or T0) + timedelta(minutes=5) if closed else None,
        )

    return factory


@pytest.fixture()
def fake_source(settings: Settings) -> FakeTradeSource:
    return FakeTradeSource(settings)


@pytest.fixture()
def client_for(settings: Settings) -> Iterator[Callable[[TradeSource], TestClient]]:
    clients: list[TestClient] = []

    def factory(source: TradeSource) -> TestClient:
        app.state.trade_source = source
        app.dependency_overrides[get_app_settings] = lambda: settings
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)
    app.dependency_overrides.clear()
    app.state.trade_source = None
