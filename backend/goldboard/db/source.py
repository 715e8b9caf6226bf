from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Iterable

from pydantic import ValidationError
from supabase import AsyncClient, acreate_client

from goldboard.core.config import Settings
from goldboard.schemas.trade import AccountStats, Trade

logger = logging.getLogger(__name__)

OnChange = Callable[[dict[str, Any] | None], None]


def extract_record(payload: Any) -> dict[str, Any] | None:
    """
    Pull the changed row out of a realtime postgres_changes payload.

    Depending on the realtime client version the row sits under
    ``data.record``, ``record`` or ``new``; deletes carry no new row.
    """
    if not isinstance(payload, dict):
        return None
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        return None
    for key in ("record", "new"):
        record = data.get(key)
        if isinstance(record, dict) and record:
            return record
    return None


def parse_trades(rows: Iterable[dict[str, Any]]) -> list[Trade]:
    trades: list[Trade] = []
    for row in rows:
        try:
            trades.append(Trade.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping malformed trade row %s: %s", row.get("ticket"), exc)
    return trades


def parse_account_stats(row: dict[str, Any] | None) -> AccountStats | None:
    if not row:
        return None
    try:
        return AccountStats.model_validate(row)
    except ValidationError as exc:
        logger.warning("Ignoring malformed account stats row: %s", exc)
        return None


class Subscription(ABC):
    @abstractmethod
    async def close(self) -> None:
        ...


class NullSubscription(Subscription):
    async def close(self) -> None:
        return None


class TradeSource(ABC):
    """Read-only access to the trades and account stats tables."""

    configured: bool = True

    def __init__(self, settings: Settings) -> None:
        self.trades_table = settings.trades_table
        self.account_table = settings.account_stats_table

    @abstractmethod
    async def fetch_trades(self, start: datetime | None = None, end: datetime | None = None) -> list[Trade]:
        ...

    @abstractmethod
    async def fetch_latest_account_stats(self) -> AccountStats | None:
        ...

    @abstractmethod
    async def subscribe_to_changes(self, table: str, on_change: OnChange) -> Subscription:
        ...

    async def close(self) -> None:
        return None


class UnconfiguredTradeSource(TradeSource):
    configured = False

    async def fetch_trades(self, start: datetime | None = None, end: datetime | None = None) -> list[Trade]:
        return []

    async def fetch_latest_account_stats(self) -> AccountStats | None:
        return None

    async def subscribe_to_changes(self, table: str, on_change: OnChange) -> Subscription:
        return NullSubscription()


class ChannelSubscription(Subscription):
    def __init__(self, client: AsyncClient, table: str, on_change: OnChange) -> None:
        self._client = client
        self._table = table
        self._on_change = on_change
        self._closed = False
        self.channel: Any = None

    def handle(self, payload: Any) -> None:
        if self._closed:
            return
        try:
            self._on_change(extract_record(payload))
        except Exception:  # noqa: BLE001
            logger.exception("Change handler for %s failed", self._table)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.channel is None:
            return
        try:
            await self._client.remove_channel(self.channel)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to remove realtime channel for %s: %s", self._table, exc)
        else:
            logger.debug("Closed realtime channel for %s", self._table)


class SupabaseTradeSource(TradeSource):
    def __init__(self, client: AsyncClient, settings: Settings) -> None:
        super().__init__(settings)
        self._client = client
        self._schema = settings.supabase_schema
        self._account_order_column = settings.account_stats_order_column

    async def fetch_trades(self, start: datetime | None = None, end: datetime | None = None) -> list[Trade]:
        query = self._client.table(self.trades_table).select("*")
        if start is not None:
            query = query.gte("open_time", start.isoformat())
        if end is not None:
            query = query.lte("open_time", end.isoformat())
        query = query.order("open_time", desc=False)
        try:
            response = await query.execute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Fetching %s failed: %s", self.trades_table, exc)
            return []
        return parse_trades(response.data or [])

    async def fetch_latest_account_stats(self) -> AccountStats | None:
        query = self._client.table(self.account_table).select("*")
        if self._account_order_column:
            query = query.order(self._account_order_column, desc=True)
        try:
            response = await query.limit(1).execute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Fetching %s failed: %s", self.account_table, exc)
            return None
        rows = response.data or []
        return parse_account_stats(rows[0] if rows else None)

    async def subscribe_to_changes(self, table: str, on_change: OnChange) -> Subscription:
        subscription = ChannelSubscription(self._client, table, on_change)
        channel = self._client.channel(f"realtime-{table}-{uuid.uuid4().hex[:8]}")
        channel.on_postgres_changes("*", schema=self._schema, table=table, callback=subscription.handle)
        try:
            await channel.subscribe()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Subscribing to %s failed: %s", table, exc)
            return NullSubscription()
        subscription.channel = channel
        logger.debug("Subscribed to realtime changes on %s", table)
        return subscription

    async def close(self) -> None:
        try:
            await self._client.remove_all_channels()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to close realtime channels: %s", exc)


async def create_trade_source(settings: Settings) -> TradeSource:
    if not settings.is_configured:
        logger.warning("Supabase not configured: set SUPABASE_URL and SUPABASE_KEY")
        return UnconfiguredTradeSource(settings)
    try:
        client = await acreate_client(settings.supabase_url, settings.supabase_key)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not create Supabase client, running unconfigured: %s", exc)
        return UnconfiguredTradeSource(settings)
    return SupabaseTradeSource(client, settings)
