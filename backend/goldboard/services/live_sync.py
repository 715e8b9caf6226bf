from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Coroutine

from goldboard.db.source import Subscription, TradeSource, parse_account_stats
from goldboard.models.enums import SyncState
from goldboard.schemas.trade import AccountStats, Trade

logger = logging.getLogger(__name__)

UpdateListener = Callable[["LiveSyncController"], Awaitable[None]]


class LiveSyncController:
    """
    Holds the trade/account snapshot for one view and keeps it current.

    ``start`` loads the snapshot and subscribes to the change feed. A trades
    notification re-fetches the whole list with the current bounds; an account
    notification applies the pushed row as is. Every fetch carries a sequence
    number and a response older than the last applied one is dropped, so the
    newest request wins regardless of resolution order. After ``stop`` nothing
    is applied and the listener is never called again.
    """

    def __init__(
        self,
        source: TradeSource,
        *,
        track_account: bool = False,
        bins: int = 12,
        start: datetime | None = None,
        end: datetime | None = None,
        on_update: UpdateListener | None = None,
    ) -> None:
        if bins < 1:
            raise ValueError("bins must be at least 1")
        self._source = source
        self.track_account = track_account
        self.bins = bins
        self.start = start
        self.end = end
        self.on_update = on_update

        self.trades: list[Trade] = []
        self.account = AccountStats()
        self.state = SyncState.UNINITIALIZED

        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._request_seq = 0
        self._applied_seq = 0

    @property
    def configured(self) -> bool:
        return self._source.configured

    @property
    def closed(self) -> bool:
        return self.state == SyncState.CLOSED

    async def start(self) -> None:
        if self.state != SyncState.UNINITIALIZED:
            raise RuntimeError(f"Controller already {self.state.value}")
        await self.load()

        watched = [(self._source.trades_table, self._on_trades_change)]
        if self.track_account:
            watched.append((self._source.account_table, self._on_account_change))
        for table, handler in watched:
            if self.closed:
                return
            subscription = await self._source.subscribe_to_changes(table, handler)
            if self.closed:
                await subscription.close()
                return
            self._subscriptions.append(subscription)

    async def load(self) -> None:
        """Fetch trades (and account stats when tracked) and replace the snapshot."""
        if self.closed:
            return
        self.state = SyncState.LOADING
        if self.track_account:
            account = await self._source.fetch_latest_account_stats()
            if account is not None and not self.closed:
                self.account = account
        await self.refresh()

    async def refresh(self) -> None:
        if self.closed:
            return
        self._request_seq += 1
        seq = self._request_seq
        self.state = SyncState.LOADING

        trades = await self._source.fetch_trades(self.start, self.end)

        if self.closed:
            logger.debug("Dropping trades response %s received after stop", seq)
            return
        if seq < self._applied_seq:
            logger.debug("Dropping stale trades response %s (applied %s)", seq, self._applied_seq)
            return
        self._applied_seq = seq
        self.trades = trades
        if seq == self._request_seq:
            self.state = SyncState.READY
        await self._notify()

    async def set_bins(self, bins: int) -> None:
        if bins < 1:
            raise ValueError("bins must be at least 1")
        self.bins = bins
        await self._notify()

    async def set_range(self, start: datetime | None, end: datetime | None) -> None:
        self.start = start
        self.end = end
        await self.refresh()

    async def stop(self) -> None:
        if self.closed:
            return
        self.state = SyncState.CLOSED
        for task in list(self._tasks):
            task.cancel()
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.close()

    def _on_trades_change(self, record: dict[str, Any] | None) -> None:
        if self.closed:
            return
        self._spawn(self.refresh())

    def _on_account_change(self, record: dict[str, Any] | None) -> None:
        if self.closed:
            return
        account = parse_account_stats(record)
        if account is None:
            return
        self.account = account
        self._spawn(self._notify())

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Live update failed", exc_info=exc)

    async def _notify(self) -> None:
        if self.closed or self.on_update is None:
            return
        await self.on_update(self)

    async def wait_idle(self) -> None:
        """Wait for pending change-feed work to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
