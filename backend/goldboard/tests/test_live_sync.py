from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from goldboard.db.source import UnconfiguredTradeSource
from goldboard.models.enums import SyncState
from goldboard.schemas.trade import AccountStats
from goldboard.services.live_sync import LiveSyncController


class Recorder:
    def __init__(self) -> None:
        self.snapshots: list[list[int]] = []
        self.accounts: list[AccountStats] = []

    async def __call__(self, controller: LiveSyncController) -> None:
        self.snapshots.append([trade.ticket for trade in controller.trades])
        self.accounts.append(controller.account)


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_start_loads_snapshot_and_subscribes(fake_source, make_trade) -> None:
    fake_source.trades = [make_trade(10.0, 0, ticket=1), make_trade(-2.0, 1, ticket=2)]
    fake_source.account = AccountStats(balance=1000.0, equity=990.0)
    recorder = Recorder()
    controller = LiveSyncController(fake_source, track_account=True, on_update=recorder)

    assert controller.state == SyncState.UNINITIALIZED
    await controller.start()

    assert controller.state == SyncState.READY
    assert [trade.ticket for trade in controller.trades] == [1, 2]
    assert controller.account.balance == 1000.0
    assert recorder.snapshots == [[1, 2]]
    assert set(fake_source.handlers) == {"trades", "account_stats"}
    assert len(fake_source.handlers["trades"]) == 1


@pytest.mark.asyncio
async def test_start_twice_is_rejected(fake_source) -> None:
    controller = LiveSyncController(fake_source)
    await controller.start()
    with pytest.raises(RuntimeError):
        await controller.start()


@pytest.mark.asyncio
async def test_trades_notification_refetches_everything(fake_source, make_trade) -> None:
    recorder = Recorder()
    controller = LiveSyncController(fake_source, on_update=recorder)
    await controller.start()
    assert controller.trades == []

    fake_source.trades = [make_trade(5.0, 0, ticket=11)]
    fake_source.emit("trades", {"ticket": 11})
    await controller.wait_idle()

    assert len(fake_source.fetch_calls) == 2
    assert [trade.ticket for trade in controller.trades] == [11]
    assert recorder.snapshots[-1] == [11]


@pytest.mark.asyncio
async def test_account_notification_applies_pushed_row(fake_source) -> None:
    fake_source.account = AccountStats(balance=500.0, equity=500.0)
    recorder = Recorder()
    controller = LiveSyncController(fake_source, track_account=True, on_update=recorder)
    await controller.start()

    fake_source.emit("account_stats", {"balance": 750.5, "equity": 740.25, "id": 3})
    await controller.wait_idle()

    assert controller.account == AccountStats(balance=750.5, equity=740.25)
    assert fake_source.account_calls == 1
    assert len(fake_source.fetch_calls) == 1
    assert recorder.accounts[-1].equity == 740.25


@pytest.mark.asyncio
async def test_account_notification_without_row_is_ignored(fake_source) -> None:
    fake_source.account = AccountStats(balance=1.0, equity=2.0)
    controller = LiveSyncController(fake_source, track_account=True)
    await controller.start()

    fake_source.emit("account_stats", None)
    await controller.wait_idle()

    assert controller.account == AccountStats(balance=1.0, equity=2.0)


@pytest.mark.asyncio
async def test_set_bins_does_not_fetch(fake_source) -> None:
    recorder = Recorder()
    controller = LiveSyncController(fake_source, bins=12, on_update=recorder)
    await controller.start()

    await controller.set_bins(6)

    assert controller.bins == 6
    assert len(fake_source.fetch_calls) == 1
    assert len(recorder.snapshots) == 2


@pytest.mark.asyncio
async def test_set_range_fetches_with_bounds(fake_source, make_trade) -> None:
    fake_source.trades = [make_trade(1.0, 0, ticket=1), make_trade(2.0, 60, ticket=2), make_trade(3.0, 120, ticket=3)]
    controller = LiveSyncController(fake_source)
    await controller.start()

    start = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
    end = datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)
    await controller.set_range(start, end)

    assert fake_source.fetch_calls[-1] == (start, end)
    assert [trade.ticket for trade in controller.trades] == [2]

    fake_source.emit("trades")
    await controller.wait_idle()
    assert fake_source.fetch_calls[-1] == (start, end)


@pytest.mark.asyncio
async def test_stop_closes_subscriptions_and_silences_callbacks(fake_source, make_trade) -> None:
    recorder = Recorder()
    controller = LiveSyncController(fake_source, track_account=True, on_update=recorder)
    await controller.start()
    subscriptions = list(fake_source.subscriptions)
    handler = fake_source.handlers["trades"][0]

    await controller.stop()

    assert controller.state == SyncState.CLOSED
    assert all(subscription.closed for subscription in subscriptions)
    assert fake_source.handlers == {"trades": [], "account_stats": []}

    # A late delivery through a handler captured before teardown is ignored.
    fake_source.trades = [make_trade(9.0, 0)]
    handler({"ticket": 99})
    await _settle()

    assert len(fake_source.fetch_calls) == 1
    assert recorder.snapshots == [[]]


@pytest.mark.asyncio
async def test_response_landing_after_stop_is_dropped(fake_source, make_trade) -> None:
    recorder = Recorder()
    controller = LiveSyncController(fake_source, on_update=recorder)
    await controller.start()

    fake_source.hold = True
    refresh = asyncio.create_task(controller.refresh())
    await _settle()
    await controller.stop()
    fake_source.pending[0].set_result([make_trade(1.0, 0)])
    await refresh

    assert controller.trades == []
    assert recorder.snapshots == [[]]


@pytest.mark.asyncio
async def test_stale_response_does_not_overwrite_newer_one(fake_source, make_trade) -> None:
    recorder = Recorder()
    controller = LiveSyncController(fake_source, on_update=recorder)
    await controller.start()

    fake_source.hold = True
    first = asyncio.create_task(controller.refresh())
    await _settle()
    second = asyncio.create_task(controller.refresh())
    await _settle()
    assert len(fake_source.pending) == 2

    fake_source.pending[1].set_result([make_trade(2.0, 0, ticket=2)])
    await second
    assert controller.state == SyncState.READY
    fake_source.pending[0].set_result([make_trade(1.0, 0, ticket=1)])
    await first

    assert [trade.ticket for trade in controller.trades] == [2]
    assert recorder.snapshots[-1] == [2]


@pytest.mark.asyncio
async def test_older_response_applied_first_keeps_loading_state(fake_source, make_trade) -> None:
    controller = LiveSyncController(fake_source)
    await controller.start()

    fake_source.hold = True
    first = asyncio.create_task(controller.refresh())
    await _settle()
    second = asyncio.create_task(controller.refresh())
    await _settle()

    fake_source.pending[0].set_result([make_trade(1.0, 0, ticket=1)])
    await first
    assert controller.state == SyncState.LOADING
    assert [trade.ticket for trade in controller.trades] == [1]

    fake_source.pending[1].set_result([make_trade(2.0, 0, ticket=2)])
    await second
    assert controller.state == SyncState.READY
    assert [trade.ticket for trade in controller.trades] == [2]


@pytest.mark.asyncio
async def test_unconfigured_source_degrades_to_empty(settings) -> None:
    controller = LiveSyncController(UnconfiguredTradeSource(settings), track_account=True)
    await controller.start()

    assert not controller.configured
    assert controller.state == SyncState.READY
    assert controller.trades == []
    assert controller.account == AccountStats(balance=0.0, equity=0.0)
    await controller.stop()


def test_rejects_non_positive_bins(fake_source) -> None:
    with pytest.raises(ValueError):
        LiveSyncController(fake_source, bins=0)
