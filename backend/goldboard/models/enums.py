from __future__ import annotations

from enum import Enum as PyEnum


class TradeAction(str, PyEnum):
    BUY = "BUY"
    SELL = "SELL"


class SyncState(str, PyEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    CLOSED = "closed"
