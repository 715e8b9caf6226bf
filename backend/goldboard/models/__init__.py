from goldboard.models.enums import SyncState, TradeAction

__all__ = [
    "SyncState",
    "TradeAction",
]
