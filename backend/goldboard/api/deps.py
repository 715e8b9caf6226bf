from __future__ import annotations

from fastapi.requests import HTTPConnection

from goldboard.core.config import Settings, get_settings
from goldboard.db.source import TradeSource


def get_source(connection: HTTPConnection) -> TradeSource:
    return connection.app.state.trade_source


def get_app_settings() -> Settings:
    return get_settings()
