from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator

from goldboard.models.enums import TradeAction

logger = logging.getLogger(__name__)


class Trade(BaseModel):
    """
    One row of the trades table.

    Only ``ticket`` and ``open_price`` are required. A missing or unreadable
    ``profit``/``close_price`` becomes None so the row still aggregates (as
    zero profit), and ``action`` keeps whatever the store sent, upper-cased.
    """

    model_config = ConfigDict(from_attributes=True, extra="ignore")
    ticket: int
    symbol: str | None = None
    action: str = ""
    open_price: float
    close_price: float | None = None
    profit: float | None = None  # None until the store reports one
    open_time: datetime | None = None
    close_time: datetime | None = None
    indicators: Any = None

    @field_validator("action", mode="before")
    @classmethod
    def _upper_action(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip().upper()

    @field_validator("profit", "close_price", mode="before")
    @classmethod
    def _lenient_number(cls, value: Any, info: ValidationInfo) -> float | None:
        if value is None:
            return None
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring unreadable %s %r", info.field_name, value)
            return None
        if not math.isfinite(number):
            logger.warning("Ignoring non-finite %s %r", info.field_name, value)
            return None
        return number

    @property
    def side(self) -> TradeAction | None:
        try:
            return TradeAction(self.action)
        except ValueError:
            return None

    @property
    def is_active(self) -> bool:
        return self.close_time is None


class AccountStats(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")
    balance: float = 0.0
    equity: float = 0.0
