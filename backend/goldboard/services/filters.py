from __future__ import annotations

from datetime import date, datetime, time
from typing import Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class FilterValidationError(Exception):
    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        if field is not None:
            super().__init__(f"{field}: {message}")
        else:
            super().__init__(message)


def _zone(timezone: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise FilterValidationError(f"Unknown timezone {timezone}") from exc


def _to_utc(dt: datetime, timezone: str) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=_zone(timezone))
    return dt.astimezone(ZoneInfo("UTC"))


def parse_bound(value: str | date | datetime | None, timezone: str, *, end_of_day: bool = False, field: str = "date") -> datetime | None:
    """
    Turn a user-supplied bound into an aware UTC datetime.

    Empty values mean unbounded. A bare date (``YYYY-MM-DD``) expands to the
    start of that day, or to its last microsecond when ``end_of_day`` is set so
    the upper bound includes the whole day.
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            if len(text) == 10:
                value = date.fromisoformat(text)
            else:
                value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as exc:
            raise FilterValidationError(f"Invalid date value {text!r}", field) from exc

    if isinstance(value, datetime):
        return _to_utc(value, timezone)

    day_time = time.max if end_of_day else time.min
    return _to_utc(datetime.combine(value, day_time), timezone)


def parse_range(
    start: str | date | datetime | None,
    end: str | date | datetime | None,
    timezone: str,
) -> tuple[datetime | None, datetime | None]:
    start_utc = parse_bound(start, timezone, field="start")
    end_utc = parse_bound(end, timezone, end_of_day=True, field="end")
    if start_utc is not None and end_utc is not None and start_utc > end_utc:
        raise FilterValidationError("start must not be after end")
    return start_utc, end_utc


def validate_bins(bins: int | str | None, choices: Sequence[int], default: int) -> int:
    if bins is None or bins == "":
        return default
    try:
        value = int(bins)
    except (TypeError, ValueError) as exc:
        raise FilterValidationError("Bin count must be a number", "bins") from exc
    if value not in choices:
        allowed = ", ".join(str(choice) for choice in choices)
        raise FilterValidationError(f"Bin count must be one of {allowed}", "bins")
    return value
