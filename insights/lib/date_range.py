"""
Range selector for dashboard time windows.

Usage:
    from insights.lib.date_range import resolve_range, trailing_window

    window = resolve_range("7d")           # DateRange(start, end)
    funnel_window = trailing_window(7)     # fixed window, ignores the dashboard range
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from insights.lib.errors import InvalidRangeTokenError
from insights.lib.stats import as_utc, now_utc

# Lower bound used for the "all" token
ALL_TIME_FLOOR = datetime(2020, 1, 1, tzinfo=timezone.utc)

RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}
RANGE_TOKENS = ("today", "7d", "30d", "90d", "all")
PIPELINE_TIMEFRAMES = ("30d", "90d", "all")


class DateRange(NamedTuple):
    start: datetime
    end: datetime

    def contains(self, ts: Optional[datetime]) -> bool:
        """Inclusive on both ends; None is never contained."""
        if ts is None:
            return False
        ts = as_utc(ts)
        return self.start <= ts <= self.end

    def as_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def resolve_range(token: str, now: Optional[datetime] = None) -> DateRange:
    """
    Resolve a symbolic range token into a concrete window ending at now.

    Args:
        token: One of "today", "7d", "30d", "90d", "all".
        now: Reference time (default: current UTC time).

    Returns:
        DateRange(start, end).

    Raises:
        InvalidRangeTokenError: If the token is not recognised.
    """
    end = as_utc(now) if now is not None else now_utc()

    if token == "today":
        start = end.replace(hour=0, minute=0, second=0, microsecond=0)
    elif token == "all":
        start = ALL_TIME_FLOOR
    elif token in RANGE_DAYS:
        start = end - timedelta(days=RANGE_DAYS[token])
    else:
        raise InvalidRangeTokenError(token, RANGE_TOKENS)

    return DateRange(start, end)


def resolve_timeframe(token: str, now: Optional[datetime] = None) -> DateRange:
    """Like resolve_range, restricted to the lead pipeline timeframes."""
    if token not in PIPELINE_TIMEFRAMES:
        raise InvalidRangeTokenError(token, PIPELINE_TIMEFRAMES)
    return resolve_range(token, now)


def trailing_window(days: int, now: Optional[datetime] = None) -> DateRange:
    """The last `days` days up to now."""
    end = as_utc(now) if now is not None else now_utc()
    return DateRange(end - timedelta(days=days), end)
