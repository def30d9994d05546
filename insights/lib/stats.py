"""
Numeric and grouping helpers shared by the analyzers.
All helpers are zero-safe: they return 0 instead of raising or producing NaN.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

SECONDS_PER_DAY = 86400.0


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Zero-safe division."""
    if denominator == 0:
        return default
    return numerator / denominator


def percentage(part: float, whole: float) -> float:
    """part / whole * 100, or 0 when whole is 0."""
    return safe_div(part, whole) * 100


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    return safe_div(sum(values), len(values))


def upper_median(values: Iterable[float]) -> float:
    """Element at index floor(n/2) of the ascending sort, 0 when empty.

    For even-length input this is the upper of the two middle values, not
    their average: upper_median([10, 20]) == 20.
    """
    ordered = sorted(values)
    if not ordered:
        return 0
    return ordered[len(ordered) // 2]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def days_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[float]:
    """Signed number of days from start to end, or None."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / SECONDS_PER_DAY


def whole_days_between(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    """Floor of days_between."""
    days = days_between(start, end)
    if days is None:
        return None
    return math.floor(days)


def now_utc() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def stable_rank(items: List[dict], key: str, limit: Optional[int] = None) -> List[dict]:
    """Sort dicts by items[key] descending, keeping input order on ties."""
    ranked = sorted(items, key=lambda item: item[key], reverse=True)
    return ranked[:limit] if limit is not None else ranked
