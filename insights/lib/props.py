"""
Typed accessors for the analytics event property bag.

`analytics_events.props` is free-form JSON written by the site's tracking
code, so nothing about its shape is guaranteed. Every read goes through
these helpers: a missing key, a non-dict bag or a value of the wrong type
returns the default instead of raising.

Usage:
    from insights.lib.props import get_string, get_number, get_boolean

    slug = get_string(event.props, "post_slug")
    seconds = get_number(event.props, "read_time_sec")
"""
from __future__ import annotations

import math
from typing import Any


def is_object(value: Any) -> bool:
    """True for a JSON object (dict), False for arrays, scalars and None."""
    return isinstance(value, dict)


def get_string(props: Any, key: str, default: str = "") -> str:
    """Return props[key] if it is a string, else default."""
    if not is_object(props):
        return default
    value = props.get(key)
    return value if isinstance(value, str) else default


def get_number(props: Any, key: str, default: float = 0) -> float:
    """Return props[key] if it is an int or float, else default.

    Booleans are rejected even though Python treats them as ints, and so
    are NaN and infinities.
    """
    if not is_object(props):
        return default
    value = props.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    return value


def get_boolean(props: Any, key: str, default: bool = False) -> bool:
    """Return props[key] if it is a bool, else default."""
    if not is_object(props):
        return default
    value = props.get(key)
    return value if isinstance(value, bool) else default
