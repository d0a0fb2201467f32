"""Common time utilities."""

from __future__ import annotations

import datetime as dt
import typing as typ

type Clock = typ.Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime, *, field: str) -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def parse_github_datetime(value: str) -> dt.datetime:
    """Parse GitHub's ``2024-07-14T10:00:00Z`` timestamps into aware UTC."""
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    return ensure_utc(parsed, field="GitHub timestamp")
