"""
Domain clock helpers.

Every timestamp the domain stores (seller assignment times, quotation
creation, expiry and status stamps) is a timezone-aware UTC datetime.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

_ZERO = timedelta(0)


def require_utc_timestamp(name: str, value: datetime) -> None:
    """Raise ValueError unless `value` is aware with a zero UTC offset."""

    offset = value.utcoffset() if value.tzinfo is not None else None
    if offset is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if offset != _ZERO:
        raise ValueError(f"{name} must be a UTC timestamp (offset 0), got {offset}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


__all__ = ["require_utc_timestamp", "utc_now"]
