"""
Timestamp (de)serialization shared by the Supabase repositories.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from domain.time import require_utc_timestamp


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    # Naive timestamps from the backend are interpreted as UTC
    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


__all__ = ["to_iso_utc", "parse_utc_datetime", "parse_optional_datetime"]
