from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_epoch_ms(dt: Optional[datetime]) -> Optional[int]:
    """Serialize a datetime as integer milliseconds since the Unix epoch."""

    value = ensure_utc(dt)
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def from_epoch_ms(value) -> Optional[datetime]:
    """Parse epoch milliseconds; zero, empty and garbage values mean "unset"."""

    if value is None:
        return None
    try:
        millis = int(str(value).strip())
    except ValueError:
        return None
    if millis <= 0:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=UTC)


def elapsed_ms(since: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    if since is None:
        return None
    current = ensure_utc(now) if now else utc_now()
    return int((current - ensure_utc(since)).total_seconds() * 1000)


__all__ = [
    "UTC",
    "elapsed_ms",
    "ensure_utc",
    "from_epoch_ms",
    "to_epoch_ms",
    "utc_now",
]
