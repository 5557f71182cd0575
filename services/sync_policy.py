"""Pure decision helpers for automatic synchronisation."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.settings import SYNC
from datetime_utils import elapsed_ms


def should_auto_sync(
    last_sync: Optional[datetime],
    interval_ms: int,
    pending_count: int,
    now: Optional[datetime] = None,
) -> bool:
    """Return True when the interval has elapsed (or never synced) and work is queued."""

    if pending_count <= 0:
        return False
    if last_sync is None:
        return True
    return elapsed_ms(last_sync, now) > interval_ms


def should_flush_now(is_online: bool, pending_count: int) -> bool:
    """Queued work goes out immediately whenever the device is online."""

    return is_online and pending_count > 0


def should_sync_on_reconnect(was_online: bool, is_online: bool, pending_count: int) -> bool:
    return not was_online and should_flush_now(is_online, pending_count)


def auto_sync_period_seconds(interval_ms: int) -> float:
    # check at most once per minute
    return max(float(SYNC.min_check_interval_sec), interval_ms / 10 / 1000)


__all__ = [
    "auto_sync_period_seconds",
    "should_auto_sync",
    "should_flush_now",
    "should_sync_on_reconnect",
]
