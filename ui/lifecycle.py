# ui/lifecycle.py
from __future__ import annotations

import asyncio
import flet as ft

from services.network_monitor import (
    APP_STATE_ACTIVE,
    APP_STATE_BACKGROUND,
    APP_STATE_INACTIVE,
    NetworkMonitor,
)


_STATE_MAP = {
    "show": APP_STATE_ACTIVE,
    "resume": APP_STATE_ACTIVE,
    "restart": APP_STATE_ACTIVE,
    "inactive": APP_STATE_INACTIVE,
    "hide": APP_STATE_BACKGROUND,
    "pause": APP_STATE_BACKGROUND,
    "detach": APP_STATE_BACKGROUND,
}


def map_lifecycle_state(state) -> str | None:
    """Translate a flet ``AppLifecycleState`` into the monitor's app states."""

    value = getattr(state, "value", state)
    return _STATE_MAP.get(str(value).lower())


def bind_lifecycle(page: ft.Page, monitor: NetworkMonitor) -> None:
    def _on_change(e):
        app_state = map_lifecycle_state(e.state)
        if app_state:
            monitor.set_app_state(app_state)

    page.on_app_lifecycle_state_change = _on_change


async def watch_connectivity(monitor: NetworkMonitor, interval_sec: float) -> None:
    """Poll the reachability probe; desktop platforms push no network events."""

    while True:
        await asyncio.to_thread(monitor.check_connection)
        await asyncio.sleep(interval_sec)
