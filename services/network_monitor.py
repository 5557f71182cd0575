"""Connectivity and app-lifecycle signals consumed by the sync scheduler."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

import requests

from core.settings import API, NETWORK
from datetime_utils import utc_now


logger = logging.getLogger("smartfarmer.sync.network")

QUALITY_POOR = "poor"
QUALITY_FAIR = "fair"
QUALITY_EXCELLENT = "excellent"
QUALITY_UNKNOWN = "unknown"

APP_STATE_ACTIVE = "active"
APP_STATE_BACKGROUND = "background"
APP_STATE_INACTIVE = "inactive"


def classify_quality(transport: Optional[str], is_internet_reachable: bool) -> str:
    if not is_internet_reachable:
        return QUALITY_POOR
    if transport == "none":
        return QUALITY_POOR
    if transport == "cellular":
        return QUALITY_FAIR
    # NetInfo reports wired links as "ethernet"
    if transport in ("wifi", "ethernet", "wired"):
        return QUALITY_EXCELLENT
    return QUALITY_UNKNOWN


@dataclass(frozen=True)
class NetworkState:
    is_connected: bool = True
    is_internet_reachable: bool = True
    transport: Optional[str] = None
    quality: str = QUALITY_UNKNOWN
    last_checked: datetime = field(default_factory=utc_now)

    @property
    def online(self) -> bool:
        return self.is_connected and self.is_internet_reachable


class HttpReachabilityProbe:
    """Reports the backend as reachable when its health endpoint answers."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        transport: str = NETWORK.assumed_transport,
        timeout: float = API.probe_timeout_sec,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url or f"{API.base_url}{API.health_path}"
        self.transport = transport
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self) -> NetworkState:
        try:
            self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.ConnectionError:
            return NetworkState(
                is_connected=False,
                is_internet_reachable=False,
                transport="none",
                quality=QUALITY_POOR,
            )
        except requests.exceptions.RequestException as exc:
            logger.info("Reachability probe failed: %s", exc)
            return NetworkState(
                is_connected=True,
                is_internet_reachable=False,
                transport=self.transport,
                quality=QUALITY_POOR,
            )
        # any HTTP answer means the server is reachable
        return NetworkState(
            is_connected=True,
            is_internet_reachable=True,
            transport=self.transport,
            quality=classify_quality(self.transport, True),
        )


class NetworkMonitor:
    def __init__(self, probe: Optional[Callable[[], NetworkState]] = None):
        self.probe = probe
        self.state = NetworkState()
        self.app_state = APP_STATE_ACTIVE
        self._listeners = {
            "connectivity": set(),
            "foreground": set(),
        }

    # ------------------------------------------------------------------
    # subscriptions
    def _subscribe(self, event: str, listener) -> Callable[[], None]:
        self._listeners[event].add(listener)

        def _unsubscribe() -> None:
            self._listeners[event].discard(listener)

        return _unsubscribe

    def on_connectivity_change(self, listener: Callable[[NetworkState], None]) -> Callable[[], None]:
        return self._subscribe("connectivity", listener)

    def on_app_foreground(self, listener: Callable[[], None]) -> Callable[[], None]:
        return self._subscribe("foreground", listener)

    def _emit(self, event: str, *args) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                listener(*args)
            except Exception:
                logger.exception("Network listener for %s failed", event)

    # ------------------------------------------------------------------
    # platform inputs
    def update(
        self,
        *,
        is_connected: bool,
        is_internet_reachable: Optional[bool] = None,
        transport: Optional[str] = None,
    ) -> NetworkState:
        reachable = is_connected if is_internet_reachable is None else is_internet_reachable
        return self._apply(
            NetworkState(
                is_connected=is_connected,
                is_internet_reachable=reachable,
                transport=transport,
                quality=classify_quality(transport, reachable),
            )
        )

    def _apply(self, new_state: NetworkState) -> NetworkState:
        previous = self.state
        self.state = new_state
        changed = (
            previous.is_connected != new_state.is_connected
            or previous.is_internet_reachable != new_state.is_internet_reachable
            or previous.transport != new_state.transport
        )
        if changed:
            logger.info(
                "Connectivity changed: %s (%s)",
                "online" if new_state.online else "offline",
                new_state.quality,
            )
            self._emit("connectivity", new_state)
        return new_state

    def check_connection(self) -> bool:
        if self.probe is None:
            self.state = replace(self.state, last_checked=utc_now())
            return self.state.online
        try:
            snapshot = self.probe()
        except Exception as exc:
            logger.error("Error checking network connection: %s", exc)
            return False
        self._apply(snapshot)
        return snapshot.online

    def set_app_state(self, app_state: str) -> None:
        previous = self.app_state
        self.app_state = app_state
        if app_state == APP_STATE_ACTIVE and previous != APP_STATE_ACTIVE:
            self.check_connection()
            self._emit("foreground")

    # ------------------------------------------------------------------
    @property
    def is_connected(self) -> bool:
        return self.state.is_connected

    @property
    def is_internet_reachable(self) -> bool:
        return self.state.is_internet_reachable

    @property
    def quality(self) -> str:
        return self.state.quality


__all__ = [
    "APP_STATE_ACTIVE",
    "APP_STATE_BACKGROUND",
    "APP_STATE_INACTIVE",
    "HttpReachabilityProbe",
    "NetworkMonitor",
    "NetworkState",
    "QUALITY_EXCELLENT",
    "QUALITY_FAIR",
    "QUALITY_POOR",
    "QUALITY_UNKNOWN",
    "classify_quality",
]
