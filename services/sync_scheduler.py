from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional

from services.network_monitor import NetworkMonitor, NetworkState
from services.sync_engine import SyncEngine, SyncStatusSnapshot
from services.sync_policy import (
    auto_sync_period_seconds,
    should_auto_sync,
    should_flush_now,
    should_sync_on_reconnect,
)


logger = logging.getLogger("smartfarmer.sync.scheduler")

REASON_TIMER = "timer"
REASON_FOREGROUND = "foreground"
REASON_RECONNECTED = "reconnected"
REASON_ENQUEUED = "enqueued"
REASON_STATUS = "status"


class SyncScheduler:
    """Funnels timer ticks, network and lifecycle events into one dispatcher."""

    def __init__(self, engine: SyncEngine, monitor: NetworkMonitor):
        self.engine = engine
        self.monitor = monitor
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._pending_tasks: set = set()
        self._unsubscribers: List[Callable[[], None]] = []
        self._was_online = monitor.state.online
        self._last_seen = self._watch_key(engine.snapshot())

    # ------------------------------------------------------------------
    def _watch_key(self, snapshot: SyncStatusSnapshot):
        return (snapshot.pending_count, snapshot.last_sync_timestamp, self.engine.sync_interval_ms)

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    def start(self) -> None:
        """Subscribe to event sources and start the periodic check; needs a running loop."""

        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._was_online = self.monitor.state.online
        self._unsubscribers = [
            self.monitor.on_connectivity_change(self._on_connectivity_change),
            self.monitor.on_app_foreground(self._on_foreground),
            self.engine.subscribe(self._on_status),
        ]
        self._timer_task = self._loop.create_task(self._timer_loop())
        logger.info("Auto sync scheduler started")

    async def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        tasks = [t for t in [self._timer_task, *self._pending_tasks] if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timer_task = None
        self._pending_tasks.clear()
        logger.info("Auto sync scheduler stopped")

    # ------------------------------------------------------------------
    # Dispatcher
    async def maybe_sync(self, reason: str = REASON_TIMER, *, flush: bool = False) -> bool:
        """Run a sync when it is due; ``flush`` skips the interval check."""

        engine = self.engine
        if not engine.ready or engine.in_progress:
            return False
        if flush:
            due = should_flush_now(self.monitor.state.online, engine.pending_count)
        else:
            due = should_auto_sync(engine.last_sync, engine.sync_interval_ms, engine.pending_count)
        if not due:
            return False
        logger.info("Auto sync triggered by %s", reason)
        return await engine.sync_now()

    def request(self, reason: str, *, flush: bool = False) -> None:
        """Schedule a dispatcher check from any thread or callback."""

        loop = self._loop
        if loop is None or loop.is_closed():
            return
        coro = self.maybe_sync(reason, flush=flush)
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is loop:
            task = loop.create_task(coro)
            self._pending_tasks.add(task)
            task.add_done_callback(self._pending_tasks.discard)
        else:
            asyncio.run_coroutine_threadsafe(coro, loop)

    async def _timer_loop(self) -> None:
        while True:
            try:
                await self.maybe_sync(REASON_TIMER)
            except Exception:
                logger.exception("Auto sync check failed")
            await asyncio.sleep(auto_sync_period_seconds(self.engine.sync_interval_ms))

    # ------------------------------------------------------------------
    # Event sources
    def _on_connectivity_change(self, state: NetworkState) -> None:
        was_online = self._was_online
        self._was_online = state.online
        if should_sync_on_reconnect(was_online, state.online, self.engine.pending_count):
            self.request(REASON_RECONNECTED, flush=True)

    def on_enqueued(self) -> None:
        if self.monitor.state.online:
            self.request(REASON_ENQUEUED, flush=True)

    def _on_foreground(self) -> None:
        self.engine.refresh_pending_count()
        self.request(REASON_FOREGROUND)

    def _on_status(self, snapshot: SyncStatusSnapshot) -> None:
        key = self._watch_key(snapshot)
        if key == self._last_seen:
            return
        self._last_seen = key
        if not snapshot.in_progress:
            self.request(REASON_STATUS)


__all__ = [
    "REASON_ENQUEUED",
    "REASON_FOREGROUND",
    "REASON_RECONNECTED",
    "REASON_STATUS",
    "REASON_TIMER",
    "SyncScheduler",
]
