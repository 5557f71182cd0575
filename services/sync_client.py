"""Application-facing entry point of the offline sync layer."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from services.errors import NotReadyError
from services.sync_engine import SyncEngine, SyncStatusSnapshot
from services.sync_scheduler import SyncScheduler


logger = logging.getLogger("smartfarmer.sync.client")


class SyncClient:
    """Stable surface used by screens and services that mutate data offline.

    Built once at startup and handed to whoever needs to queue mutations or
    show the sync indicator.
    """

    def __init__(self, engine: SyncEngine, scheduler: Optional[SyncScheduler] = None):
        self.engine = engine
        self.scheduler = scheduler

    def start(self) -> None:
        """Load persisted settings and counters, then start the scheduler.

        With a scheduler attached this must be called from inside the event loop.
        """

        self.engine.load()
        if self.scheduler is not None:
            self.scheduler.start()

    async def stop(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()

    # ------------------------------------------------------------------
    def enqueue(self, table_name: str, record_id, operation: str, payload: Any = None) -> int:
        if not self.engine.ready:
            raise NotReadyError("sync client has not been started")
        item_id = self.engine.queue.enqueue(table_name, record_id, operation, payload)
        self.engine.note_enqueued()
        if self.scheduler is not None:
            self.scheduler.on_enqueued()
        logger.debug("Enqueued %s %s/%s", operation, table_name, record_id)
        return item_id

    def status(self) -> SyncStatusSnapshot:
        return self.engine.snapshot()

    async def trigger_sync(self) -> bool:
        return await self.engine.sync_now()

    def reset_status(self) -> None:
        self.engine.reset_status()

    def refresh_pending_count(self) -> int:
        return self.engine.refresh_pending_count()

    def subscribe(self, listener: Callable[[SyncStatusSnapshot], None]) -> Callable[[], None]:
        return self.engine.subscribe(listener)

    def update_settings(
        self,
        *,
        sync_interval_ms: Optional[int] = None,
        wifi_only: Optional[bool] = None,
    ) -> None:
        store = self.engine.settings_store
        if sync_interval_ms is not None:
            store.set_sync_interval(sync_interval_ms)
        if wifi_only is not None:
            store.set_wifi_only(wifi_only)
        self.engine.apply_settings(sync_interval_ms=sync_interval_ms, wifi_only=wifi_only)

    def queue_stats(self) -> Dict[str, int]:
        """Item counts per queue status."""

        return self.engine.queue.stats()

    def retry_failed(self) -> int:
        """Give dead-lettered items another round of attempts."""

        moved = self.engine.queue.retry_failed()
        if moved:
            self.engine.refresh_pending_count()
        return moved


__all__ = ["SyncClient"]
