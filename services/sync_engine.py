from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from core.settings import SYNC, SYNC_LOG_PATH
from datetime_utils import utc_now
from services.errors import StorageError
from services.network_monitor import QUALITY_EXCELLENT, NetworkMonitor
from services.sync_queue import QueueItem, SyncQueueStore
from services.sync_settings_store import SyncSettingsStore


SYNC_STATUS_IDLE = "idle"
SYNC_STATUS_SYNCING = "syncing"
SYNC_STATUS_SUCCESS = "success"
SYNC_STATUS_ERROR = "error"

REASON_NOT_READY = "not_ready"
REASON_NOT_AUTHENTICATED = "not_authenticated"
REASON_WIFI_REQUIRED = "wifi_required"
REASON_NO_CONNECTION = "no_connection"


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("smartfarmer.sync")
    if not logger.handlers:
        SYNC_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


@dataclass
class ApplyResult:
    success: bool
    error: Optional[str] = None


RemoteApply = Callable[
    [str, str, str, Any],
    Union[ApplyResult, bool, Mapping[str, Any], Awaitable[Any]],
]


@dataclass
class SyncRun:
    success_count: int = 0
    error_count: int = 0
    message: str = ""


@dataclass(frozen=True)
class SyncStatusSnapshot:
    state: str
    last_sync_timestamp: Optional[datetime]
    pending_count: int
    details: Dict[str, Any] = field(default_factory=dict)
    in_progress: bool = False
    online: bool = False


def _interpret_result(result: Any) -> ApplyResult:
    if isinstance(result, ApplyResult):
        return result
    if isinstance(result, bool):
        return ApplyResult(result)
    if isinstance(result, Mapping):
        return ApplyResult(bool(result.get("success")), result.get("error"))
    success = getattr(result, "success", None)
    if success is None:
        return ApplyResult(False, f"unexpected apply result: {result!r}")
    return ApplyResult(bool(success), getattr(result, "error", None))


class SyncEngine:
    """Drains the local queue against the backend, one run at a time."""

    def __init__(
        self,
        queue: SyncQueueStore,
        settings_store: SyncSettingsStore,
        network: NetworkMonitor,
        remote_apply: RemoteApply,
        *,
        is_authenticated: Callable[[], bool] = lambda: True,
        batch_limit: int = SYNC.batch_limit,
        retention: Optional[timedelta] = timedelta(days=SYNC.retention_days),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.queue = queue
        self.settings_store = settings_store
        self.network = network
        self.remote_apply = remote_apply
        self.is_authenticated = is_authenticated
        self.batch_limit = batch_limit
        self.retention = retention
        self.clock = clock
        self.logger = _ensure_logger()

        self.ready = False
        self.in_progress = False
        self.state = SYNC_STATUS_IDLE
        self.details: Dict[str, Any] = {}
        self.last_sync: Optional[datetime] = None
        self.sync_interval_ms = SYNC.default_interval_ms
        self.wifi_only = False
        self.pending_count = 0
        self._listeners = set()
        self._unsubscribe_network: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Observable status
    def subscribe(self, listener: Callable[[SyncStatusSnapshot], None]) -> Callable[[], None]:
        self._listeners.add(listener)

        def _unsubscribe() -> None:
            self._listeners.discard(listener)

        return _unsubscribe

    def snapshot(self) -> SyncStatusSnapshot:
        return SyncStatusSnapshot(
            state=self.state,
            last_sync_timestamp=self.last_sync,
            pending_count=self.pending_count,
            details=dict(self.details),
            in_progress=self.in_progress,
            online=self.network.state.online,
        )

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Sync status listener failed")

    def _set_status(self, state: Optional[str] = None, **details: Any) -> None:
        if state is not None:
            self.state = state
        self.details = details
        self._notify()

    # ------------------------------------------------------------------
    # Lifecycle
    def load(self) -> None:
        """Read persisted settings and resync the pending counter from the store."""

        settings = self.settings_store.load()
        self.last_sync = settings.last_sync
        self.sync_interval_ms = settings.sync_interval_ms
        self.wifi_only = settings.wifi_only
        self.pending_count = self.queue.count_pending()
        self.ready = True
        if self._unsubscribe_network is None:
            self._unsubscribe_network = self.network.on_connectivity_change(
                self._on_connectivity_change
            )
        self.logger.info(
            "Sync engine ready: %s pending, interval %sms, wifi only %s",
            self.pending_count,
            self.sync_interval_ms,
            self.wifi_only,
        )
        self._notify()

    def _on_connectivity_change(self, _state) -> None:
        self._notify()

    def refresh_pending_count(self) -> int:
        if not self.ready:
            return self.pending_count
        self.pending_count = self.queue.count_pending()
        self._notify()
        return self.pending_count

    def note_enqueued(self) -> None:
        self.pending_count += 1
        self._notify()

    def apply_settings(
        self,
        *,
        sync_interval_ms: Optional[int] = None,
        wifi_only: Optional[bool] = None,
    ) -> None:
        if sync_interval_ms is not None:
            self.sync_interval_ms = sync_interval_ms
        if wifi_only is not None:
            self.wifi_only = wifi_only
        self._notify()

    def reset_status(self) -> None:
        if self.in_progress:
            return
        self._set_status(SYNC_STATUS_IDLE)

    # ------------------------------------------------------------------
    # Sync run
    def _precondition_failure(self) -> Optional[tuple[str, str]]:
        if not self.ready:
            return REASON_NOT_READY, "Local database is not ready"
        if not self.is_authenticated():
            return REASON_NOT_AUTHENTICATED, "Sign in to synchronize"
        if self.wifi_only and self.network.quality != QUALITY_EXCELLENT:
            return REASON_WIFI_REQUIRED, "Sync requires WiFi connection"
        if not self.network.is_connected or not self.network.is_internet_reachable:
            return REASON_NO_CONNECTION, "No internet connection"
        return None

    async def _apply_item(self, item: QueueItem) -> ApplyResult:
        try:
            result = self.remote_apply(item.table_name, item.record_id, item.operation, item.payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self.logger.warning("Error syncing item %s: %s", item.id, exc)
            return ApplyResult(False, str(exc) or exc.__class__.__name__)
        outcome = _interpret_result(result)
        if not outcome.success:
            self.logger.warning(
                "Remote rejected %s %s/%s: %s",
                item.operation,
                item.table_name,
                item.record_id,
                outcome.error,
            )
        return outcome

    def _record_sync_time(self) -> None:
        self.last_sync = self.settings_store.set_last_sync(self.clock())

    def _recount_pending(self) -> None:
        try:
            self.pending_count = self.queue.count_pending()
        except StorageError as exc:
            self.logger.warning("Could not recount pending items: %s", exc)

    def _purge_synced(self) -> None:
        if self.retention is None:
            return
        try:
            self.queue.purge_synced(self.retention)
        except StorageError as exc:
            self.logger.warning("Could not purge synced items: %s", exc)

    async def sync_now(self) -> bool:
        if self.in_progress:
            self.logger.debug("Sync already in progress")
            return False
        failure = self._precondition_failure()
        if failure:
            reason, message = failure
            self.logger.info("Sync aborted: %s", message)
            self._set_status(message=message, error=reason)
            return False

        self.in_progress = True
        try:
            self._set_status(SYNC_STATUS_SYNCING, message="Starting synchronization...")
            items = self.queue.list_pending(self.batch_limit)

            if not items:
                self._record_sync_time()
                self._recount_pending()
                self._set_status(
                    SYNC_STATUS_SUCCESS, message="Sync completed successfully (no changes)"
                )
                return True

            run = SyncRun()
            total = len(items)
            self.logger.info("Sync started: %s items", total)
            for index, item in enumerate(items, start=1):
                self._set_status(message=f"Syncing item {index} of {total}")
                outcome = await self._apply_item(item)
                if outcome.success:
                    self.queue.mark_synced(item.id)
                    run.success_count += 1
                else:
                    self.queue.mark_attempt_failed(item.id, outcome.error)
                    run.error_count += 1

            self._record_sync_time()
            self._recount_pending()
            self._purge_synced()

            if run.error_count > 0:
                run.message = (
                    f"Sync completed with {run.error_count} errors. "
                    f"{run.success_count} items synced successfully."
                )
                self.logger.warning(run.message)
                self._set_status(
                    SYNC_STATUS_ERROR,
                    message=run.message,
                    success_count=run.success_count,
                    error_count=run.error_count,
                )
            else:
                run.message = "Sync completed successfully"
                self.logger.info("%s: %s items", run.message, run.success_count)
                self._set_status(
                    SYNC_STATUS_SUCCESS, message=run.message, success_count=run.success_count
                )
            return run.error_count == 0
        except Exception as exc:
            self.logger.error("Sync error: %s", exc)
            self._set_status(SYNC_STATUS_ERROR, message="Sync failed", error=str(exc))
            return False
        finally:
            self.in_progress = False
            self._recount_pending()
            self._notify()


__all__ = [
    "ApplyResult",
    "REASON_NO_CONNECTION",
    "REASON_NOT_AUTHENTICATED",
    "REASON_NOT_READY",
    "REASON_WIFI_REQUIRED",
    "RemoteApply",
    "SYNC_STATUS_ERROR",
    "SYNC_STATUS_IDLE",
    "SYNC_STATUS_SUCCESS",
    "SYNC_STATUS_SYNCING",
    "SyncEngine",
    "SyncRun",
    "SyncStatusSnapshot",
]
