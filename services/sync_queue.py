from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.settings import SYNC
from datetime_utils import ensure_utc, utc_now
from models.sync_queue_item import (
    OPERATIONS,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SYNCED,
    SyncQueueItem,
)
from services.errors import StorageError
from storage.db import get_session


logger = logging.getLogger("smartfarmer.sync.queue")


@dataclass
class QueueItem:
    id: int
    table_name: str
    record_id: str
    operation: str
    payload: Any
    status: str
    attempts: int
    last_error: Optional[str]
    created_at: datetime
    updated_at: datetime


def _decode_payload(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _to_item(row: SyncQueueItem) -> QueueItem:
    return QueueItem(
        id=row.id,
        table_name=row.table_name,
        record_id=row.record_id,
        operation=row.operation,
        payload=_decode_payload(row.data),
        status=row.status,
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class SyncQueueStore:
    """Durable queue of local mutations stored in the ``sync_queue`` table."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        *,
        max_attempts: Optional[int] = SYNC.max_attempts,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max_attempts

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Sync queue storage failure: %s", exc)
            raise StorageError(str(exc)) from exc

    def enqueue(self, table_name: str, record_id, operation: str, payload=None) -> int:
        if operation not in OPERATIONS:
            raise ValueError(f"Unsupported operation: {operation}")
        if not table_name:
            raise ValueError("table_name is required")
        now = utc_now()
        record = SyncQueueItem(
            table_name=table_name,
            record_id=str(record_id),
            operation=operation,
            data=json.dumps(payload, ensure_ascii=False) if payload is not None else None,
            status=STATUS_PENDING,
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            logger.debug("Queued %s %s/%s as #%s", operation, table_name, record_id, record.id)
            return int(record.id)

    def get(self, item_id: int) -> Optional[QueueItem]:
        with self._session() as session:
            row = session.get(SyncQueueItem, item_id)
            return _to_item(row) if row else None

    def list_pending(self, limit: int = SYNC.batch_limit) -> List[QueueItem]:
        with self._session() as session:
            stmt = (
                select(SyncQueueItem)
                .where(SyncQueueItem.status == STATUS_PENDING)
                .order_by(SyncQueueItem.created_at.asc(), SyncQueueItem.id.asc())
                .limit(limit)
            )
            return [_to_item(row) for row in session.exec(stmt)]

    def mark_synced(self, item_id: int) -> None:
        with self._session() as session:
            record = session.get(SyncQueueItem, item_id)
            if not record:
                return
            record.status = STATUS_SYNCED
            record.last_error = None
            record.updated_at = utc_now()
            session.add(record)
            session.commit()

    def mark_attempt_failed(self, item_id: int, error: Optional[str] = None) -> None:
        with self._session() as session:
            record = session.get(SyncQueueItem, item_id)
            if not record:
                return
            record.attempts += 1
            record.updated_at = utc_now()
            if error:
                record.last_error = error[: SYNC.error_max_length]
            if self.max_attempts is not None and record.attempts >= self.max_attempts:
                record.status = STATUS_FAILED
                logger.warning(
                    "Queue item #%s gave up after %s attempts", record.id, record.attempts
                )
            session.add(record)
            session.commit()

    def count_pending(self) -> int:
        with self._session() as session:
            stmt = select(func.count()).select_from(SyncQueueItem).where(
                SyncQueueItem.status == STATUS_PENDING
            )
            return int(session.exec(stmt).one())

    def stats(self) -> Dict[str, int]:
        counts = {STATUS_PENDING: 0, STATUS_SYNCED: 0, STATUS_FAILED: 0}
        with self._session() as session:
            stmt = select(SyncQueueItem.status, func.count()).group_by(SyncQueueItem.status)
            for status, count in session.exec(stmt):
                counts[status] = int(count)
        return counts

    def retry_failed(self) -> int:
        """Move dead-lettered items back to ``pending`` with a fresh attempt budget."""

        now = utc_now()
        with self._session() as session:
            rows = list(
                session.exec(select(SyncQueueItem).where(SyncQueueItem.status == STATUS_FAILED))
            )
            for record in rows:
                record.status = STATUS_PENDING
                record.attempts = 0
                record.updated_at = now
                session.add(record)
            session.commit()
        return len(rows)

    def purge_synced(self, older_than: Optional[timedelta] = None) -> int:
        window = older_than if older_than is not None else timedelta(days=SYNC.retention_days)
        cutoff = utc_now() - window
        with self._session() as session:
            stmt = (
                select(SyncQueueItem)
                .where(SyncQueueItem.status == STATUS_SYNCED)
                .where(SyncQueueItem.updated_at < cutoff)
            )
            rows = list(session.exec(stmt))
            for record in rows:
                session.delete(record)
            session.commit()
            removed = len(rows)
        if removed:
            logger.info("Purged %s synced queue items", removed)
        return removed


__all__ = ["QueueItem", "SyncQueueStore"]
