"""SQLModel table for locally queued mutations awaiting remote replay."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now


STATUS_PENDING = "pending"
STATUS_SYNCED = "synced"
STATUS_FAILED = "failed"

OPERATIONS = ("create", "update", "delete")


class SyncQueueItem(SQLModel, table=True):
    __tablename__ = "sync_queue"

    id: Optional[int] = Field(default=None, primary_key=True)
    table_name: str
    record_id: str
    operation: str
    data: Optional[str] = None
    attempts: int = Field(default=0)
    status: str = Field(default=STATUS_PENDING, index=True)
    last_error: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


__all__ = [
    "OPERATIONS",
    "STATUS_FAILED",
    "STATUS_PENDING",
    "STATUS_SYNCED",
    "SyncQueueItem",
]
