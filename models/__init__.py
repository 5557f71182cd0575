"""ORM models exposed by the Smart Farmer sync layer."""
from .setting import Setting
from .sync_queue_item import SyncQueueItem

__all__ = ["Setting", "SyncQueueItem"]
