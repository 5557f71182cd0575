"""Exceptions raised by the offline sync layer."""
from __future__ import annotations


class SyncError(Exception):
    """Base class for sync layer failures."""


class StorageError(SyncError):
    """The local queue database could not be read or written."""


class NotReadyError(SyncError):
    """The sync client was used before :meth:`SyncClient.start`."""


__all__ = ["NotReadyError", "StorageError", "SyncError"]
