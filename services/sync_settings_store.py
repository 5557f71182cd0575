from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.settings import SYNC
from datetime_utils import from_epoch_ms, to_epoch_ms, utc_now
from models.setting import Setting
from services.errors import StorageError
from storage.db import get_session


logger = logging.getLogger("smartfarmer.sync.settings")

LAST_SYNC_KEY = "last_sync"
SYNC_INTERVAL_KEY = "sync_interval"
WIFI_ONLY_KEY = "sync_wifi_only"


@dataclass
class SyncSettings:
    last_sync: Optional[datetime] = None
    sync_interval_ms: int = SYNC.default_interval_ms
    wifi_only: bool = False


def _parse_interval(value: Optional[str]) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return SYNC.default_interval_ms
    return parsed if parsed > 0 else SYNC.default_interval_ms


class SyncSettingsStore:
    """Reads and writes the sync keys of the ``settings`` table."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # generic helpers
    def _load_raw(self) -> Dict[str, str]:
        keys = (LAST_SYNC_KEY, SYNC_INTERVAL_KEY, WIFI_ONLY_KEY)
        try:
            with self._session_factory() as session:
                rows = session.exec(select(Setting).where(Setting.key.in_(keys)))
                return {row.key: row.value for row in rows}
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def _save(self, key: str, value: str) -> None:
        try:
            with self._session_factory() as session:
                row = session.get(Setting, key)
                if row is None:
                    row = Setting(key=key, value=value)
                row.value = value
                row.updated_at = utc_now()
                session.add(row)
                session.commit()
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    def load(self) -> SyncSettings:
        data = self._load_raw()
        settings = SyncSettings(
            last_sync=from_epoch_ms(data.get(LAST_SYNC_KEY)),
            sync_interval_ms=_parse_interval(data.get(SYNC_INTERVAL_KEY)),
            wifi_only=data.get(WIFI_ONLY_KEY) == "true",
        )
        logger.debug("Loaded sync settings: %s", settings)
        return settings

    def set_last_sync(self, moment: Optional[datetime] = None) -> datetime:
        value = moment or utc_now()
        self._save(LAST_SYNC_KEY, str(to_epoch_ms(value)))
        return value

    def set_sync_interval(self, interval_ms: int) -> None:
        if interval_ms <= 0:
            raise ValueError("sync interval must be positive")
        self._save(SYNC_INTERVAL_KEY, str(int(interval_ms)))

    def set_wifi_only(self, enabled: bool) -> None:
        self._save(WIFI_ONLY_KEY, "true" if enabled else "false")


__all__ = [
    "LAST_SYNC_KEY",
    "SYNC_INTERVAL_KEY",
    "SyncSettings",
    "SyncSettingsStore",
    "WIFI_ONLY_KEY",
]
