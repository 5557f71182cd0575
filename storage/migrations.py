"""Ad-hoc database migrations for the local sync database."""

from __future__ import annotations

from sqlalchemy import text

from core.settings import SYNC
from datetime_utils import utc_now


DEFAULT_SETTINGS = {
    "last_sync": "0",
    "sync_interval": str(SYNC.default_interval_ms),
    "sync_wifi_only": "false",
}


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_sync_queue_columns(conn) -> None:
    # databases created by the first mobile release lack ``last_error``
    if not _column_exists(conn, "sync_queue", "last_error"):
        conn.execute(text("ALTER TABLE sync_queue ADD COLUMN last_error TEXT"))


def ensure_sync_queue_indexes(conn) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_sync_queue_status ON sync_queue(status)"))
    conn.execute(
        text("CREATE INDEX IF NOT EXISTS idx_sync_queue_created ON sync_queue(created_at, id)")
    )


def seed_default_settings(conn) -> None:
    now = utc_now().strftime("%Y-%m-%d %H:%M:%S.%f")
    for key, value in DEFAULT_SETTINGS.items():
        conn.execute(
            text(
                "INSERT OR IGNORE INTO settings (key, value, updated_at) "
                "VALUES (:key, :value, :updated_at)"
            ),
            {"key": key, "value": value, "updated_at": now},
        )


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_sync_queue_columns(conn)
        ensure_sync_queue_indexes(conn)
        seed_default_settings(conn)


__all__ = ["DEFAULT_SETTINGS", "run_all"]
