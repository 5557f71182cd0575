"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


APP_NAME = "SmartFarmer"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "smartfarmer.db"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


@dataclass(frozen=True)
class SyncDefaults:
    # upper bound of items drained in a single run
    batch_limit: int = 100
    default_interval_ms: int = 3_600_000
    min_check_interval_sec: int = 60
    retention_days: int = 7
    # None keeps retrying forever
    max_attempts: Optional[int] = None
    error_max_length: int = 1000


SYNC = SyncDefaults()


@dataclass(frozen=True)
class ApiSettings:
    base_url: str = field(
        default_factory=lambda: os.environ.get("SMARTFARMER_API_URL", "http://localhost:3000").rstrip("/")
    )
    timeout_sec: float = 15.0
    health_path: str = "/api/health"
    probe_timeout_sec: float = 5.0


API = ApiSettings()


@dataclass(frozen=True)
class NetworkSettings:
    # desktop platforms report no transport type; assume a wired link
    assumed_transport: str = "ethernet"
    probe_interval_sec: int = 30


NETWORK = NetworkSettings()


@dataclass(frozen=True)
class UISettings:
    app_title: str = APP_NAME
    theme_mode: str = "system"
    color_scheme_seed: str = "#2E7D32"
    window_min_width: int = 480
    window_min_height: int = 320
    success_bg: str = "#E8F5E9"
    error_bg: str = "#FFEBEE"
    idle_bg: str = "#F1F5F9"


UI = UISettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SYNC_LOG_PATH",
    "SYNC",
    "API",
    "NETWORK",
    "UI",
    "get_default_data_dir",
]
