# smartfarmer/main.py
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
import flet as ft

from core.settings import APP_NAME, NETWORK, UI
from services.network_monitor import HttpReachabilityProbe, NetworkMonitor
from services.remote_apply import HttpRemoteApplier
from services.sync_client import SyncClient
from services.sync_engine import SyncEngine
from services.sync_queue import SyncQueueStore
from services.sync_scheduler import SyncScheduler
from services.sync_settings_store import SyncSettingsStore
from storage.db import init_db
from ui.lifecycle import bind_lifecycle, watch_connectivity
from ui.sync_status_bar import SyncStatusBar


def _auth_token():
    # token mechanics live in the auth module; the desktop shell reads it from the environment
    return os.environ.get("SMARTFARMER_TOKEN")


def build_client() -> SyncClient:
    monitor = NetworkMonitor(probe=HttpReachabilityProbe())
    engine = SyncEngine(
        SyncQueueStore(),
        SyncSettingsStore(),
        monitor,
        HttpRemoteApplier(token_provider=_auth_token),
        is_authenticated=lambda: bool(_auth_token()),
    )
    return SyncClient(engine, SyncScheduler(engine, monitor))


async def main(page: ft.Page):
    page.title = UI.app_title
    page.theme_mode = UI.theme_mode
    page.theme = ft.Theme(color_scheme_seed=UI.color_scheme_seed)
    page.appbar = ft.AppBar(title=ft.Text(APP_NAME), center_title=False)
    page.padding = 0
    page.window_min_width = UI.window_min_width
    page.window_min_height = UI.window_min_height

    init_db()
    client = build_client()
    monitor = client.engine.network
    bind_lifecycle(page, monitor)
    client.start()

    status_bar = SyncStatusBar(page, client)
    page.add(status_bar.view)
    page.run_task(watch_connectivity, monitor, NETWORK.probe_interval_sec)

ft.app(target=main)
