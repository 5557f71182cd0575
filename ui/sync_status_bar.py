# ui/sync_status_bar.py
from datetime import timezone
import flet as ft

from core.settings import UI
from services.sync_engine import (
    SYNC_STATUS_ERROR,
    SYNC_STATUS_SUCCESS,
    SYNC_STATUS_SYNCING,
)


class SyncStatusBar:
    """Non-blocking indicator: pending count, last sync time and the run banner."""

    def __init__(self, page: ft.Page, client):
        self.page = page
        self.client = client

        self.pending_text = ft.Text()
        self.last_sync_text = ft.Text(color=ft.Colors.GREY_700)
        self.offline_text = ft.Text("Offline", color=ft.Colors.RED_700, visible=False)
        self.failed_text = ft.Text(color=ft.Colors.RED_700)
        self.message_text = ft.Text(expand=True)
        self.progress = ft.ProgressRing(width=16, height=16, visible=False)

        self.sync_btn = ft.ElevatedButton("Sync now", icon=ft.Icons.SYNC, on_click=self.sync_now)
        self.dismiss_btn = ft.IconButton(ft.Icons.CLOSE, tooltip="Dismiss", on_click=self.dismiss)
        self.retry_btn = ft.TextButton("Retry failed", on_click=self.retry_failed)
        self.wifi_switch = ft.Switch(
            label="Sync on WiFi only",
            value=client.engine.wifi_only,
            on_change=self.toggle_wifi_only,
        )

        self.banner = ft.Container(
            content=ft.Row([self.progress, self.message_text, self.dismiss_btn], spacing=8),
            padding=10,
            border_radius=8,
            bgcolor=UI.idle_bg,
            visible=False,
        )

        self.view = ft.Container(
            content=ft.Column(
                controls=[
                    ft.Row([self.pending_text, self.last_sync_text, self.offline_text], spacing=16),
                    ft.Row([self.failed_text, self.retry_btn], spacing=8),
                    ft.Row([self.sync_btn, self.wifi_switch], spacing=12),
                    self.banner,
                ],
                spacing=12,
            ),
            padding=20,
        )
        self._unsubscribe = client.subscribe(self.render)
        self.render(client.status())

    def _format_dt(self, value) -> str:
        if not value:
            return "never"
        if getattr(value, "tzinfo", None) is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone().strftime("%Y-%m-%d %H:%M")

    def render(self, status):
        self.pending_text.value = f"Pending changes: {status.pending_count}"
        self.last_sync_text.value = "Last sync: " + self._format_dt(status.last_sync_timestamp)

        self.offline_text.visible = not status.online
        if not status.in_progress:
            self._render_failed()

        message = status.details.get("message")
        self.message_text.value = message or ""
        self.progress.visible = status.state == SYNC_STATUS_SYNCING
        self.dismiss_btn.visible = status.state in (SYNC_STATUS_SUCCESS, SYNC_STATUS_ERROR)
        self.sync_btn.disabled = status.in_progress
        if status.state == SYNC_STATUS_ERROR or status.details.get("error"):
            self.banner.bgcolor = UI.error_bg
        elif status.state == SYNC_STATUS_SUCCESS:
            self.banner.bgcolor = UI.success_bg
        else:
            self.banner.bgcolor = UI.idle_bg
        self.banner.visible = bool(message)
        try:
            self.page.update()
        except Exception:
            # the page may already be closed while a background run finishes
            pass

    def _render_failed(self):
        failed = self.client.queue_stats().get("failed", 0)
        self.failed_text.value = f"Gave up on {failed} changes" if failed else ""
        self.failed_text.visible = self.retry_btn.visible = bool(failed)

    async def sync_now(self, _):
        await self.client.trigger_sync()

    def dismiss(self, _):
        self.client.reset_status()

    def retry_failed(self, _):
        self.client.retry_failed()
        self.render(self.client.status())

    def toggle_wifi_only(self, e):
        self.client.update_settings(wifi_only=bool(e.control.value))

    def close(self):
        self._unsubscribe()
