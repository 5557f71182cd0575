import pytest
import requests

from services.network_monitor import (
    APP_STATE_ACTIVE,
    APP_STATE_BACKGROUND,
    HttpReachabilityProbe,
    NetworkMonitor,
    NetworkState,
    classify_quality,
)


@pytest.mark.parametrize(
    "transport, reachable, expected",
    [
        ("wifi", True, "excellent"),
        ("ethernet", True, "excellent"),
        ("wired", True, "excellent"),
        ("cellular", True, "fair"),
        ("none", True, "poor"),
        ("wifi", False, "poor"),
        ("bluetooth", True, "unknown"),
        (None, True, "unknown"),
    ],
)
def test_classify_quality(transport, reachable, expected):
    assert classify_quality(transport, reachable) == expected


def test_default_state_is_optimistic():
    monitor = NetworkMonitor()
    assert monitor.is_connected is True
    assert monitor.is_internet_reachable is True
    assert monitor.quality == "unknown"


def test_connectivity_listeners_only_fire_on_change():
    monitor = NetworkMonitor()
    seen = []
    monitor.on_connectivity_change(seen.append)

    monitor.update(is_connected=True, transport="wifi")
    monitor.update(is_connected=True, transport="wifi")
    monitor.update(is_connected=False, transport="none")

    assert [s.quality for s in seen] == ["excellent", "poor"]
    assert seen[-1].online is False


def test_unsubscribe_stops_notifications():
    monitor = NetworkMonitor()
    seen = []
    unsubscribe = monitor.on_connectivity_change(seen.append)
    unsubscribe()

    monitor.update(is_connected=False, transport="none")
    assert seen == []


def test_listener_errors_do_not_escape():
    monitor = NetworkMonitor()
    seen = []

    def broken(_state):
        raise RuntimeError("listener bug")

    monitor.on_connectivity_change(broken)
    monitor.on_connectivity_change(seen.append)

    monitor.update(is_connected=True, transport="cellular")
    assert len(seen) == 1


def test_foreground_fires_on_transition_into_active():
    monitor = NetworkMonitor()
    calls = []
    monitor.on_app_foreground(lambda: calls.append("fg"))

    monitor.set_app_state(APP_STATE_ACTIVE)
    monitor.set_app_state(APP_STATE_BACKGROUND)
    monitor.set_app_state(APP_STATE_ACTIVE)

    assert calls == ["fg"]


def test_foreground_rechecks_connection_with_probe():
    snapshots = [NetworkState(is_connected=False, is_internet_reachable=False, transport="none", quality="poor")]
    monitor = NetworkMonitor(probe=lambda: snapshots[0])
    monitor.set_app_state(APP_STATE_BACKGROUND)

    monitor.set_app_state(APP_STATE_ACTIVE)

    assert monitor.is_connected is False


def test_check_connection_reports_probe_errors_as_offline():
    def failing_probe():
        raise OSError("adapter gone")

    monitor = NetworkMonitor(probe=failing_probe)
    assert monitor.check_connection() is False


class FakeSession:
    def __init__(self, error=None):
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append((url, timeout))
        if self.error:
            raise self.error
        response = requests.Response()
        response.status_code = 503
        return response


def test_http_probe_treats_any_answer_as_reachable():
    session = FakeSession()
    probe = HttpReachabilityProbe("http://api.test/api/health", transport="wifi", timeout=2, session=session)

    state = probe()

    assert state.online is True
    assert state.quality == "excellent"
    assert session.urls == [("http://api.test/api/health", 2)]


def test_http_probe_connection_error_means_offline():
    probe = HttpReachabilityProbe(
        "http://api.test/api/health",
        session=FakeSession(requests.exceptions.ConnectionError("refused")),
    )

    state = probe()

    assert state.is_connected is False
    assert state.quality == "poor"


def test_http_probe_timeout_means_unreachable():
    probe = HttpReachabilityProbe(
        "http://api.test/api/health",
        session=FakeSession(requests.exceptions.Timeout("slow")),
    )

    state = probe()

    assert state.is_connected is True
    assert state.is_internet_reachable is False
