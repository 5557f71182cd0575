from pathlib import Path
import sys

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.network_monitor import NetworkMonitor  # noqa: E402
from services.sync_engine import ApplyResult, SyncEngine  # noqa: E402
from services.sync_queue import SyncQueueStore  # noqa: E402
from services.sync_settings_store import SyncSettingsStore  # noqa: E402
from storage.db import init_db  # noqa: E402


class FakeRemote:
    """Records every replayed mutation; fails the record ids listed in ``fail``."""

    def __init__(self, fail=(), raise_for=()):
        self.calls = []
        self.fail = {str(r) for r in fail}
        self.raise_for = {str(r) for r in raise_for}

    async def __call__(self, table_name, record_id, operation, payload):
        self.calls.append((table_name, record_id, operation, payload))
        if record_id in self.raise_for:
            raise RuntimeError(f"boom {record_id}")
        if record_id in self.fail:
            return ApplyResult(False, "rejected")
        return ApplyResult(True)


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture()
def session_factory(db_engine):
    def factory():
        return Session(db_engine)

    return factory


@pytest.fixture()
def queue(session_factory):
    return SyncQueueStore(session_factory)


@pytest.fixture()
def settings_store(session_factory):
    return SyncSettingsStore(session_factory)


@pytest.fixture()
def monitor():
    net = NetworkMonitor()
    net.update(is_connected=True, is_internet_reachable=True, transport="wifi")
    return net


@pytest.fixture()
def remote():
    return FakeRemote()


@pytest.fixture()
def make_engine(queue, settings_store, monitor):
    def factory(remote_apply, **kwargs):
        engine = SyncEngine(queue, settings_store, monitor, remote_apply, **kwargs)
        return engine

    return factory
