import asyncio
from datetime import timedelta

import pytest

from datetime_utils import utc_now
from services.network_monitor import APP_STATE_ACTIVE, APP_STATE_BACKGROUND
from services.sync_client import SyncClient
from services.sync_scheduler import SyncScheduler


async def _settle(rounds=20):
    for _ in range(rounds):
        await asyncio.sleep(0)


def _recently_synced(engine, settings_store):
    settings_store.set_last_sync(utc_now())
    engine.load()


@pytest.mark.asyncio
async def test_maybe_sync_runs_when_interval_elapsed(queue, settings_store, monitor, make_engine, remote):
    queue.enqueue("messages", 1, "create", {"group_id": 1})
    settings_store.set_sync_interval(1000)
    settings_store.set_last_sync(utc_now() - timedelta(milliseconds=1500))
    engine = make_engine(remote)
    engine.load()
    scheduler = SyncScheduler(engine, monitor)

    assert await scheduler.maybe_sync() is True
    assert len(remote.calls) == 1


@pytest.mark.asyncio
async def test_maybe_sync_waits_for_interval(queue, settings_store, monitor, make_engine, remote):
    queue.enqueue("messages", 1, "create", {"group_id": 1})
    settings_store.set_sync_interval(1000)
    settings_store.set_last_sync(utc_now() - timedelta(milliseconds=500))
    engine = make_engine(remote)
    engine.load()
    scheduler = SyncScheduler(engine, monitor)

    assert await scheduler.maybe_sync() is False
    assert remote.calls == []


@pytest.mark.asyncio
async def test_timer_checks_immediately_on_start(queue, monitor, make_engine, remote):
    queue.enqueue("messages", 1, "create", {"group_id": 1})
    engine = make_engine(remote)
    engine.load()
    scheduler = SyncScheduler(engine, monitor)

    scheduler.start()
    await _settle()
    await scheduler.stop()

    assert len(remote.calls) == 1
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_reconnect_flushes_queue_before_interval(queue, settings_store, monitor, make_engine, remote):
    monitor.update(is_connected=False, transport="none")
    engine = make_engine(remote)
    _recently_synced(engine, settings_store)
    scheduler = SyncScheduler(engine, monitor)
    scheduler.start()

    queue.enqueue("messages", 1, "create", {"group_id": 1})
    engine.note_enqueued()
    await _settle()
    assert remote.calls == []

    monitor.update(is_connected=True, transport="wifi")
    await _settle()
    await scheduler.stop()

    assert len(remote.calls) == 1
    assert engine.pending_count == 0


@pytest.mark.asyncio
async def test_foreground_resyncs_pending_count(queue, settings_store, monitor, make_engine, remote):
    engine = make_engine(remote)
    _recently_synced(engine, settings_store)
    scheduler = SyncScheduler(engine, monitor)
    scheduler.start()

    # written behind the engine's back, e.g. by another process
    queue.enqueue("groups", "g-1", "update", {"name": "Cassava"})
    assert engine.pending_count == 0

    monitor.set_app_state(APP_STATE_BACKGROUND)
    monitor.set_app_state(APP_STATE_ACTIVE)
    await _settle()
    await scheduler.stop()

    assert engine.pending_count == 1
    # last sync is recent, so the foreground check does not drain the queue
    assert remote.calls == []


@pytest.mark.asyncio
async def test_enqueue_triggers_check_when_never_synced(queue, monitor, make_engine, remote):
    engine = make_engine(remote)
    engine.load()
    scheduler = SyncScheduler(engine, monitor)
    scheduler.start()
    await _settle()

    queue.enqueue("messages", 5, "create", {"group_id": 1})
    engine.note_enqueued()
    await _settle()
    await scheduler.stop()

    assert [call[1] for call in remote.calls] == ["5"]


@pytest.mark.asyncio
async def test_enqueue_while_online_flushes_before_interval(settings_store, monitor, make_engine, remote):
    engine = make_engine(remote)
    _recently_synced(engine, settings_store)
    scheduler = SyncScheduler(engine, monitor)
    client = SyncClient(engine, scheduler)
    client.start()
    await _settle()

    client.enqueue("messages", 11, "create", {"group_id": 2, "content": "rain tomorrow"})
    await _settle()
    await client.stop()

    assert [call[1] for call in remote.calls] == ["11"]
    assert client.status().pending_count == 0


@pytest.mark.asyncio
async def test_enqueue_while_offline_waits(settings_store, monitor, make_engine, remote):
    monitor.update(is_connected=False, transport="none")
    engine = make_engine(remote)
    _recently_synced(engine, settings_store)
    client = SyncClient(engine, SyncScheduler(engine, monitor))
    client.start()

    client.enqueue("messages", 12, "create", {"group_id": 2})
    await _settle()
    await client.stop()

    assert remote.calls == []
    assert client.status().pending_count == 1
    assert client.status().online is False
