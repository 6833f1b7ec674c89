import asyncio

from monitor.discovery import DiscoveryLoop


def _loop(manager, source, excluded=("_internal", "_system"), interval_s=30.0):
    return DiscoveryLoop(source, manager.registry, manager, excluded=excluded, interval_s=interval_s)


async def test_excluded_collections_are_never_subscribed(manager, source):
    source.collections = ["orders", "notes", "_system"]
    loop = _loop(manager, source, excluded=("orders", "_system"))

    assert await loop.discover() == {"notes"}
    assert await loop.run_once() == ["notes"]
    assert "orders" not in source.opened
    manager.unsubscribe_all()


async def test_listing_failure_yields_empty_set(manager, source, caplog):
    source.list_error = RuntimeError("deadline exceeded")
    loop = _loop(manager, source)

    assert await loop.discover() == set()
    assert await loop.run_once() == []
    assert "discovery_error" in caplog.messages
    assert manager.counters.discovery_errors == 2


async def test_run_once_only_subscribes_new_collections(manager, source):
    loop = _loop(manager, source)
    assert await loop.run_once() == ["notes", "users"]

    source.collections.append("orders")
    assert await loop.run_once() == ["orders"]
    assert source.opened == ["notes", "users", "orders"]
    manager.unsubscribe_all()


async def test_vanished_collection_stays_watched(manager, source):
    loop = _loop(manager, source)
    await loop.run_once()

    source.collections = ["users"]
    await loop.run_once()
    assert "notes" in manager.registry
    assert not source.streams["notes"].closed
    manager.unsubscribe_all()


async def test_periodic_discovery_picks_up_new_collections(manager, source):
    source.collections = []
    loop = _loop(manager, source, interval_s=0.01)
    loop.start()
    assert loop.running

    source.collections = ["late"]
    await asyncio.sleep(0.1)
    assert "late" in manager.registry

    await loop.stop()
    assert not loop.running
    manager.unsubscribe_all()


async def test_stop_is_safe_when_not_started(manager, source):
    await _loop(manager, source).stop()
