import pytest

from config.settings import MonitorConfig
from fakes import FakeSource, settle as _settle
from monitor.diff_engine import SnapshotDiffEngine
from monitor.registry import CollectionRegistry
from monitor.sink import EventSink
from monitor.state import EventLog, PreviousValueCache
from monitor.subscriptions import WatchSubscriptionManager


@pytest.fixture
def settle():
    return _settle


@pytest.fixture
def source():
    return FakeSource(["notes", "users"])


@pytest.fixture
def config():
    return MonitorConfig(
        discovery_interval_s=0.01,
        resubscribe_delay_s=0.01,
        subscribe_pause_s=0,
        startup_delay_s=0,
    )


@pytest.fixture
def cache():
    return PreviousValueCache()


@pytest.fixture
def event_log():
    return EventLog(max_events=10)


@pytest.fixture
def manager(source, cache, event_log):
    return WatchSubscriptionManager(
        source,
        CollectionRegistry(),
        SnapshotDiffEngine(cache),
        EventSink(event_log),
        cache,
        resubscribe_delay_s=0.05,
    )
