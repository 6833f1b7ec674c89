import pytest

from monitor.models import EventMetadata, NormalizedEvent
from monitor.state import EventLog, PreviousValueCache, document_key


def _event(i):
    return NormalizedEvent(
        event_type="create",
        collection="notes",
        document_id=f"d{i}",
        new_data={"i": i},
        metadata=EventMetadata(change_type="added"),
    )


def test_event_log_keeps_most_recent_in_order():
    log = EventLog(max_events=3)
    for i in range(5):
        log.append(_event(i))
        assert len(log) <= 3
    assert [e.document_id for e in log] == ["d2", "d3", "d4"]


def test_event_log_recent_limits():
    log = EventLog(max_events=5)
    for i in range(4):
        log.append(_event(i))
    assert [e.document_id for e in log.recent(2)] == ["d2", "d3"]
    assert len(log.recent()) == 4
    assert len(log.recent(100)) == 4
    assert log.recent(0) == []


def test_event_log_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        EventLog(max_events=0)


def test_previous_value_cache_keys():
    cache = PreviousValueCache()
    cache.put("notes", "d1", {"a": 1})
    assert document_key("notes", "d1") in cache
    assert cache.get("notes", "d1") == {"a": 1}
    assert cache.pop("notes", "d1") == {"a": 1}
    assert cache.pop("notes", "d1") is None
    cache.put("notes", "d2", {})
    cache.clear()
    assert len(cache) == 0
