from datetime import datetime, timezone

from fakes import added, modified, removed
from monitor.diff_engine import SnapshotDiffEngine
from monitor.models import ChangeRecord
from monitor.state import PreviousValueCache


def test_create_update_delete_tracks_old_data():
    cache = PreviousValueCache()
    engine = SnapshotDiffEngine(cache)

    (create,) = engine.diff("notes", [added("d1", a=1)])
    assert create.event_type == "create"
    assert create.collection == "notes"
    assert create.document_id == "d1"
    assert create.old_data is None
    assert create.new_data == {"a": 1}
    assert create.metadata.change_type == "added"
    assert create.metadata.source == "firestore-listener"

    (update,) = engine.diff("notes", [modified("d1", a=2)])
    assert update.event_type == "update"
    assert update.old_data == {"a": 1}
    assert update.new_data == {"a": 2}

    (delete,) = engine.diff("notes", [removed("d1")])
    assert delete.event_type == "delete"
    assert delete.old_data == {"a": 2}
    assert delete.new_data is None
    assert "notes/d1" not in cache


def test_empty_batch_is_noop():
    cache = PreviousValueCache()
    assert SnapshotDiffEngine(cache).diff("notes", []) == []
    assert len(cache) == 0


def test_modify_and_remove_without_history_have_no_old_data():
    engine = SnapshotDiffEngine(PreviousValueCache())
    update, delete = engine.diff("notes", [modified("x", a=1), removed("y")])
    assert update.old_data is None
    assert delete.old_data is None


def test_unknown_kind_leaves_cache_alone():
    cache = PreviousValueCache()
    engine = SnapshotDiffEngine(cache)
    engine.diff("notes", [added("d1", a=1)])

    (ev,) = engine.diff("notes", [ChangeRecord(kind="renamed", document_id="d1", fields={"a": 9})])
    assert ev.event_type == "unknown"
    assert ev.old_data is None and ev.new_data is None
    assert ev.metadata.change_type == "renamed"
    assert cache.get("notes", "d1") == {"a": 1}


def test_same_document_twice_in_one_batch_is_not_coalesced():
    engine = SnapshotDiffEngine(PreviousValueCache())
    events = engine.diff("notes", [added("d1", a=1), modified("d1", a=2), modified("d1", a=3)])
    assert [e.event_type for e in events] == ["create", "update", "update"]
    assert [e.old_data for e in events] == [None, {"a": 1}, {"a": 2}]


def test_cache_is_namespaced_by_collection():
    engine = SnapshotDiffEngine(PreviousValueCache())
    engine.diff("notes", [added("d1", a=1)])
    (ev,) = engine.diff("users", [modified("d1", a=2)])
    assert ev.old_data is None


def test_old_data_is_last_written_value_for_any_sequence():
    cache = PreviousValueCache()
    engine = SnapshotDiffEngine(cache)
    ops = ["added", "modified", "modified", "removed", "modified", "added", "removed", "removed", "modified"]
    last = None
    for i, kind in enumerate(ops):
        fields = None if kind == "removed" else {"v": i}
        (ev,) = engine.diff("c", [ChangeRecord(kind=kind, document_id="k", fields=fields)])
        if kind in ("modified", "removed"):
            assert ev.old_data == last
        last = None if kind == "removed" else fields


def test_field_values_are_made_json_safe():
    engine = SnapshotDiffEngine(PreviousValueCache(), source="custom")
    ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    (ev,) = engine.diff("notes", [added("d1", at=ts, raw=b"hi", tags=("a", "b"))])
    assert ev.new_data == {"at": "2024-01-02T03:04:05+00:00", "raw": "aGk=", "tags": ["a", "b"]}
    assert ev.metadata.source == "custom"


def test_payload_uses_wire_field_names():
    engine = SnapshotDiffEngine(PreviousValueCache())
    (ev,) = engine.diff("notes", [added("d1", a=1)])
    payload = ev.to_payload()
    assert set(payload) == {"eventType", "collection", "documentId", "timestamp", "oldData", "newData", "metadata"}
    assert payload["metadata"] == {"changeType": "added", "source": "firestore-listener"}
    assert payload["timestamp"].endswith("Z")
