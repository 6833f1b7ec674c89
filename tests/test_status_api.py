import pytest
from fastapi.testclient import TestClient

import app.monitor_service as monitor_service
from app.monitor_service import app
from config.settings import MonitorConfig
from fakes import FakeSource, added
from monitor.lifecycle import LifecycleController


@pytest.fixture
def client():
    controller = LifecycleController(FakeSource(["notes"]), MonitorConfig(max_events_in_memory=3))
    for i in range(4):
        (ev,) = controller.engine.diff("notes", [added(f"d{i}", i=i)])
        controller.event_log.append(ev)
    app.state.controller = controller
    # No `with`: lifespan (and Firestore bootstrap) is not run.
    yield TestClient(app)
    del app.state.controller


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "service": "firestore-monitor"}


def test_status(client):
    body = client.get("/status").json()
    assert body["ok"] is True
    assert body["state"] == "stopped"
    assert body["events_in_memory"] == 3
    assert body["max_events_in_memory"] == 3


def test_events_newest_last_with_wire_shape(client):
    body = client.get("/events", params={"limit": 2}).json()
    assert body["count"] == 2
    assert [e["documentId"] for e in body["events"]] == ["d2", "d3"]
    assert body["events"][0]["eventType"] == "create"


def test_events_limit_capped_by_log_size(client):
    assert client.get("/events", params={"limit": 500}).json()["count"] == 3


def test_status_without_controller():
    app.state.controller = None
    try:
        r = TestClient(app).get("/status")
        assert r.status_code == 503
        assert r.json()["detail"] == "monitor_not_initialized"
    finally:
        del app.state.controller


def test_firestore_bootstrap_failure_exits_with_code_1(monkeypatch, caplog):
    def no_credentials():
        raise RuntimeError("no credentials")

    monkeypatch.setattr(monitor_service, "get_firestore_client", no_credentials)
    with pytest.raises(SystemExit) as exc:
        with TestClient(app):
            pass
    assert exc.value.code == 1
    assert "firestore_init_failed" in caplog.messages
