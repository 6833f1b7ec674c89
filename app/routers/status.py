from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from monitor.lifecycle import LifecycleController

router = APIRouter()


def _controller(request: Request) -> LifecycleController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="monitor_not_initialized")
    return controller


@router.get("/status")
def status(request: Request):
    return {"ok": True, **_controller(request).status()}


@router.get("/events")
def events(request: Request, limit: int = Query(default=50, ge=1)):
    controller = _controller(request)
    limit = min(limit, controller.event_log.max_events)
    items = [e.to_payload() for e in controller.event_log.recent(limit)]
    return {"ok": True, "count": len(items), "events": items}
