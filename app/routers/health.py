from __future__ import annotations

import os
import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from config.settings import settings
from models.schema import SERVICE_NAME

router = APIRouter()


@router.get("/healthz")
def healthz():
    return {"ok": True, "service": SERVICE_NAME}


@router.get("/health")
def health(request: Request):
    controller = getattr(request.app.state, "controller", None)
    state = controller.state.value if controller is not None else "uninitialized"

    payload: Dict[str, Any] = {
        "ok": controller is not None,
        "service": SERVICE_NAME,
        "cloudrun_service": os.getenv("K_SERVICE") or "",
        "revision": os.getenv("K_REVISION") or "",
        "environment": settings.ENVIRONMENT,
        "monitor_state": state,
        "time_unix": time.time(),
    }
    return payload
