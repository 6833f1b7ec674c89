from __future__ import annotations

import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.routers.health import router as health_router
from app.routers.status import router as status_router
from config.settings import MonitorConfig, settings
from monitor.lifecycle import LifecycleController
from ops.structured_logger import setup_logging
from storage.firestore_client import get_firestore_client
from storage.firestore_source import FirestoreChangeSource

setup_logging(settings.LOG_LEVEL)

log = logging.getLogger("firestore_monitor.service")


def build_controller() -> LifecycleController:
    # Nothing downstream works without Firestore; failure here is fatal.
    try:
        db = get_firestore_client()
    except Exception as e:
        log.critical(
            "firestore_init_failed",
            extra={"extra": {"event": "firestore_init_failed", "error_type": type(e).__name__, "message": str(e)}},
            exc_info=True,
        )
        raise SystemExit(1) from e

    source = FirestoreChangeSource(db, health_check_s=settings.STREAM_HEALTH_CHECK_S)
    return LifecycleController(source, MonitorConfig.from_settings())


@asynccontextmanager
async def lifespan(app: FastAPI):
    controller = build_controller()
    app.state.controller = controller
    log.info(
        "server_started",
        extra={"extra": {"event": "server_started", "port": settings.PORT, "startup_delay_s": controller.config.startup_delay_s}},
    )
    # Let the server finish binding before the first discovery call.
    starter = asyncio.create_task(controller.start_after_delay(), name="monitor_start")
    try:
        yield
    finally:
        log.info("shutdown_requested", extra={"extra": {"event": "shutdown_requested"}})
        starter.cancel()
        try:
            await starter
        except asyncio.CancelledError:
            pass
        await controller.stop()


app = FastAPI(title="Firestore Monitor", version="1.0.0", lifespan=lifespan)


def _get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id") or ""


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    response = await call_next(request)
    response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    rid = _get_request_id(request)
    log.warning(
        "http_exception",
        extra={
            "extra": {
                "event": "http_exception",
                "status_code": exc.status_code,
                "detail": exc.detail,
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
            }
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _get_request_id(request)
    log.error(
        "internal_unhandled_exception",
        extra={
            "extra": {
                "event": "internal_unhandled_exception",
                "error_type": type(exc).__name__,
                "message": str(exc),
                "path": request.url.path,
                "method": request.method,
                "request_id": rid,
            }
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_unhandled_exception", "request_id": rid, "revision": os.getenv("K_REVISION") or ""},
    )


app.include_router(health_router, tags=["health"])
app.include_router(status_router, tags=["status"])


def main() -> None:
    import uvicorn

    # uvicorn turns SIGINT/SIGTERM into a lifespan shutdown, which stops all listeners.
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)
