from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import httpx

from models.schema import WEBHOOK_CONTENT_TYPE, WEBHOOK_USER_AGENT
from monitor.models import NormalizedEvent
from ops.metrics import Timer

log = logging.getLogger("firestore_monitor.webhook")


def _url_hint(url: str) -> str:
    # Scheme + host only; n8n webhook paths act as secrets.
    try:
        u = httpx.URL(url)
        return f"{u.scheme}://{u.host}"
    except Exception:
        return ""


class WebhookClient:
    """Single-shot JSON POST of one event. Never raises, never retries."""

    def __init__(
        self,
        url: str,
        timeout_s: float = 10.0,
        user_agent: str = WEBHOOK_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise ValueError("webhook url is required")
        self.url = url
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    async def send(self, event: NormalizedEvent) -> Dict[str, Any]:
        rev = os.getenv("K_REVISION") or ""
        ref = f"{event.collection}/{event.document_id}"
        headers = {"Content-Type": WEBHOOK_CONTENT_TYPE, "User-Agent": self.user_agent}

        t = Timer()
        try:
            r = await self._client.post(
                self.url,
                content=event.model_dump_json(by_alias=True),
                headers=headers,
                timeout=self.timeout_s,
            )
        except Exception as e:
            log.error(
                "webhook_send_exception",
                extra={
                    "extra": {
                        "event": "webhook_send_exception",
                        "dest": _url_hint(self.url),
                        "event_type": event.event_type,
                        "doc": ref,
                        "error_type": type(e).__name__,
                        "message": str(e),
                        "latency_ms": t.ms(),
                        "revision": rev,
                    }
                },
            )
            return {"ok": False, "error_type": type(e).__name__, "message": str(e)}

        ok = r.is_success
        log.info(
            "webhook_send_result",
            extra={
                "extra": {
                    "event": "webhook_send_result",
                    "dest": _url_hint(self.url),
                    "event_type": event.event_type,
                    "doc": ref,
                    "ok": ok,
                    "status_code": r.status_code,
                    "latency_ms": t.ms(),
                    "revision": rev,
                }
            },
        )
        if not ok:
            body = (r.text or "")[:500]
            log.warning(
                "webhook_send_failed",
                extra={
                    "extra": {
                        "event": "webhook_send_failed",
                        "doc": ref,
                        "status_code": r.status_code,
                        "resp": body,
                        "revision": rev,
                    }
                },
            )
            return {"ok": False, "status_code": r.status_code, "text": body}
        return {"ok": True, "status_code": r.status_code}

    async def aclose(self) -> None:
        await self._client.aclose()
