from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from monitor.models import NormalizedEvent
from monitor.state import EventLog
from monitor.webhook import WebhookClient
from ops.metrics import MonitorCounters

log = logging.getLogger("firestore_monitor.sink")


class EventSink:
    """
    Records every event in the in-memory log, then hands it to the webhook.

    Delivery runs as its own task so a slow endpoint never holds up the
    stream that produced the event. Nothing here raises into the caller;
    a failed delivery is logged and dropped (it stays in the log).
    """

    def __init__(
        self,
        event_log: EventLog,
        webhook: Optional[WebhookClient] = None,
        monitoring_enabled: bool = True,
        counters: Optional[MonitorCounters] = None,
    ):
        self.event_log = event_log
        self.webhook = webhook
        self.monitoring_enabled = monitoring_enabled
        self.counters = counters or MonitorCounters()
        self._inflight: Set["asyncio.Task[None]"] = set()

    @property
    def delivery_enabled(self) -> bool:
        return self.webhook is not None and self.monitoring_enabled

    def record(self, event: NormalizedEvent) -> Optional["asyncio.Task[None]"]:
        self.event_log.append(event)
        self.counters.events_recorded += 1
        log.info(
            "firestore_event",
            extra={
                "extra": {
                    "event": "firestore_event",
                    "event_type": event.event_type,
                    "collection": event.collection,
                    "document_id": event.document_id,
                }
            },
        )
        if not self.delivery_enabled:
            return None
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _deliver(self, event: NormalizedEvent) -> None:
        try:
            resp = await self.webhook.send(event)
        except Exception as e:
            # send() already swallows transport errors; this is a last guard.
            log.error(
                "webhook_delivery_error",
                extra={"extra": {"event": "webhook_delivery_error", "error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )
            self.counters.deliveries_failed += 1
            return
        if resp.get("ok"):
            self.counters.deliveries_ok += 1
        else:
            self.counters.deliveries_failed += 1

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def drain(self) -> None:
        """Wait for deliveries already started. Each is bounded by the webhook timeout."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self.webhook is not None:
            await self.webhook.aclose()
