from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Dict, Optional

from config.settings import MonitorConfig
from monitor.diff_engine import SnapshotDiffEngine
from monitor.discovery import DiscoveryLoop
from monitor.registry import CollectionRegistry
from monitor.sink import EventSink
from monitor.source import ChangeSource
from monitor.state import EventLog, PreviousValueCache
from monitor.subscriptions import WatchSubscriptionManager
from monitor.webhook import WebhookClient
from ops.metrics import MonitorCounters, Timer

log = logging.getLogger("firestore_monitor.lifecycle")


class MonitorState(str, enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class LifecycleController:
    """Owns all watcher state and drives startup/shutdown ordering."""

    def __init__(
        self,
        source: ChangeSource,
        config: MonitorConfig,
        webhook_factory: Optional[Callable[[], Optional[WebhookClient]]] = None,
    ):
        self.config = config
        self.state = MonitorState.STOPPED
        self.counters = MonitorCounters()
        self.cache = PreviousValueCache()
        self.event_log = EventLog(config.max_events_in_memory)
        self.registry = CollectionRegistry()

        # stop() closes the HTTP client; start() builds a fresh one from here.
        self._webhook_factory = webhook_factory or self._default_webhook
        self.sink = EventSink(
            self.event_log,
            webhook=self._webhook_factory(),
            monitoring_enabled=config.monitoring_enabled,
            counters=self.counters,
        )
        self.engine = SnapshotDiffEngine(self.cache, source=config.event_source)
        self.subscriptions = WatchSubscriptionManager(
            source,
            self.registry,
            self.engine,
            self.sink,
            self.cache,
            resubscribe_delay_s=config.resubscribe_delay_s,
            counters=self.counters,
        )
        self.discovery = DiscoveryLoop(
            source,
            self.registry,
            self.subscriptions,
            excluded=config.excluded_collections,
            interval_s=config.discovery_interval_s,
            counters=self.counters,
        )

    def _default_webhook(self) -> Optional[WebhookClient]:
        if not self.config.webhook_url:
            return None
        return WebhookClient(self.config.webhook_url, timeout_s=self.config.webhook_timeout_s, user_agent=self.config.user_agent)

    async def start(self) -> None:
        t = Timer()
        self.state = MonitorState.STARTING
        await self.discovery.stop()
        self.subscriptions.unsubscribe_all()
        if self.sink.webhook is None:
            self.sink.webhook = self._webhook_factory()

        for name in sorted(await self.discovery.discover()):
            self.subscriptions.subscribe(name)
            await asyncio.sleep(self.config.subscribe_pause_s)

        self.state = MonitorState.RUNNING
        self.discovery.start()
        log.info(
            "monitoring_started",
            extra={
                "extra": {
                    "event": "monitoring_started",
                    "collections": len(self.registry),
                    "webhook_enabled": self.sink.delivery_enabled,
                    "duration_ms": t.ms(),
                }
            },
        )

    async def start_after_delay(self) -> None:
        await asyncio.sleep(self.config.startup_delay_s)
        try:
            await self.start()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(
                "monitor_start_failed",
                extra={"extra": {"event": "monitor_start_failed", "error_type": type(e).__name__, "message": str(e)}},
                exc_info=True,
            )

    async def stop(self) -> None:
        self.state = MonitorState.STOPPING
        await self.discovery.stop()
        stopped = self.subscriptions.unsubscribe_all()
        await self.sink.aclose()
        self.sink.webhook = None
        self.state = MonitorState.STOPPED
        log.info("monitoring_stopped", extra={"extra": {"event": "monitoring_stopped", "listeners_stopped": stopped}})

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "collections": self.registry.names(),
            "events_in_memory": len(self.event_log),
            "max_events_in_memory": self.event_log.max_events,
            "cached_documents": len(self.cache),
            "pending_retries": self.subscriptions.pending_retries,
            "inflight_deliveries": self.sink.inflight,
            "webhook_configured": bool(self.config.webhook_url) or self.sink.webhook is not None,
            "monitoring_enabled": self.config.monitoring_enabled,
            "counters": self.counters.as_dict(),
        }
