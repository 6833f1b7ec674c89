from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from monitor.diff_engine import SnapshotDiffEngine
from monitor.models import ChangeRecord
from monitor.registry import CollectionRegistry, WatchHandle
from monitor.sink import EventSink
from monitor.source import ChangeSource
from monitor.state import PreviousValueCache
from ops.metrics import MonitorCounters

log = logging.getLogger("firestore_monitor.subscriptions")


class WatchSubscriptionManager:
    """
    One change stream per collection, each consumed by its own task.

    A failed stream drops out of the registry and is re-subscribed after a
    fixed delay, forever. That timer is the only reconnect path.
    """

    def __init__(
        self,
        source: ChangeSource,
        registry: CollectionRegistry,
        engine: SnapshotDiffEngine,
        sink: EventSink,
        cache: PreviousValueCache,
        resubscribe_delay_s: float = 5.0,
        counters: Optional[MonitorCounters] = None,
    ):
        self.source = source
        self.registry = registry
        self.engine = engine
        self.sink = sink
        self.cache = cache
        self.resubscribe_delay_s = resubscribe_delay_s
        self.counters = counters or sink.counters
        self._retries: Set["asyncio.Task[None]"] = set()

    def subscribe(self, name: str) -> bool:
        """Start watching `name`. Returns False if it was already watched or opening failed."""
        handle = self.registry.claim(name)
        if handle is None:
            return False

        log.info("listener_adding", extra={"extra": {"event": "listener_adding", "collection": name}})
        try:
            handle.stream = self.source.open_stream(name)
        except Exception as e:
            self.registry.release(name, handle)
            log.error(
                "subscribe_error",
                extra={"extra": {"event": "subscribe_error", "collection": name, "error_type": type(e).__name__, "message": str(e)}},
            )
            return False

        handle.task = asyncio.get_running_loop().create_task(self._consume(name, handle), name=f"watch:{name}")
        log.info("listener_active", extra={"extra": {"event": "listener_active", "collection": name}})
        return True

    async def _consume(self, name: str, handle: WatchHandle) -> None:
        initial = True
        try:
            async for batch in handle.stream:
                if initial:
                    initial = False
                    log.info(
                        "initial_snapshot_ignored",
                        extra={"extra": {"event": "initial_snapshot_ignored", "collection": name, "size": len(batch)}},
                    )
                    continue
                self._handle_batch(name, batch)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_stream_error(name, handle, e)

    def _handle_batch(self, name: str, batch: List[ChangeRecord]) -> None:
        # One record at a time so a bad record can't hold back the ones after it.
        for rec in batch or []:
            try:
                self.sink.record(self.engine.derive(name, rec))
            except Exception as e:
                log.error(
                    "event_processing_error",
                    extra={
                        "extra": {
                            "event": "event_processing_error",
                            "collection": name,
                            "document_id": rec.document_id,
                            "change_type": rec.kind,
                            "error_type": type(e).__name__,
                            "message": str(e),
                        }
                    },
                    exc_info=True,
                )

    def _on_stream_error(self, name: str, handle: WatchHandle, exc: Exception) -> None:
        self.counters.stream_errors += 1
        log.error(
            "listener_error",
            extra={
                "extra": {
                    "event": "listener_error",
                    "collection": name,
                    "error_type": type(exc).__name__,
                    "message": str(exc),
                    "retry_in_s": self.resubscribe_delay_s,
                }
            },
        )
        if self.registry.release(name, handle) is None:
            # Already torn down (shutdown raced the error); don't resurrect it.
            return
        try:
            handle.stream.close()
        except Exception as e:
            log.warning(
                "listener_close_error",
                extra={"extra": {"event": "listener_close_error", "collection": name, "error_type": type(e).__name__, "message": str(e)}},
            )
        task = asyncio.get_running_loop().create_task(self._resubscribe_later(name), name=f"resubscribe:{name}")
        self._retries.add(task)
        task.add_done_callback(self._retries.discard)

    async def _resubscribe_later(self, name: str) -> None:
        await asyncio.sleep(self.resubscribe_delay_s)
        log.info("listener_resubscribe", extra={"extra": {"event": "listener_resubscribe", "collection": name}})
        self.subscribe(name)

    @property
    def pending_retries(self) -> int:
        return len(self._retries)

    def unsubscribe_all(self) -> int:
        """Close every watch, drop pending retries, clear the cache. Never raises."""
        for task in list(self._retries):
            task.cancel()
        self._retries.clear()

        stopped = 0
        for name, handle in self.registry.drain():
            try:
                handle.cancel()
                stopped += 1
                log.info("listener_stopped", extra={"extra": {"event": "listener_stopped", "collection": name}})
            except Exception as e:
                log.error(
                    "listener_stop_error",
                    extra={"extra": {"event": "listener_stop_error", "collection": name, "error_type": type(e).__name__, "message": str(e)}},
                )
        self.cache.clear()
        return stopped
