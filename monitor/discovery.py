from __future__ import annotations

import asyncio
import logging
from typing import FrozenSet, Iterable, List, Optional, Set

from monitor.registry import CollectionRegistry
from monitor.source import ChangeSource
from monitor.subscriptions import WatchSubscriptionManager
from ops.metrics import MonitorCounters, Timer

log = logging.getLogger("firestore_monitor.discovery")


class DiscoveryLoop:
    """
    Lists collections and subscribes to any not yet watched.

    Collections that disappear from the listing keep their watch; discovery
    only ever adds.
    """

    def __init__(
        self,
        source: ChangeSource,
        registry: CollectionRegistry,
        subscriptions: WatchSubscriptionManager,
        excluded: Iterable[str] = (),
        interval_s: float = 30.0,
        counters: Optional[MonitorCounters] = None,
    ):
        self.source = source
        self.registry = registry
        self.subscriptions = subscriptions
        self.excluded: FrozenSet[str] = frozenset(excluded)
        self.interval_s = interval_s
        self.counters = counters or subscriptions.counters
        self._task: Optional["asyncio.Task[None]"] = None

    async def discover(self) -> Set[str]:
        t = Timer()
        try:
            listed = await self.source.list_collections()
        except Exception as e:
            self.counters.discovery_errors += 1
            log.error(
                "discovery_error",
                extra={"extra": {"event": "discovery_error", "error_type": type(e).__name__, "message": str(e)}},
            )
            return set()

        names = {n for n in listed if n not in self.excluded}
        log.info(
            "collections_discovered",
            extra={
                "extra": {
                    "event": "collections_discovered",
                    "count": len(names),
                    "collections": sorted(names),
                    "excluded": sorted(set(listed) & self.excluded),
                    "latency_ms": t.ms(),
                }
            },
        )
        return names

    async def run_once(self) -> List[str]:
        """One periodic cycle; returns the names newly subscribed."""
        added: List[str] = []
        for name in sorted(await self.discover()):
            if name in self.registry:
                continue
            log.info("collection_new", extra={"extra": {"event": "collection_new", "collection": name}})
            if self.subscriptions.subscribe(name):
                added.append(name)
        return added

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.run_once()
            except Exception as e:
                log.error(
                    "discovery_cycle_error",
                    extra={"extra": {"event": "discovery_cycle_error", "error_type": type(e).__name__, "message": str(e)}},
                    exc_info=True,
                )

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="discovery")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
