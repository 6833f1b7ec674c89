from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from google.cloud.firestore import Client

from monitor.models import ChangeRecord
from monitor.source import StreamError

log = logging.getLogger("firestore_monitor.firestore")


def to_change_records(changes: Any) -> List[ChangeRecord]:
    """Convert Firestore DocumentChange objects into ChangeRecords."""
    out: List[ChangeRecord] = []
    for change in changes or []:
        ctype = getattr(change.type, "name", str(change.type))
        doc = change.document
        out.append(ChangeRecord(kind=ctype.lower(), document_id=doc.id, fields=doc.to_dict()))
    return out


class FirestoreChangeStream:
    """
    Async view over a collection `on_snapshot` watch.

    The Firestore client delivers snapshots on its own thread; each one is
    converted there and handed to the event loop through a queue. The Python
    client has no error callback, so a watch that died on its own is noticed
    by polling `is_active` while the queue is idle.
    """

    def __init__(self, db: Client, collection: str, loop: asyncio.AbstractEventLoop, health_check_s: float = 1.0):
        self.collection = collection
        self.health_check_s = health_check_s
        self._loop = loop
        self._queue: "asyncio.Queue[Optional[List[ChangeRecord]]]" = asyncio.Queue()
        self._closed = False
        self._watch = db.collection(collection).on_snapshot(self._on_snapshot)

    def _on_snapshot(self, docs, changes, read_time) -> None:
        # Runs on the watch thread.
        batch = to_change_records(changes)
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, batch)
        except RuntimeError:
            log.warning(
                "snapshot_after_loop_closed",
                extra={"extra": {"event": "snapshot_after_loop_closed", "collection": self.collection, "size": len(batch)}},
            )

    def __aiter__(self) -> "FirestoreChangeStream":
        return self

    async def __anext__(self) -> List[ChangeRecord]:
        while True:
            if self._closed:
                raise StopAsyncIteration
            try:
                batch = await asyncio.wait_for(self._queue.get(), timeout=self.health_check_s)
            except asyncio.TimeoutError:
                if not self._closed and not self._watch.is_active:
                    raise StreamError(f"watch on '{self.collection}' is no longer active")
                continue
            if batch is None:
                raise StopAsyncIteration
            return batch

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        # Watch.close() joins the consumer thread; keep that off the loop.
        fut = self._loop.run_in_executor(None, self._watch.unsubscribe)
        fut.add_done_callback(self._on_unsubscribed)

    def _on_unsubscribed(self, fut: "asyncio.Future[None]") -> None:
        if fut.cancelled() or fut.exception() is None:
            return
        e = fut.exception()
        log.warning(
            "watch_unsubscribe_error",
            extra={"extra": {"event": "watch_unsubscribe_error", "collection": self.collection, "error_type": type(e).__name__, "message": str(e)}},
        )


class FirestoreChangeSource:
    def __init__(self, db: Client, health_check_s: float = 1.0):
        self.db = db
        self.health_check_s = health_check_s

    async def list_collections(self) -> List[str]:
        # collections() is a blocking RPC.
        return await asyncio.to_thread(lambda: [c.id for c in self.db.collections()])

    def open_stream(self, collection: str) -> FirestoreChangeStream:
        return FirestoreChangeStream(self.db, collection, asyncio.get_running_loop(), self.health_check_s)
