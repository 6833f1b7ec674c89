from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from monitor.source import ChangeStream


@dataclass
class WatchHandle:
    """Cancellation handle for one live collection watch."""

    stream: Optional[ChangeStream] = None
    task: Optional["asyncio.Task[None]"] = None

    def cancel(self) -> None:
        if self.task is not None and not self.task.done() and self.task is not _current_task():
            self.task.cancel()
        if self.stream is not None:
            self.stream.close()


def _current_task() -> Optional["asyncio.Task[None]"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class CollectionRegistry:
    """ActiveWatchSet: which collections currently have a live watch.

    `claim` is insert-if-absent so the membership check and the insert can't
    be split by an await.
    """

    def __init__(self):
        self._handles: Dict[str, WatchHandle] = {}

    def claim(self, name: str) -> Optional[WatchHandle]:
        """Reserve `name`; returns the new handle, or None if already watched."""
        if name in self._handles:
            return None
        handle = WatchHandle()
        self._handles[name] = handle
        return handle

    def release(self, name: str, handle: Optional[WatchHandle] = None) -> Optional[WatchHandle]:
        """Remove `name`. With `handle`, only if that exact handle is still registered."""
        current = self._handles.get(name)
        if current is None or (handle is not None and current is not handle):
            return None
        return self._handles.pop(name)

    def drain(self) -> List[Tuple[str, WatchHandle]]:
        items = list(self._handles.items())
        self._handles.clear()
        return items

    def names(self) -> List[str]:
        return sorted(self._handles)

    def __contains__(self, name: object) -> bool:
        return name in self._handles

    def __len__(self) -> int:
        return len(self._handles)
