from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, Iterator, List, Optional

from monitor.models import NormalizedEvent


def document_key(collection: str, document_id: str) -> str:
    return f"{collection}/{document_id}"


class PreviousValueCache:
    """Last known field values per document, for oldData on update/delete.

    Only holds documents observed since this process started watching.
    """

    def __init__(self):
        self._values: Dict[str, Dict[str, Any]] = {}

    def get(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        return self._values.get(document_key(collection, document_id))

    def put(self, collection: str, document_id: str, fields: Dict[str, Any]) -> None:
        self._values[document_key(collection, document_id)] = fields

    def pop(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        return self._values.pop(document_key(collection, document_id), None)

    def clear(self) -> None:
        self._values.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)


class EventLog:
    """Bounded FIFO of recent events; oldest evicted first."""

    def __init__(self, max_events: int = 1000):
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self.max_events = max_events
        self._events: Deque[NormalizedEvent] = deque(maxlen=max_events)

    def append(self, event: NormalizedEvent) -> None:
        self._events.append(event)

    def recent(self, limit: Optional[int] = None) -> List[NormalizedEvent]:
        """Most recent `limit` events, oldest first."""
        events = list(self._events)
        if limit is None or limit >= len(events):
            return events
        if limit <= 0:
            return []
        return events[-limit:]

    def __iter__(self) -> Iterator[NormalizedEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)
