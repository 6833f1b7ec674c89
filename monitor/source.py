from __future__ import annotations

from typing import AsyncIterator, List, Protocol

from monitor.models import ChangeRecord


class StreamError(Exception):
    """A change stream ended because of an error (not because it was closed)."""


class ChangeStream(Protocol):
    """Live per-collection notifications.

    Iterating yields batches in the order the source observed them. The first
    batch is the collection's state at open time. Iteration raises StreamError
    on a terminal failure and simply stops once close() has been called.
    """

    def __aiter__(self) -> AsyncIterator[List[ChangeRecord]]: ...

    def close(self) -> None: ...


class ChangeSource(Protocol):
    async def list_collections(self) -> List[str]: ...

    def open_stream(self, collection: str) -> ChangeStream: ...
