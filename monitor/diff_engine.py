from __future__ import annotations

from typing import List, Optional, Sequence

from models.schema import (
    CHANGE_ADDED,
    CHANGE_MODIFIED,
    CHANGE_REMOVED,
    EVENT_CREATE,
    EVENT_DELETE,
    EVENT_SOURCE,
    EVENT_UNKNOWN,
    EVENT_UPDATE,
)
from monitor.jsonable import firestore_safe
from monitor.models import ChangeRecord, EventMetadata, NormalizedEvent
from monitor.state import PreviousValueCache


class SnapshotDiffEngine:
    """
    Turns a batch of document changes for one collection into events.

    The cache is what makes oldData possible: it remembers the last fields
    seen for each document, so an update or delete can report what was there
    before. Records are handled strictly in batch order; two changes to the
    same document in one batch yield two events.
    """

    def __init__(self, cache: PreviousValueCache, source: str = EVENT_SOURCE):
        self.cache = cache
        self.source = source

    def diff(self, collection: str, batch: Sequence[ChangeRecord]) -> List[NormalizedEvent]:
        if not batch:
            return []
        return [self.derive(collection, rec) for rec in batch]

    def derive(self, collection: str, rec: ChangeRecord) -> NormalizedEvent:
        doc_id = rec.document_id
        old_data: Optional[dict] = None
        new_data: Optional[dict] = None

        if rec.kind == CHANGE_ADDED:
            event_type = EVENT_CREATE
            new_data = firestore_safe(rec.fields or {})
            self.cache.put(collection, doc_id, new_data)
        elif rec.kind == CHANGE_MODIFIED:
            event_type = EVENT_UPDATE
            new_data = firestore_safe(rec.fields or {})
            old_data = self.cache.get(collection, doc_id)
            self.cache.put(collection, doc_id, new_data)
        elif rec.kind == CHANGE_REMOVED:
            event_type = EVENT_DELETE
            old_data = self.cache.pop(collection, doc_id)
        else:
            event_type = EVENT_UNKNOWN

        return NormalizedEvent(
            event_type=event_type,
            collection=collection,
            document_id=doc_id,
            old_data=old_data,
            new_data=new_data,
            metadata=EventMetadata(change_type=rec.kind, source=self.source),
        )
