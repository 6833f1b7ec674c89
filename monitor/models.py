from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.schema import EVENT_SOURCE


@dataclass(frozen=True)
class ChangeRecord:
    """One document mutation inside a change batch.

    `kind` is kept as the raw string the source reported so that
    classifications we don't know about still flow through as "unknown".
    """

    kind: str
    document_id: str
    fields: Optional[Dict[str, Any]] = None


class EventMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    change_type: str = Field(alias="changeType")
    source: str = EVENT_SOURCE


class NormalizedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(alias="eventType")
    collection: str
    document_id: str = Field(alias="documentId")
    timestamp: str = Field(default_factory=lambda: utc_now_iso())
    old_data: Optional[Dict[str, Any]] = Field(default=None, alias="oldData")
    new_data: Optional[Dict[str, Any]] = Field(default=None, alias="newData")
    metadata: EventMetadata

    def to_payload(self) -> Dict[str, Any]:
        # Wire shape: camelCase keys, nulls kept.
        return self.model_dump(by_alias=True)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
