"""
Firestore value -> JSON-serializable converter.

Document snapshots hand back library types (timestamps with nanoseconds,
GeoPoints, DocumentReferences, raw bytes) that json.dumps can't encode.
Events are cached and posted as plain JSON, so everything is normalized
once, at the point the diff engine reads the fields.
"""

from __future__ import annotations

import base64
from datetime import date, datetime
from decimal import Decimal
from typing import Any


def firestore_safe(value: Any) -> Any:
    """
    Recursively convert Firestore field values to JSON-serializable types.

    Handles:
    - datetime / DatetimeWithNanoseconds -> ISO string
    - GeoPoint -> {"latitude": .., "longitude": ..}
    - DocumentReference -> document path string
    - bytes -> base64 string
    - Decimal -> str
    - nested dicts, lists, tuples and sets

    Example:
        >>> firestore_safe({"tags": ("a", "b"), "raw": b"hi"})
        {'tags': ['a', 'b'], 'raw': 'aGk='}
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, (datetime, date)):
        return value.isoformat()

    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, dict):
        return {str(k): firestore_safe(v) for k, v in value.items()}

    if isinstance(value, (list, tuple, set, frozenset)):
        return [firestore_safe(v) for v in value]

    # GeoPoint: duck-typed to avoid importing google.cloud here.
    if hasattr(value, "latitude") and hasattr(value, "longitude"):
        return {"latitude": value.latitude, "longitude": value.longitude}

    # DocumentReference
    path = getattr(value, "path", None)
    if isinstance(path, str):
        return path

    return str(value)
