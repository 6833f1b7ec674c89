from __future__ import annotations

import logging
import os
from typing import Optional

from google.cloud import firestore
from google.oauth2 import service_account

from config.settings import Settings, settings

log = logging.getLogger("firestore_monitor.firestore")


def get_firestore_client(s: Optional[Settings] = None) -> firestore.Client:
    """
    Build the Firestore client.

    A service-account JSON file is used when present; otherwise the library
    falls back to ADC (and, with an empty FIRESTORE_PROJECT_ID, the ADC
    default project). FIRESTORE_DATABASE_ID selects a named database.
    """
    s = s or settings
    kwargs = {}
    if s.FIRESTORE_PROJECT_ID:
        kwargs["project"] = s.FIRESTORE_PROJECT_ID
    if s.FIRESTORE_DATABASE_ID:
        kwargs["database"] = s.FIRESTORE_DATABASE_ID

    sa_path = s.FIREBASE_SERVICE_ACCOUNT_FILE
    if sa_path and os.path.isfile(sa_path):
        creds = service_account.Credentials.from_service_account_file(sa_path)
        kwargs["credentials"] = creds
        kwargs.setdefault("project", creds.project_id)

    client = firestore.Client(**kwargs)
    log.info(
        "firestore_initialized",
        extra={
            "extra": {
                "event": "firestore_initialized",
                "project": client.project,
                "database": s.FIRESTORE_DATABASE_ID or "(default)",
                "service_account_file": bool(kwargs.get("credentials")),
            }
        },
    )
    return client
