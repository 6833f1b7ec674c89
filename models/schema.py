# Centralized names and wire constants to prevent drift.

SERVICE_NAME = "firestore-monitor"

# metadata.source on every emitted event
EVENT_SOURCE = "firestore-listener"

WEBHOOK_USER_AGENT = "Firestore-Monitor/1.0"
WEBHOOK_CONTENT_TYPE = "application/json"

# Never watched, even if listed by Firestore.
DEFAULT_EXCLUDED_COLLECTIONS = ("_internal", "_system")

# Change kinds as reported by Firestore (DocumentChange.type, lowercased).
CHANGE_ADDED = "added"
CHANGE_MODIFIED = "modified"
CHANGE_REMOVED = "removed"

# eventType values on the webhook payload
EVENT_CREATE = "create"
EVENT_UPDATE = "update"
EVENT_DELETE = "delete"
EVENT_UNKNOWN = "unknown"
