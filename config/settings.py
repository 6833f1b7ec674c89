from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from models.schema import DEFAULT_EXCLUDED_COLLECTIONS, EVENT_SOURCE, WEBHOOK_USER_AGENT


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Core
    ENVIRONMENT: str = Field(default="production")
    LOG_LEVEL: str = Field(default="INFO")
    PORT: int = Field(default=3001)

    # Firestore bootstrap
    FIRESTORE_PROJECT_ID: str = Field(default="")
    FIRESTORE_DATABASE_ID: str = Field(default="")  # empty -> "(default)"
    FIREBASE_SERVICE_ACCOUNT_FILE: str = Field(default="firebase-service-account.json")

    # Webhook delivery
    N8N_WEBHOOK_URL: str = Field(default="")  # empty disables delivery
    MONITORING_ENABLED: bool = Field(default=True)
    WEBHOOK_TIMEOUT_S: float = Field(default=10.0)
    WEBHOOK_USER_AGENT: str = Field(default=WEBHOOK_USER_AGENT)
    EVENT_SOURCE: str = Field(default=EVENT_SOURCE)

    # Watching
    EXCLUDED_COLLECTIONS: str = Field(default=",".join(DEFAULT_EXCLUDED_COLLECTIONS))  # comma-separated
    MAX_EVENTS_IN_MEMORY: int = Field(default=1000)
    DISCOVERY_INTERVAL_S: float = Field(default=30.0)
    RESUBSCRIBE_DELAY_S: float = Field(default=5.0)
    SUBSCRIBE_PAUSE_S: float = Field(default=0.1)
    STARTUP_DELAY_S: float = Field(default=3.0)
    STREAM_HEALTH_CHECK_S: float = Field(default=1.0)


settings = Settings()


def _split_csv(v: str) -> FrozenSet[str]:
    return frozenset(p.strip() for p in (v or "").split(",") if p.strip())


@dataclass(frozen=True)
class MonitorConfig:
    """Frozen view of the settings the watcher core depends on."""

    webhook_url: Optional[str] = None
    monitoring_enabled: bool = True
    excluded_collections: FrozenSet[str] = frozenset(DEFAULT_EXCLUDED_COLLECTIONS)
    max_events_in_memory: int = 1000
    discovery_interval_s: float = 30.0
    resubscribe_delay_s: float = 5.0
    subscribe_pause_s: float = 0.1
    startup_delay_s: float = 3.0
    webhook_timeout_s: float = 10.0
    user_agent: str = WEBHOOK_USER_AGENT
    event_source: str = EVENT_SOURCE

    def __post_init__(self):
        if self.max_events_in_memory <= 0:
            raise ValueError("max_events_in_memory must be positive")
        for name in ("discovery_interval_s", "resubscribe_delay_s", "subscribe_pause_s", "startup_delay_s"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.webhook_timeout_s <= 0:
            raise ValueError("webhook_timeout_s must be positive")

    @classmethod
    def from_settings(cls, s: Optional[Settings] = None) -> "MonitorConfig":
        s = s or settings
        return cls(
            webhook_url=s.N8N_WEBHOOK_URL.strip() or None,
            monitoring_enabled=bool(s.MONITORING_ENABLED),
            excluded_collections=_split_csv(s.EXCLUDED_COLLECTIONS),
            max_events_in_memory=s.MAX_EVENTS_IN_MEMORY,
            discovery_interval_s=s.DISCOVERY_INTERVAL_S,
            resubscribe_delay_s=s.RESUBSCRIBE_DELAY_S,
            subscribe_pause_s=s.SUBSCRIBE_PAUSE_S,
            startup_delay_s=s.STARTUP_DELAY_S,
            webhook_timeout_s=s.WEBHOOK_TIMEOUT_S,
            user_agent=s.WEBHOOK_USER_AGENT,
            event_source=s.EVENT_SOURCE,
        )
