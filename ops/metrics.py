from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class Timer:
    start: float = field(default_factory=time.monotonic)

    def ms(self) -> int:
        return int((time.monotonic() - self.start) * 1000)


@dataclass
class MonitorCounters:
    # Log/status only; nothing reads these for control flow.
    events_recorded: int = 0
    deliveries_ok: int = 0
    deliveries_failed: int = 0
    stream_errors: int = 0
    discovery_errors: int = 0

    def as_dict(self) -> dict:
        return {
            "events_recorded": self.events_recorded,
            "deliveries_ok": self.deliveries_ok,
            "deliveries_failed": self.deliveries_failed,
            "stream_errors": self.stream_errors,
            "discovery_errors": self.discovery_errors,
        }
