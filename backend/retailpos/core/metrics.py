from dataclasses import dataclass, field
from datetime import datetime, timezone
import asyncio
from collections import defaultdict


@dataclass
class MetricsCollector:
    """In-memory counters for the auth flow.

    Process local; reset on restart.
    """

    counters: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    timestamps: dict[str, datetime] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def increment(self, name: str, value: int = 1, labels: dict | None = None) -> None:
        """Increment a counter."""
        key = self._make_key(name, labels)
        async with self._lock:
            self.counters[key] += value
            self.timestamps[key] = datetime.now(timezone.utc)

    async def get_counter(self, name: str, labels: dict | None = None) -> int:
        key = self._make_key(name, labels)
        return self.counters.get(key, 0)

    async def get_all(self) -> dict:
        """Get all metrics."""
        async with self._lock:
            return {
                "counters": dict(self.counters),
                "last_updated": {k: v.isoformat() for k, v in self.timestamps.items()}
            }

    def _make_key(self, name: str, labels: dict | None = None) -> str:
        """Create a unique key for a metric with labels."""
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


# Global metrics instance
metrics = MetricsCollector()


async def track_registration(outcome: str):
    await metrics.increment("registrations", 1, {"outcome": outcome})


async def track_sign_in(outcome: str):
    await metrics.increment("sign_ins", 1, {"outcome": outcome})


async def track_tokens_issued(count: int = 2):
    await metrics.increment("tokens_issued", count)
