"""
Process-wide state shared by every reconciliation pass.

One ``State`` and one ``Metrics`` instance exist per operator process.
They are created at startup and handed to the reconcilers and the status
API explicitly (through kopf's memo and FastAPI's app state).
"""
import asyncio
import dataclasses
from datetime import datetime, timezone
from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest

from engula_operator.config import settings

RECONCILE_BUCKETS = (0.01, 0.1, 0.25, 0.5, 1.0, 5.0, 15.0, 60.0)


@dataclasses.dataclass(frozen=True)
class StateSnapshot:
    last_event: datetime
    reporter: str


class State:
    """Last handled event and reporter identity, guarded by a lock."""

    def __init__(self, reporter: str = settings.REPORTER):
        self._lock = asyncio.Lock()
        self._last_event = datetime.now(timezone.utc)
        self._reporter = reporter

    async def touch(self, when: Optional[datetime] = None) -> None:
        async with self._lock:
            self._last_event = when or datetime.now(timezone.utc)

    async def snapshot(self) -> StateSnapshot:
        async with self._lock:
            return StateSnapshot(last_event=self._last_event, reporter=self._reporter)


class Metrics:
    """Prometheus metrics exposed on /metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY, prefix: str = "engula_controller"):
        self.registry = registry
        self.handled_events = Counter(
            f"{prefix}_handled_events",
            "handled events",
            registry=registry,
        )
        self.reconcile_duration = Histogram(
            f"{prefix}_reconcile_duration_seconds",
            "The duration of reconcile to complete in seconds",
            buckets=RECONCILE_BUCKETS,
            registry=registry,
        )

    def observe(self, duration: float) -> None:
        self.handled_events.inc()
        self.reconcile_duration.observe(duration)

    def render(self) -> bytes:
        return generate_latest(self.registry)
