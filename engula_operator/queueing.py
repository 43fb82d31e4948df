"""
Per-object work queue and requeue timers.

Every resource instance is identified by an ``ObjectKey`` and handled
sequentially: a pass for one key never overlaps another pass for the same
key, whether it was triggered by a watch event or by a requeue timer.
Passes for different keys run concurrently, at most ``MAX_WORKERS`` at once.

Only the latest known body is kept per key. A pass always reconciles that
body, so a burst of events collapses into as many passes as the lock lets
through, each looking at the freshest state.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Mapping, Optional, Set

from engula_operator.config import Settings, settings as default_settings
from engula_operator.errors import ClusterApiError, ReconcileError
from engula_operator.kinds import ObjectKey
from engula_operator.reconciler import Reconciler, error_policy

logger = logging.getLogger("queueing")

ErrorPolicy = Callable[[ReconcileError, ObjectKey, Settings], float]

# Metadata fields the API server rewrites on every write, including our own status patches.
VOLATILE_METADATA = ("resourceVersion", "managedFields")


def essence(body: Mapping[str, Any]) -> Dict[str, Any]:
    """The part of a body that can change what a pass does: everything but status."""
    result = {k: v for k, v in body.items() if k != "status"}
    meta = result.get("metadata")
    if isinstance(meta, Mapping):
        result["metadata"] = {k: v for k, v in meta.items() if k not in VOLATILE_METADATA}
    return result


class Controller:
    """Drives reconcilers for all keys and schedules their next passes."""

    def __init__(
        self,
        reconcilers: Mapping[str, Reconciler],
        policy: ErrorPolicy = error_policy,
        settings: Settings = default_settings,
    ):
        self.reconcilers = dict(reconcilers)
        self.policy = policy
        self.settings = settings
        self._workers = asyncio.Semaphore(max(1, settings.MAX_WORKERS))
        self._locks: Dict[ObjectKey, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._bodies: Dict[ObjectKey, Mapping[str, Any]] = {}
        self._timers: Dict[ObjectKey, asyncio.TimerHandle] = {}
        self._requeues: Set[asyncio.Task] = set()

    async def trigger(self, key: ObjectKey, body: Mapping[str, Any]) -> Optional[float]:
        """
        Reconcile the key with its latest body and arm the requeue timer.

        Returns the delay until the next pass, or None if none is scheduled.
        """
        self._bodies[key] = body
        return await self._run(key)

    def refresh(self, key: ObjectKey, body: Mapping[str, Any]) -> bool:
        """
        Remember a newer body without running a pass.

        Returns True if the key is new or the body differs from the previous
        one in more than its status and server-side bookkeeping.
        """
        previous = self._bodies.get(key)
        self._bodies[key] = body
        return previous is None or essence(previous) != essence(body)

    def forget(self, key: ObjectKey) -> None:
        """Drop everything known about a key (the object is gone)."""
        self._cancel_timer(key)
        self._bodies.pop(key, None)
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
        logger.debug(f"Forgot {key}")

    def pending(self, key: ObjectKey) -> bool:
        return key in self._timers

    async def close(self) -> None:
        for key in list(self._timers):
            self._cancel_timer(key)
        for task in list(self._requeues):
            task.cancel()
        await asyncio.gather(*self._requeues, return_exceptions=True)
        self._requeues.clear()

    async def _run(self, key: ObjectKey) -> Optional[float]:
        async with self._locks[key]:
            self._cancel_timer(key)
            body = self._bodies.get(key)
            if body is None:
                return None

            reconciler = self.reconcilers[key.kind]
            try:
                async with self._workers:
                    outcome = await reconciler.reconcile(body)
                delay = outcome.requeue_after
            except ReconcileError as e:
                delay = self.policy(e, key, self.settings)
            except Exception as e:
                logger.exception(f"Unexpected failure reconciling {key}")
                delay = self.policy(ClusterApiError.from_exception(e), key, self.settings)

            if delay is not None and key in self._bodies:
                self._schedule(key, delay)
            return delay

    def _schedule(self, key: ObjectKey, delay: float) -> None:
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(delay, self._fire, key)
        logger.debug(f"Requeue {key} in {delay}s")

    def _fire(self, key: ObjectKey) -> None:
        self._timers.pop(key, None)
        if key not in self._bodies:
            return
        task = asyncio.ensure_future(self._run(key))
        self._requeues.add(task)
        task.add_done_callback(self._requeues.discard)

    def _cancel_timer(self, key: ObjectKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
