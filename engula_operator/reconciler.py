"""
The reconciliation engine for Journal and Storage resources.

One pass, level-triggered:
  1. Touch the process state, start the duration timer
  2. Resolve identity, classify the action (Create / Delete / NoOp)
  3. Observe the managed Deployment (skipped when deleting)
  4. Server-side apply the status subresource (always, once)
  5. Create the Deployment if it is missing
  6. Record metrics, log, return the next requeue delay

The pass is safe to repeat: an unchanged resource only gets its status
re-applied. Failures surface as ReconcileError and are turned into a
retry delay by ``error_policy``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from kubernetes.client import ApiException

from engula_operator.actions import Action, determine_action
from engula_operator.config import Settings, settings as default_settings
from engula_operator.errors import ClusterApiError, MissingObjectKey, ReconcileError
from engula_operator.events import publish_event
from engula_operator.hierarchies import build_owner_reference
from engula_operator.kinds import KindConfig, ObjectKey
from engula_operator.models import CustomResource
from engula_operator.state import Metrics, State
from engula_operator.telemetry import TraceLogger, get_trace_id
from engula_operator.workload import build_deployment

logger = logging.getLogger("reconciler")


@dataclass(frozen=True)
class ReconcileOutcome:
    """Result of a successful pass: when to look at the resource again."""
    requeue_after: Optional[float]

    @classmethod
    def requeue(cls, seconds: float) -> "ReconcileOutcome":
        return cls(requeue_after=seconds)

    @classmethod
    def await_change(cls) -> "ReconcileOutcome":
        return cls(requeue_after=None)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Reconciler:
    """Generic reconciler, parameterised by the kind's conventions."""

    def __init__(
        self,
        kind: KindConfig,
        cluster: Any,
        state: State,
        metrics: Metrics,
        settings: Settings = default_settings,
    ):
        self.kind = kind
        self.cluster = cluster
        self.state = state
        self.metrics = metrics
        self.settings = settings

    async def reconcile(self, body: Mapping[str, Any]) -> ReconcileOutcome:
        start = time.monotonic()
        await self.state.touch()

        raw_meta = (body.get("metadata") or {}) if isinstance(body, Mapping) else {}
        name, namespace = raw_meta.get("name"), raw_meta.get("namespace")
        log = TraceLogger(logger, {
            "trace_id": get_trace_id(),
            "resource_kind": self.kind.kind,
            "resource_name": name,
            "resource_namespace": namespace,
        })
        try:
            return await self._reconcile(body, log)
        except ReconcileError as e:
            await self._report_failure(log, name, namespace, e)
            raise
        except Exception as e:
            error = ClusterApiError.from_exception(e)
            await self._report_failure(log, name, namespace, error)
            raise error from e
        finally:
            self.metrics.observe(time.monotonic() - start)

    async def _report_failure(self, log: TraceLogger, name: Any, namespace: Any, error: ReconcileError) -> None:
        # Reporting must never replace the original error.
        try:
            log.error(f"Failed to reconcile {self.kind.kind} \"{name}\" in {namespace}: {error}")
            if name and namespace:
                await asyncio.to_thread(
                    publish_event, self.kind.kind, namespace, name,
                    "RECONCILE_FAILED", str(error)[:200],
                )
        except Exception as e:
            logger.warning(f"Could not report failure for {self.kind.kind} {namespace}/{name}: {e}")

    async def _reconcile(self, body: Mapping[str, Any], log: TraceLogger) -> ReconcileOutcome:
        resource = CustomResource.parse(body)
        name = resource.metadata.name
        if not name:
            raise MissingObjectKey(".metadata.name")
        namespace = resource.metadata.namespace
        if not namespace:
            raise MissingObjectKey(".metadata.namespace")

        action = determine_action(resource)
        log.debug(f"{self.kind.kind} {namespace}/{name}: action={action.value}")

        current: Optional[Dict[str, Any]] = None
        ambiguous = False
        if action is not Action.DELETE:
            try:
                current = await self.cluster.get_deployment(name, namespace)
            except ApiException as e:
                raise ClusterApiError.from_exception(e) from e
            except Exception as e:
                log.warning(f"Unrecognized result looking up Deployment {namespace}/{name}: {e}")
                ambiguous = True

        await self._patch_status(resource, current, ambiguous)

        if ambiguous:
            outcome = ReconcileOutcome.requeue(self.settings.AMBIGUOUS_REQUEUE_SECONDS)
        elif action is Action.CREATE:
            if current is None:
                await self._create(resource, log)
            else:
                # Existing workloads are left as they are; no drift correction.
                log.debug(f"Deployment {namespace}/{name} exists, nothing to update")
            outcome = ReconcileOutcome.requeue(self.settings.REQUEUE_AFTER_SECONDS)
        elif action is Action.DELETE:
            # Owned objects are cascade-deleted by the garbage collector.
            outcome = ReconcileOutcome.await_change()
        else:
            outcome = ReconcileOutcome.requeue(self.settings.REQUEUE_AFTER_SECONDS)

        log.info(f"Reconciled {self.kind.kind} \"{name}\" in {namespace}")
        return outcome

    async def _patch_status(
        self,
        resource: CustomResource,
        current: Optional[Dict[str, Any]],
        ambiguous: bool,
    ) -> None:
        if current is not None:
            deployment_status = current.get("status")
        elif ambiguous and resource.status is not None:
            deployment_status = resource.status.deployment_status
        else:
            deployment_status = None
        status = {
            "deployment_status": deployment_status,
            "last_reconciled": _now(),
        }
        try:
            await self.cluster.patch_status(
                self.kind, resource.metadata.name, resource.metadata.namespace, status
            )
        except ApiException as e:
            raise ClusterApiError.from_exception(e) from e

    async def _create(self, resource: CustomResource, log: TraceLogger) -> None:
        name = resource.metadata.name
        namespace = resource.metadata.namespace
        owner_ref = build_owner_reference(self.kind, resource.metadata)
        deployment = build_deployment(
            self.kind, name, namespace,
            template=resource.spec.template,
            owner_reference=owner_ref,
        )
        try:
            created = await self.cluster.create_deployment(namespace, deployment)
        except ApiException as e:
            raise ClusterApiError.from_exception(e) from e
        if created:
            log.info(f"Deployment {namespace}/{name} created for {self.kind.kind}")
            try:
                await asyncio.to_thread(
                    publish_event, self.kind.kind, namespace, name,
                    "WORKLOAD_CREATED", f"Deployment {name} created",
                )
            except Exception as e:
                log.debug(f"Event publish failed (non-fatal): {e}")


def error_policy(error: ReconcileError, key: ObjectKey, settings: Settings = default_settings) -> float:
    """
    Decide when to retry a failed pass.

    Every failure kind gets the same fixed delay.
    """
    logger.warning(f"reconcile failed for {key}: {error!r}")
    return settings.ERROR_REQUEUE_SECONDS
