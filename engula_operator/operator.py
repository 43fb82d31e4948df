"""
Engula Operator — kopf handlers for Journal and Storage resources.

Architecture:
  Journal / Storage CRDs → kopf watch-events → Controller (per-object queue):
    1. Classify: Create / Delete / NoOp
    2. Status server-side apply (every pass)
    3. Ensure the Deployment exists (Create)
    4. Requeue after 30 minutes, or never after Delete

  Failures → fixed 6-minute retry, the operator itself keeps running.

The controller, its reconcilers and the shared state travel to the handlers
through kopf's memo; nothing here is a module-level global.
"""

import logging

import kopf

from engula_operator import config
from engula_operator.kinds import JOURNAL, KINDS, STORAGE, KindConfig, ObjectKey
from engula_operator.queueing import Controller
from engula_operator.reconciler import Reconciler
from engula_operator.services.kubernetes_service import ClusterClient
from engula_operator.state import Metrics, State

logger = logging.getLogger("engula-operator")

CRD_GROUP = config.settings.CRD_GROUP
CRD_VERSION = config.settings.CRD_VERSION


def build_controller(cluster, state: State, metrics: Metrics) -> Controller:
    reconcilers = {
        kind.kind: Reconciler(kind, cluster, state, metrics, config.settings)
        for kind in KINDS
    }
    return Controller(reconcilers, settings=config.settings)


async def ensure_crds_installed(cluster) -> None:
    """Fail startup early if a CRD is missing, rather than watching nothing."""
    for kind in KINDS:
        try:
            await cluster.list_resources(kind, limit=1)
        except Exception as e:
            raise kopf.PermanentError(
                f"Listing {kind.plural}.{kind.group} failed, is the CRD installed? {e}"
            ) from e


# ---------------------------------------------------------------------------
# Kopf operator settings
# ---------------------------------------------------------------------------

@kopf.on.startup()
async def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **kwargs):
    settings.posting.enabled = True

    # State and metrics arrive from the entrypoint when run through main.
    if getattr(memo, "state", None) is None:
        memo.state = State()
    if getattr(memo, "metrics", None) is None:
        memo.metrics = Metrics()
    if getattr(memo, "cluster", None) is None:
        memo.cluster = ClusterClient(config.settings)

    await ensure_crds_installed(memo.cluster)
    memo.controller = build_controller(memo.cluster, memo.state, memo.metrics)
    logger.info(
        f"Engula Operator started (group={CRD_GROUP}, "
        f"kinds={[k.kind for k in KINDS]}, max_workers={config.settings.MAX_WORKERS})"
    )


@kopf.on.cleanup()
async def shutdown(memo: kopf.Memo, **kwargs):
    controller = getattr(memo, "controller", None)
    if controller is not None:
        await controller.close()
    logger.info("Engula Operator stopped")


# ---------------------------------------------------------------------------
# Watch-event handlers: every event is a reconciliation trigger
# ---------------------------------------------------------------------------

async def handle_event(kind: KindConfig, event, body, memo: kopf.Memo, logger) -> None:
    meta = body.get("metadata", {})
    key = ObjectKey(kind.kind, meta.get("namespace") or "", meta.get("name") or "")
    controller: Controller = memo.controller

    if event.get("type") == "DELETED":
        controller.forget(key)
        logger.info(f"{kind.kind} {key.namespace}/{key.name} deleted, forgetting it")
        return

    # Our own status patches come back as MODIFIED events; the armed timer covers them.
    if event.get("type") == "MODIFIED" and not controller.refresh(key, dict(body)):
        logger.debug(f"{kind.kind} {key.namespace}/{key.name}: status-only change, skipping")
        return

    delay = await controller.trigger(key, dict(body))
    logger.debug(f"{kind.kind} {key.namespace}/{key.name}: next pass in {delay}s")


@kopf.on.event(CRD_GROUP, CRD_VERSION, JOURNAL.plural)
async def journal_event(event, body, memo: kopf.Memo, logger, **kwargs):
    await handle_event(JOURNAL, event, body, memo, logger)


@kopf.on.event(CRD_GROUP, CRD_VERSION, STORAGE.plural)
async def storage_event(event, body, memo: kopf.Memo, logger, **kwargs):
    await handle_event(STORAGE, event, body, memo, logger)
