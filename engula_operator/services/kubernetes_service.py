"""
Kubernetes service layer — the cluster API calls made by the reconcilers.

Design principles:
  - Async facade: the blocking kubernetes client runs in worker threads,
    so one slow call never stalls other resources
  - Idempotent: create treats "already exists" as success
  - Clean error handling: 404/409 become return values, everything else
    propagates as ApiException
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from kubernetes import client, config
from kubernetes.client import ApiException

from engula_operator.config import Settings, settings as default_settings
from engula_operator.kinds import KindConfig

logger = logging.getLogger("kubernetes_service")

APPLY_PATCH_CONTENT_TYPE = "application/apply-patch+yaml"

_k8s_loaded = False


def _ensure_k8s(settings: Settings = default_settings) -> None:
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=settings.KUBECONFIG or None)
    _k8s_loaded = True


class ClusterClient:
    """Typed get/create/patch operations against the cluster API."""

    def __init__(self, settings: Settings = default_settings, api_client: Optional[client.ApiClient] = None):
        if api_client is None:
            _ensure_k8s(settings)
            api_client = client.ApiClient()
        self.settings = settings
        self.api_client = api_client
        self.apps = client.AppsV1Api(api_client)
        self.custom = client.CustomObjectsApi(api_client)

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        return self.api_client.sanitize_for_serialization(obj)

    async def get_deployment(self, name: str, namespace: str) -> Optional[Dict[str, Any]]:
        """Get a Deployment by name. Returns None if it does not exist."""
        try:
            deployment = await asyncio.to_thread(
                self.apps.read_namespaced_deployment, name=name, namespace=namespace
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_dict(deployment)

    async def create_deployment(self, namespace: str, body: Dict[str, Any]) -> bool:
        """Create a Deployment idempotently. Returns True if created, False if existed."""
        name = body["metadata"]["name"]
        try:
            await asyncio.to_thread(
                self.apps.create_namespaced_deployment, namespace=namespace, body=body
            )
        except ApiException as e:
            if e.status == 409:
                logger.info(f"Deployment {namespace}/{name} already exists")
                return False
            raise
        logger.info(f"Deployment {namespace}/{name} created")
        return True

    async def patch_status(
        self,
        kind: KindConfig,
        name: str,
        namespace: str,
        status: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Server-side apply the status subresource.

        Only fields owned by our field manager are touched; ``force`` takes
        over conflicting fields from other managers.
        """
        document = {
            "apiVersion": kind.api_version,
            "kind": kind.kind,
            "status": status,
        }
        return await asyncio.to_thread(
            self.custom.patch_namespaced_custom_object_status,
            group=kind.group,
            version=kind.version,
            namespace=namespace,
            plural=kind.plural,
            name=name,
            body=document,
            field_manager=self.settings.FIELD_MANAGER,
            force=True,
            _content_type=APPLY_PATCH_CONTENT_TYPE,
        )

    async def list_resources(self, kind: KindConfig, limit: int = 1) -> Dict[str, Any]:
        """List custom resources cluster-wide; used to check the CRD is installed."""
        return await asyncio.to_thread(
            self.custom.list_cluster_custom_object,
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            limit=limit,
        )
