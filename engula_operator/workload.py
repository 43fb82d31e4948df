"""
Desired Deployment for a Journal or Storage resource.

The synthesizer knows nothing about the cluster: the same inputs always
produce the same document, so re-running it on every pass is safe.
"""
import copy
from typing import Any, Dict, List, Optional

from engula_operator.config import settings
from engula_operator.hierarchies import append_owner_reference
from engula_operator.kinds import KindConfig


def workload_labels(name: str) -> Dict[str, str]:
    """Labels shared by the Deployment, its selector and its pods."""
    return {"app": name}


def _identity_env(kind: KindConfig, name: str, namespace: str) -> List[Dict[str, str]]:
    if not kind.env_prefix:
        return []
    return [
        {"name": f"{kind.env_prefix}_NAME", "value": name},
        {"name": f"{kind.env_prefix}_NAMESPACE", "value": namespace},
    ]


def _merge_env(base: List[Dict[str, Any]], overrides: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    names = {e["name"] for e in overrides}
    return [e for e in base if e.get("name") not in names] + overrides


def build_container(
    kind: KindConfig,
    name: str,
    namespace: str,
    base: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the single workload container.

    ``base`` is the first container of the resource template, if any: its
    extra fields (resources, ports, env, image) are kept, but the name,
    command and args always follow the kind convention.
    """
    container = copy.deepcopy(base) if base else {}
    container["name"] = name
    container.setdefault("image", kind.image)
    container.setdefault("imagePullPolicy", settings.IMAGE_PULL_POLICY)
    container["command"] = [kind.command]
    container["args"] = [name]

    env = _merge_env(container.get("env") or [], _identity_env(kind, name, namespace))
    if env:
        container["env"] = env
    else:
        container.pop("env", None)
    return container


def build_deployment(
    kind: KindConfig,
    name: str,
    namespace: str,
    template: Optional[Dict[str, Any]] = None,
    owner_reference: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the desired apps/v1 Deployment for a resource."""
    labels = workload_labels(name)
    template = template or {}
    template_meta = template.get("metadata") or {}
    pod_spec = copy.deepcopy(template.get("spec") or {})

    template_containers = pod_spec.pop("containers", None) or []
    base = template_containers[0] if template_containers else None
    pod_spec["containers"] = [build_container(kind, name, namespace, base)]

    pod_meta: Dict[str, Any] = {
        "labels": {**(template_meta.get("labels") or {}), **labels},
    }
    if template_meta.get("annotations"):
        pod_meta["annotations"] = dict(template_meta["annotations"])

    deployment = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels),
        },
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": pod_meta,
                "spec": pod_spec,
            },
        },
    }
    if owner_reference is not None:
        append_owner_reference(deployment, owner_reference)
    return deployment
