"""
Owner references from managed workloads back to their custom resource.
"""
from typing import Any, Dict, MutableMapping

from engula_operator.errors import MissingObjectKey
from engula_operator.kinds import KindConfig
from engula_operator.models import ObjectMeta


def build_owner_reference(kind: KindConfig, meta: ObjectMeta) -> Dict[str, Any]:
    """
    Build a controller owner reference pointing at the resource.

    Name and uid are always set on persisted objects; their absence means
    the body did not come from the cluster store.
    """
    if not meta.name:
        raise MissingObjectKey(".metadata.name")
    if not meta.uid:
        raise MissingObjectKey(".metadata.uid")
    return {
        "apiVersion": kind.api_version,
        "kind": kind.kind,
        "name": meta.name,
        "uid": meta.uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def append_owner_reference(obj: MutableMapping[str, Any], owner_ref: Dict[str, Any]) -> None:
    """Append an owner reference to the object, if it is not yet there."""
    refs = obj.setdefault("metadata", {}).setdefault("ownerReferences", [])
    if not any(ref.get("uid") == owner_ref["uid"] for ref in refs):
        refs.append(dict(owner_ref))
