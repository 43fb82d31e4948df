from enum import Enum

from engula_operator.models import CustomResource


class Action(str, Enum):
    """Action to be taken upon a resource during reconciliation."""
    CREATE = "Create"   # the managed workload must exist
    DELETE = "Delete"   # the resource is being torn down
    NOOP = "NoOp"       # already adopted, nothing to do


def determine_action(resource: CustomResource) -> Action:
    """
    Decide what a reconciliation pass should do, from lifecycle markers only.

    A deletion timestamp wins over everything else. Without one, a resource
    with no finalizers has not been adopted yet and gets its workload.
    """
    meta = resource.metadata
    if meta.deletionTimestamp:
        return Action.DELETE
    if not meta.finalizers:
        return Action.CREATE
    return Action.NOOP
