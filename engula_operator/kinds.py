"""
Per-kind conventions shared by the generic reconciler.

Journal and Storage reconcile the same way; they differ only in the
plural used by the API, the default image, the container command and
whether identity env vars are injected.
"""
from dataclasses import dataclass
from typing import NamedTuple, Optional

from engula_operator.config import settings


class ObjectKey(NamedTuple):
    """Identity of one resource instance in the work queue."""
    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


@dataclass(frozen=True)
class KindConfig:
    kind: str
    plural: str
    image: str
    command: str
    env_prefix: Optional[str] = None
    group: str = settings.CRD_GROUP
    version: str = settings.CRD_VERSION

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


JOURNAL = KindConfig(
    kind="Journal",
    plural="journals",
    image=settings.JOURNAL_IMAGE,
    command="journal",
    env_prefix="JOURNAL",
)

STORAGE = KindConfig(
    kind="Storage",
    plural="storages",
    image=settings.STORAGE_IMAGE,
    command="storage",
)

KINDS = (JOURNAL, STORAGE)
