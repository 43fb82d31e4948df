import copy

import pytest
from prometheus_client import CollectorRegistry

from engula_operator import events
from engula_operator.config import Settings
from engula_operator.kinds import JOURNAL, STORAGE
from engula_operator.reconciler import Reconciler
from engula_operator.state import Metrics, State


class FakeCluster:
    """In-memory stand-in for ClusterClient."""

    def __init__(self):
        self.deployments = {}
        self.status_patches = []
        self.gets = 0
        self.creates = 0
        self.get_error = None
        self.create_error = None
        self.patch_error = None

    async def get_deployment(self, name, namespace):
        self.gets += 1
        if self.get_error is not None:
            raise self.get_error
        deployment = self.deployments.get((namespace, name))
        return copy.deepcopy(deployment)

    async def create_deployment(self, namespace, body):
        self.creates += 1
        if self.create_error is not None:
            raise self.create_error
        key = (namespace, body["metadata"]["name"])
        if key in self.deployments:
            return False
        self.deployments[key] = dict(copy.deepcopy(body), status={"replicas": 1})
        return True

    async def patch_status(self, kind, name, namespace, status):
        if self.patch_error is not None:
            raise self.patch_error
        self.status_patches.append((kind.kind, namespace, name, copy.deepcopy(status)))
        return {"status": status}

    async def list_resources(self, kind, limit=1):
        return {"items": []}


def make_body(kind=JOURNAL, name="j1", namespace="ns1", uid="abc-123",
              finalizers=None, deletion_timestamp=None, template=None, status=None):
    metadata = {"name": name, "uid": uid}
    if namespace is not None:
        metadata["namespace"] = namespace
    if finalizers is not None:
        metadata["finalizers"] = finalizers
    if deletion_timestamp is not None:
        metadata["deletionTimestamp"] = deletion_timestamp
    body = {
        "apiVersion": kind.api_version,
        "kind": kind.kind,
        "metadata": metadata,
        "spec": {"template": template} if template is not None else {},
    }
    if status is not None:
        body["status"] = status
    return body


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    monkeypatch.setattr(events, "_get_redis", lambda: None)


@pytest.fixture()
def settings():
    return Settings(
        REQUEUE_AFTER_SECONDS=1800,
        AMBIGUOUS_REQUEUE_SECONDS=5,
        ERROR_REQUEUE_SECONDS=360,
        REDIS_URL="",
    )


@pytest.fixture()
def registry():
    return CollectorRegistry()


@pytest.fixture()
def metrics(registry):
    return Metrics(registry=registry)


@pytest.fixture()
def state():
    return State(reporter="engula-operator")


@pytest.fixture()
def cluster():
    return FakeCluster()


@pytest.fixture()
def journal_reconciler(cluster, state, metrics, settings):
    return Reconciler(JOURNAL, cluster, state, metrics, settings)


@pytest.fixture()
def storage_reconciler(cluster, state, metrics, settings):
    return Reconciler(STORAGE, cluster, state, metrics, settings)
