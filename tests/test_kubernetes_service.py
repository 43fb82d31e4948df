from unittest.mock import Mock

import pytest
from kubernetes import client
from kubernetes.client import ApiException

from engula_operator.kinds import JOURNAL, STORAGE
from engula_operator.services.kubernetes_service import APPLY_PATCH_CONTENT_TYPE, ClusterClient


@pytest.fixture()
def service(settings):
    service = ClusterClient(settings, api_client=client.ApiClient())
    service.apps = Mock()
    service.custom = Mock()
    return service


async def test_get_deployment_serializes_model(service):
    service.apps.read_namespaced_deployment.return_value = client.V1Deployment(
        metadata=client.V1ObjectMeta(name='j1', namespace='ns1'),
        status=client.V1DeploymentStatus(ready_replicas=1),
    )

    deployment = await service.get_deployment('j1', 'ns1')

    service.apps.read_namespaced_deployment.assert_called_once_with(name='j1', namespace='ns1')
    assert deployment['metadata'] == {'name': 'j1', 'namespace': 'ns1'}
    assert deployment['status'] == {'readyReplicas': 1}


async def test_get_missing_deployment_returns_none(service):
    service.apps.read_namespaced_deployment.side_effect = ApiException(status=404)

    assert await service.get_deployment('j1', 'ns1') is None


async def test_get_deployment_propagates_other_errors(service):
    service.apps.read_namespaced_deployment.side_effect = ApiException(status=500)

    with pytest.raises(ApiException):
        await service.get_deployment('j1', 'ns1')


async def test_create_deployment(service):
    body = {'metadata': {'name': 'j1'}}

    assert await service.create_deployment('ns1', body) is True
    service.apps.create_namespaced_deployment.assert_called_once_with(namespace='ns1', body=body)


async def test_create_existing_deployment_is_idempotent(service):
    service.apps.create_namespaced_deployment.side_effect = ApiException(status=409)

    assert await service.create_deployment('ns1', {'metadata': {'name': 'j1'}}) is False


async def test_create_deployment_propagates_other_errors(service):
    service.apps.create_namespaced_deployment.side_effect = ApiException(status=403)

    with pytest.raises(ApiException):
        await service.create_deployment('ns1', {'metadata': {'name': 'j1'}})


async def test_patch_status_is_server_side_apply(service):
    status = {'deployment_status': None, 'last_reconciled': '2026-10-19T00:00:00Z'}

    await service.patch_status(STORAGE, 's1', 'ns1', status)

    service.custom.patch_namespaced_custom_object_status.assert_called_once_with(
        group='engula.io',
        version='v1alpha1',
        namespace='ns1',
        plural='storages',
        name='s1',
        body={'apiVersion': 'engula.io/v1alpha1', 'kind': 'Storage', 'status': status},
        field_manager='cntrlr',
        force=True,
        _content_type=APPLY_PATCH_CONTENT_TYPE,
    )


async def test_list_resources(service):
    service.custom.list_cluster_custom_object.return_value = {'items': []}

    result = await service.list_resources(JOURNAL, limit=1)

    assert result == {'items': []}
    service.custom.list_cluster_custom_object.assert_called_once_with(
        group='engula.io', version='v1alpha1', plural='journals', limit=1,
    )
