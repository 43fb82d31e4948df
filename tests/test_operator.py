from unittest.mock import AsyncMock, Mock

import kopf
import pytest

from engula_operator.kinds import JOURNAL, STORAGE, ObjectKey
from engula_operator.operator import build_controller, ensure_crds_installed, handle_event

from conftest import FakeCluster, make_body


@pytest.fixture()
def memo():
    controller = Mock()
    controller.trigger = AsyncMock(return_value=1800)
    return kopf.Memo(controller=controller)


async def test_event_triggers_reconciliation(memo):
    body = make_body()

    await handle_event(JOURNAL, {'type': 'MODIFIED', 'object': body}, body, memo, Mock())

    memo.controller.trigger.assert_awaited_once_with(ObjectKey('Journal', 'ns1', 'j1'), body)
    memo.controller.forget.assert_not_called()


async def test_initial_listing_triggers_reconciliation(memo):
    body = make_body(kind=STORAGE, name='s1')

    await handle_event(STORAGE, {'type': None, 'object': body}, body, memo, Mock())

    memo.controller.trigger.assert_awaited_once_with(ObjectKey('Storage', 'ns1', 's1'), body)


async def test_deleted_event_forgets_key(memo):
    body = make_body()

    await handle_event(JOURNAL, {'type': 'DELETED', 'object': body}, body, memo, Mock())

    memo.controller.forget.assert_called_once_with(ObjectKey('Journal', 'ns1', 'j1'))
    memo.controller.trigger.assert_not_called()


def test_controller_has_a_reconciler_per_kind(cluster, state, metrics):
    controller = build_controller(cluster, state, metrics)

    assert set(controller.reconcilers) == {'Journal', 'Storage'}
    assert controller.reconcilers['Journal'].kind is JOURNAL
    assert controller.reconcilers['Storage'].kind is STORAGE


async def test_crd_check_passes(cluster):
    await ensure_crds_installed(cluster)


async def test_missing_crd_stops_startup():
    cluster = FakeCluster()
    cluster.list_resources = AsyncMock(side_effect=RuntimeError('404 Not Found'))

    with pytest.raises(kopf.PermanentError):
        await ensure_crds_installed(cluster)


async def test_status_only_modification_is_skipped(cluster, state, metrics):
    controller = build_controller(cluster, state, metrics)
    memo = kopf.Memo(controller=controller)
    body = make_body()
    echoed = make_body(status={'deployment_status': {'replicas': 1}})
    changed = make_body(finalizers=['engula.io/cleanup'])
    try:
        await handle_event(JOURNAL, {'type': None, 'object': body}, body, memo, Mock())
        await handle_event(JOURNAL, {'type': 'MODIFIED', 'object': echoed}, echoed, memo, Mock())
        assert len(cluster.status_patches) == 1

        await handle_event(JOURNAL, {'type': 'MODIFIED', 'object': changed}, changed, memo, Mock())
        assert len(cluster.status_patches) == 2
    finally:
        await controller.close()
