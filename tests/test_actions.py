import pytest

from engula_operator.actions import Action, determine_action
from engula_operator.models import CustomResource

from conftest import make_body


@pytest.mark.parametrize('finalizers', [None, [], ['engula.io/cleanup']])
def test_deletion_timestamp_wins_over_finalizers(finalizers):
    body = make_body(finalizers=finalizers, deletion_timestamp='2026-01-01T00:00:00Z')
    assert determine_action(CustomResource.parse(body)) is Action.DELETE


@pytest.mark.parametrize('finalizers', [None, []])
def test_unadopted_resource_is_created(finalizers):
    body = make_body(finalizers=finalizers)
    assert determine_action(CustomResource.parse(body)) is Action.CREATE


def test_adopted_resource_is_left_alone():
    body = make_body(finalizers=['engula.io/cleanup'])
    assert determine_action(CustomResource.parse(body)) is Action.NOOP


def test_empty_body_is_created():
    assert determine_action(CustomResource()) is Action.CREATE
