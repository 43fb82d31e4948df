from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from engula_operator.main import app, bind_state


@pytest.fixture()
def client(state, metrics):
    bind_state(state, metrics)
    return TestClient(app)


def test_state_endpoint(client):
    response = client.get('/')

    assert response.status_code == 200
    data = response.json()
    assert data['reporter'] == 'engula-operator'
    assert datetime.fromisoformat(data['last_event'].replace('Z', '+00:00')) <= datetime.now(timezone.utc)


def test_metrics_endpoint(client, metrics):
    metrics.observe(0.5)

    response = client.get('/metrics')

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/plain')
    assert 'engula_controller_handled_events_total 1.0' in response.text
    assert 'engula_controller_reconcile_duration_seconds_count 1.0' in response.text


def test_health_endpoint(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.json()['status'] == 'healthy'
