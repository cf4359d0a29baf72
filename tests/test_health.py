"""Tests for the health check endpoint."""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock
from domatrend.main import app


def _session_factory(error=None):
    session = AsyncMock()
    if error is not None:
        session.execute.side_effect = error
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=session)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _worker(done=False):
    worker = MagicMock()
    worker.done.return_value = done
    worker.cancelled.return_value = False
    return worker


@pytest.fixture
def client():
    """Test client for health check tests."""
    return TestClient(app)


def test_health_check_all_healthy(client):
    """Health check returns 200 when all components are healthy."""
    app.state.session_factory = _session_factory()
    app.state.poll_worker_task = _worker()
    app.state.refresher_worker_task = _worker()

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"]["status"] == "healthy"
    assert data["checks"]["poll_worker"]["status"] == "healthy"
    assert data["checks"]["refresher_worker"]["status"] == "healthy"


def test_health_check_database_down(client):
    """Health check returns 503 when the database is unreachable."""
    app.state.session_factory = _session_factory(error=Exception("Connection refused"))
    app.state.poll_worker_task = _worker()
    app.state.refresher_worker_task = _worker()

    response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["checks"]["database"]["status"] == "unhealthy"
    assert "Connection refused" in data["checks"]["database"]["error"]


def test_health_check_worker_stopped(client):
    """Health check returns 503 when a worker is stopped."""
    app.state.session_factory = _session_factory()
    app.state.poll_worker_task = _worker(done=True)
    app.state.refresher_worker_task = _worker()

    response = client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["checks"]["poll_worker"]["status"] == "unhealthy"
    assert data["checks"]["refresher_worker"]["status"] == "healthy"


def test_metrics_endpoint_exposes_pipeline_counters(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "domatrend_poll_cycles" in response.text
