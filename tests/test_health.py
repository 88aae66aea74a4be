"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, environment, and components fields
  - components.database reports 'ok' against a reachable store
  - No authentication required
  - A store that cannot be reached reports "degraded" with database "error"
"""

from __future__ import annotations

from core.errors import StoreError, StoreTimeout


def test_health_returns_200_with_components(api_client):
    """Health endpoint returns 200 with status, version, and components."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_unknown_route_uses_error_envelope(api_client):
    """Routing 404s carry the same error envelope as application errors."""
    client, _, _ = api_client
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"


def test_health_degraded_when_store_fails(api_client, monkeypatch):
    """A failing ping still answers 200, but flags the database component."""
    client, _, _ = api_client

    def failing_ping():
        raise StoreError("users.ping failed")

    monkeypatch.setattr(client.app.state.user_store, "ping", failing_ping)
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "degraded"
    assert data["components"] == {"app": "ok", "database": "error"}


def test_health_degraded_on_store_timeout(api_client, monkeypatch):
    client, _, _ = api_client

    def slow_ping():
        raise StoreTimeout("users.ping timed out")

    monkeypatch.setattr(client.app.state.user_store, "ping", slow_ping)
    assert client.get("/api/v1/health").json()["status"] == "degraded"
