"""
tests/test_health.py -- Integration tests for GET /api/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' against a live store, 'error' when it is down
  - No authentication required
"""

from __future__ import annotations

from unittest.mock import MagicMock


def test_health_returns_200_with_components(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_reports_database_error(client, store, monkeypatch):
    monkeypatch.setattr(store, "ping", MagicMock(return_value=False))
    data = client.get("/api/health").json()
    assert data["components"]["database"] == "error"


def test_health_no_auth_required(secured_client):
    resp = secured_client.get("/api/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
