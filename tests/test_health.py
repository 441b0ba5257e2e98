"""
tests/test_health.py -- Integration tests for GET /api/v1/health and the error envelope.

Covers:
  - 200 response with status and version, no authentication required
  - Unknown routes return the shared error envelope with code not_found
  - Request validation failures return 400 validation_error
"""

from __future__ import annotations


def test_health_returns_200(api):
    resp = api.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_no_auth_required(api):
    resp = api.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_route_uses_error_envelope(api):
    resp = api.client.get("/api/v1/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "not_found"
    assert "message" in body


def test_validation_error_is_400(api):
    resp = api.client.post("/api/v1/auth/register", json={"email": "not-an-email"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "validation_error"
