"""Tests for system endpoints."""

from fastapi import status
from fastapi.testclient import TestClient


def test_system_config(client: TestClient) -> None:
    """Test system configuration endpoint."""
    r = client.get("/api/v1/system/config")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert set(data) == {"app", "auth", "rate_limit"}
    assert data["auth"]["max_devices"] == 2
    assert data["rate_limit"] == {"backend": "memory", "window_ms": 60_000, "max_requests": 100}


def test_system_config_hides_secrets(client: TestClient) -> None:
    body = client.get("/api/v1/system/config").text
    assert "test-access-secret" not in body
    assert "test-refresh-secret" not in body
    assert "sqlite" not in body
