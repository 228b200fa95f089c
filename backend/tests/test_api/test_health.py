"""Tests for the /health endpoint."""

from unittest.mock import patch

from app.api.health import set_sandbox_provider
from app.main import app
from fastapi.testclient import TestClient


def test_health_reports_checks():
    set_sandbox_provider("none")
    try:
        resp = TestClient(app).get("/health")
    finally:
        set_sandbox_provider(None)

    assert resp.status_code == 200
    data = resp.json()
    assert data["checks"]["database"]["status"] == "ok"
    assert data["checks"]["sandbox"]["detail"] == "provider=none"
    assert data["status"] in ("healthy", "degraded")


def test_health_degraded_without_default_key():
    set_sandbox_provider("container")
    try:
        with patch("app.api.health.settings") as mock_settings:
            mock_settings.anthropic_api_key = ""
            data = TestClient(app).get("/health").json()
    finally:
        set_sandbox_provider(None)

    assert data["status"] == "degraded"
    assert data["checks"]["engine"]["status"] == "warning"
