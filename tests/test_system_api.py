"""Tests for health, status, discovery and error envelopes."""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from mkcert_web.exceptions import CommandTimeout, SubprocessFailure
from mkcert_web.main import create_app
from mkcert_web.utils import rate_limit
from mkcert_web.utils.rate_limit import limiter


def test_health(client):
    data = client.get("/api/health").json()
    assert data["status"] == "ok"
    assert data["version"] == "1.0.0"
    assert data["uptime"] >= 0


def test_status_reports_ca(client, caroot):
    data = client.get("/api/status").json()
    assert data["caExists"] is True
    assert data["caRoot"] == str(caroot)
    assert data["features"]["authentication"] is False


def test_status_survives_missing_mkcert(client, runner):
    runner.responses["mkcert -CAROOT"] = SubprocessFailure("Command not found: mkcert")
    data = client.get("/api/status").json()
    assert data["success"] is True
    assert data["caExists"] is False
    assert data["caRoot"] is None


def test_status_survives_hanging_mkcert(client, runner):
    runner.responses["mkcert -CAROOT"] = CommandTimeout("mkcert -CAROOT", 30)
    response = client.get("/api/status")
    assert response.status_code == 200
    assert response.json()["caExists"] is False


def test_system_info(client):
    data = client.get("/api/system").json()
    assert data["cpus"] >= 1
    assert data["totalmem"] > 0


def test_client_config(client):
    data = client.get("/api/config").json()
    assert data["auth"] == {"enabled": False}
    assert data["features"]["rateLimiting"] is False


def test_api_catalogue(client):
    data = client.get("/api").json()
    assert "/api/execute" in data["endpoints"]["certificates"]


def test_rate_limit_status(client):
    data = client.get("/api/rate-limit/status").json()
    assert data["rateLimiting"]["enabled"] is False
    assert set(data["rateLimiting"]["limits"]) == {"cli", "api", "auth", "general"}


def test_unknown_route(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {
        "success": False, "error": "Route not found", "path": "/api/nothing-here", "method": "GET"
    }


def test_unexpected_errors_are_masked(settings, runner):
    app = create_app(settings=settings, runner=runner)
    client = TestClient(app, raise_server_exceptions=False)
    with patch.object(app.state.store, "list_files", side_effect=RuntimeError("disk on fire")):
        response = client.get("/api/files")
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_audit_limit_is_bounded(client):
    assert client.get("/api/audit", params={"limit": 5000}).status_code == 400


def test_auth_rate_limit(settings, runner, app):
    settings.ENABLE_AUTH = True
    settings.RATE_LIMIT_ENABLED = True
    settings.AUTH_RATE_LIMIT = "2 per minute"
    limiter.reset()
    limiter.enabled = True
    client = TestClient(app)

    with patch.object(rate_limit, "settings", settings):
        codes = [client.post("/api/auth/login", json={"username": "admin", "password": "x"}).status_code
                 for _ in range(3)]

    assert codes == [401, 401, 429]


@pytest.mark.parametrize("forwarded, expected", [(None, 307), ("https", 200)])
def test_force_https_redirect(settings, runner, forwarded, expected):
    settings.ENABLE_HTTPS = True
    settings.FORCE_HTTPS = True
    client = TestClient(create_app(settings=settings, runner=runner))
    headers = {"x-forwarded-proto": forwarded} if forwarded else {}
    response = client.get("/api/health", headers=headers, follow_redirects=False)
    assert response.status_code == expected
    if expected == 307:
        assert response.headers["location"] == "https://testserver:3443/api/health"
