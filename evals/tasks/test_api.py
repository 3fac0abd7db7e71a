"""
Gateway evals -- FastAPI routes, bearer auth and rate limiting.
"""

import pytest
from fastapi.testclient import TestClient

from a11y_remediator import __version__
from a11y_remediator.api.gateway import create_app
from a11y_remediator.api.middleware.rate_limit import SlidingWindowLimiter, rate_limit_from_env
from a11y_remediator.orchestration.action_handler import ActionHandler

ENV_VARS = (
    "A11Y_API_KEY",
    "A11Y_ENV",
    "A11Y_AUTH_DISABLED",
    "A11Y_RATE_LIMIT_PER_MINUTE",
    "A11Y_CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def handler(mock_scanner, mock_executor, audit_logger, rollback_manager):
    return ActionHandler(
        scanner=mock_scanner,
        executor=mock_executor,
        audit_logger=audit_logger,
        rollback_manager=rollback_manager,
    )


@pytest.fixture
def client(handler):
    return TestClient(create_app(handler=handler))


def _invoke(client, action, attrs=None, headers=None, **params):
    return client.post(
        f"/api/v1/actions/{action}",
        json={"sessionId": "api-session", "parameters": params, "sessionAttributes": attrs or {}},
        headers=headers or {},
    )


class TestHealth:
    def test_liveness(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["version"] == __version__
        assert body["scanner_configured"] is True

    def test_readiness_without_collaborators(self, audit_logger):
        client = TestClient(create_app(handler=ActionHandler(audit_logger=audit_logger)))
        assert client.get("/health/ready").json() == {"ready": True, "checks": {}}

    def test_readiness_reports_unreachable_scanner(self, client, mock_scanner, mock_executor):
        mock_scanner.health_check.return_value = False
        mock_executor.health_check.return_value = True
        body = client.get("/health/ready").json()
        assert body["ready"] is False
        assert body["checks"] == {"scanner": False, "executor": True}


class TestCors:
    def test_origins_from_environment(self, handler, monkeypatch):
        monkeypatch.setenv("A11Y_CORS_ORIGINS", "https://dashboard.example.com, https://ops.example.com")
        client = TestClient(create_app(handler=handler))

        allowed = client.get("/health", headers={"Origin": "https://ops.example.com"})
        refused = client.get("/health", headers={"Origin": "http://localhost:3000"})

        assert allowed.headers["access-control-allow-origin"] == "https://ops.example.com"
        assert "access-control-allow-origin" not in refused.headers

    def test_localhost_by_default(self, client):
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestActions:
    def test_list_actions(self, client):
        actions = client.get("/api/v1/actions").json()["actions"]
        assert "StartScan" in actions
        assert "ResetSession" in actions

    def test_scan_then_plan(self, client):
        scan = _invoke(client, "StartScan", url="https://example.com")
        assert scan.status_code == 200
        body = scan.json()
        assert body["success"] is True
        assert body["data"]["violationCount"] == 2

        plan = _invoke(client, "PlanFix", body["sessionAttributes"])
        assert plan.json()["data"]["violationId"] == "v1"

    def test_parameter_list_form(self, client):
        response = client.post(
            "/api/v1/actions/StartScan",
            json={
                "sessionId": "api-session",
                "parameters": [{"name": "url", "type": "string", "value": "https://example.com"}],
            },
        )
        assert response.json()["success"] is True

    def test_action_failure_is_reported_in_body(self, client):
        attrs = {"current_url": "https://example.com"}
        response = _invoke(client, "NoSuchAction", attrs)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "UNKNOWN_ACTION"
        assert body["sessionAttributes"] == attrs

    def test_missing_session_id_is_422(self, client):
        response = client.post("/api/v1/actions/StartScan", json={"parameters": {}})
        assert response.status_code == 422


class TestAuth:
    def test_open_without_configured_key(self, client):
        assert client.get("/api/v1/actions").status_code == 200

    def test_missing_key_is_401(self, client, monkeypatch):
        monkeypatch.setenv("A11Y_API_KEY", "s3cret")
        assert client.get("/api/v1/actions").status_code == 401

    def test_wrong_key_is_403(self, client, monkeypatch):
        monkeypatch.setenv("A11Y_API_KEY", "s3cret")
        response = client.get("/api/v1/actions", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 403

    def test_correct_key(self, client, monkeypatch):
        monkeypatch.setenv("A11Y_API_KEY", "s3cret")
        response = _invoke(
            client, "GetSessionState", headers={"Authorization": "Bearer s3cret"}
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_health_needs_no_key(self, client, monkeypatch):
        monkeypatch.setenv("A11Y_API_KEY", "s3cret")
        assert client.get("/health").status_code == 200

    def test_production_requires_key(self, handler, monkeypatch):
        monkeypatch.setenv("A11Y_ENV", "production")
        with pytest.raises(RuntimeError):
            create_app(handler=handler)

    def test_production_with_auth_disabled(self, handler, monkeypatch):
        monkeypatch.setenv("A11Y_ENV", "production")
        monkeypatch.setenv("A11Y_AUTH_DISABLED", "true")
        assert create_app(handler=handler) is not None


class TestRateLimit:
    def test_limit_returns_429(self, handler):
        client = TestClient(create_app(handler=handler, rate_limiter=SlidingWindowLimiter(limit=1)))
        assert _invoke(client, "GetSessionState").status_code == 200
        limited = _invoke(client, "GetSessionState")
        assert limited.status_code == 429
        assert limited.headers["Retry-After"] == "60"

    def test_window_slides(self):
        limiter = SlidingWindowLimiter(limit=2, window_seconds=10)
        assert limiter.allow("a", now=0)
        assert limiter.allow("a", now=1)
        assert not limiter.allow("a", now=5)
        assert limiter.allow("b", now=5)
        assert limiter.allow("a", now=10.5)

    def test_limit_from_env(self, monkeypatch):
        assert rate_limit_from_env() == 120
        monkeypatch.setenv("A11Y_RATE_LIMIT_PER_MINUTE", "0")
        assert rate_limit_from_env() == 1
        monkeypatch.setenv("A11Y_RATE_LIMIT_PER_MINUTE", "lots")
        assert rate_limit_from_env() == 120
