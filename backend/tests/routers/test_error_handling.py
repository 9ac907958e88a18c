# backend/tests/routers/test_error_handling.py
"""
Integration tests for error handling across all API endpoints.

These tests verify:
- Consistent error response format (ErrorDetail schema)
- Correct HTTP status codes for different error types
- Authentication failures (401)
- Correlation ID headers in responses
- Health endpoints
"""

from datetime import timedelta

import pytest

from portfolio_tracker.services.auth.jwt_handler import JWTHandler

from tests.conftest import auth_headers, create_user


# =============================================================================
# ERROR FORMAT
# =============================================================================

class TestErrorFormat:
    @pytest.mark.parametrize("method,path", [
        ("get", "/portfolios/424242"),
        ("patch", "/portfolios/424242"),
        ("delete", "/portfolios/424242"),
        ("get", "/portfolios/424242/transactions"),
    ])
    def test_missing_portfolio_is_404(self, client, sample_user, method, path):
        kwargs = {"headers": auth_headers(sample_user)}
        if method == "patch":
            kwargs["json"] = {"name": "x"}

        response = getattr(client, method)(path, **kwargs)

        assert response.status_code == 404
        data = response.json()
        assert set(data) == {"error", "message", "details"}
        assert data["details"]["resource_type"] == "Portfolio"

    def test_request_validation_format(self, client, sample_user):
        response = client.post(
            "/portfolios/", json={"currency": "INR"}, headers=auth_headers(sample_user)
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "ValidationError"
        assert data["message"] == "Request validation failed"
        assert data["details"][0]["field"] == "body.name"

    def test_path_type_mismatch(self, client, sample_user):
        response = client.get("/portfolios/abc", headers=auth_headers(sample_user))

        assert response.status_code == 422

    def test_method_not_allowed(self, client):
        response = client.put("/health/live")

        assert response.status_code == 405


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/portfolios/")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["message"] == "Not authenticated"

    def test_garbage_token(self, client):
        response = client.get("/portfolios/", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_expired_token(self, client, sample_user):
        token = JWTHandler.create_access_token(
            user_id=sample_user.id, expires_delta=timedelta(seconds=-5)
        )

        response = client.get("/portfolios/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "Token has expired"

    def test_unknown_user(self, client):
        token = JWTHandler.create_access_token(user_id=98765)

        response = client.get("/portfolios/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    def test_inactive_user(self, client, db):
        user = create_user(db, email="dormant@example.com", is_active=False)

        response = client.get("/portfolios/", headers=auth_headers(user))

        assert response.status_code == 401
        assert response.json()["message"] == "User account is inactive"


# =============================================================================
# CORRELATION ID
# =============================================================================

class TestCorrelationHeaders:
    def test_error_responses_include_correlation_id(self, client, sample_user):
        response = client.get(
            "/portfolios/424242",
            headers={**auth_headers(sample_user), "X-Correlation-ID": "trace-404"},
        )

        assert response.status_code == 404
        assert response.headers["X-Correlation-ID"] == "trace-404"


# =============================================================================
# HEALTH
# =============================================================================

class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_health_healthy(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["market_data"]["provider"] == "mock"

    def test_health_degraded_when_budget_spent(self, client, mock_provider):
        mock_provider.budget.max_requests_per_minute = 0

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["market_data"]["critical"] is False

    def test_liveness_and_readiness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").json() == {"status": "ready"}
