"""Tests for API middleware."""

from fastapi.testclient import TestClient

from sew4mi.api.middleware import extract_bearer_token, token_matches
from sew4mi.infrastructure.config import settings


class TestRequestIdMiddleware:
    """Tests for request ID correlation middleware."""

    def test_generates_request_id_if_not_provided(self, client: TestClient) -> None:
        """Should generate request ID if not in request headers."""
        response = client.get("/health")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers
        # UUID format
        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36

    def test_uses_provided_request_id(self, client: TestClient) -> None:
        """Should use request ID from request headers."""
        custom_id = "custom-request-id-12345"
        response = client.get(
            "/health",
            headers={"X-Request-ID": custom_id},
        )
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == custom_id

    def test_request_id_in_error_body(self, auth_client: TestClient) -> None:
        response = auth_client.get(
            "/escrow/orders/00000000-0000-0000-0000-000000000000",
            headers={"X-Request-ID": "req-404"},
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "req-404"


class TestApiKeyMiddleware:
    """Tests for API key authentication middleware."""

    def test_public_endpoints_dont_require_auth(self, client: TestClient) -> None:
        """Public endpoints should work without authentication."""
        response = client.get("/health")
        assert response.status_code == 200

        response = client.get("/ready")
        assert response.status_code == 200

    def test_protected_endpoints_require_auth(self, client: TestClient) -> None:
        """Protected endpoints should require authentication."""
        response = client.post(
            "/escrow/breakdown",
            json={"total_amount": "100"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "UNAUTHORIZED"

    def test_invalid_auth_format_rejected(self, client: TestClient) -> None:
        """Invalid authorization header format should be rejected."""
        response = client.post(
            "/escrow/breakdown",
            json={"total_amount": "100"},
            headers={"Authorization": "InvalidFormat"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "UNAUTHORIZED"

    def test_invalid_api_key_rejected(self, client: TestClient) -> None:
        """Invalid API key should be rejected."""
        response = client.post(
            "/escrow/breakdown",
            json={"total_amount": "100"},
            headers={"Authorization": "Bearer invalid-key"},
        )
        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "INVALID_API_KEY"

    def test_valid_api_key_accepted(self, client: TestClient) -> None:
        """Valid API key should be accepted."""
        response = client.post(
            "/escrow/breakdown",
            json={"total_amount": "100"},
            headers={"Authorization": f"Bearer {settings.api_key}"},
        )
        assert response.status_code == 200


class TestBearerHelpers:
    """Tests for bearer token parsing."""

    def test_extract(self) -> None:
        assert extract_bearer_token("Bearer abc") == "abc"
        assert extract_bearer_token("bearer abc") == "abc"

    def test_extract_rejects_malformed(self) -> None:
        assert extract_bearer_token(None) is None
        assert extract_bearer_token("abc") is None
        assert extract_bearer_token("Basic abc") is None
        assert extract_bearer_token("Bearer ") is None

    def test_token_matches(self) -> None:
        assert token_matches("secret", "secret")
        assert not token_matches("secret", "other")
        assert not token_matches(None, "secret")
        assert not token_matches("", "")
