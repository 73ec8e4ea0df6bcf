"""Tests for API endpoints."""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from plexy.errors import TokenRefreshRejected
from plexy.main import app
from plexy.models.credentials import TokenGrant
from plexy.services.conversation import TurnResult, get_conversation_service
from plexy.services.credentials import CredentialManager, get_credential_manager
from plexy.services.stores import InMemoryCredentialStore

client = TestClient(app)

AUTH = {"Authorization": "Bearer student-1"}


@pytest.fixture
def conversation_service():
    service = Mock()
    service.process_message = AsyncMock(return_value=TurnResult(message="Hi! Ready to study?", conversation_id="c1"))
    app.dependency_overrides[get_conversation_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def token_issuer():
    issuer = AsyncMock()
    issuer.refresh.return_value = TokenGrant(access_token="fresh-token", expires_in=3600)
    manager = CredentialManager(InMemoryCredentialStore(), issuer)
    app.dependency_overrides[get_credential_manager] = lambda: manager
    yield issuer
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check_returns_200(self):
        """Test that health check returns 200 status."""
        response = client.get("/health")
        assert response.status_code == 200

    def test_health_check_response_structure(self):
        """Test that health check returns expected JSON structure."""
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data

    def test_health_check_content_type(self):
        """Test that health check returns JSON content type."""
        response = client.get("/health")
        assert response.headers["content-type"] == "application/json"


class TestChatEndpoint:
    """Tests for the chat endpoint."""

    def test_chat_returns_answer(self, conversation_service):
        response = client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"message": "Hi! Ready to study?", "conversation_id": "c1"}

    def test_chat_passes_user_and_tokens(self, conversation_service):
        client.post(
            "/chat",
            json={"message": "What's due?", "conversation_id": "c1", "google_token": "g-token"},
            headers=AUTH,
        )

        conversation_service.process_message.assert_awaited_once_with(
            user_id="student-1", message="What's due?", conversation_id="c1", caller_token="g-token"
        )

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
    def test_chat_requires_bearer(self, conversation_service, headers):
        response = client.post("/chat", json={"message": "Hello"}, headers=headers)

        assert response.status_code == 401
        assert "error" in response.json()
        conversation_service.process_message.assert_not_called()

    def test_chat_invalid_message(self, conversation_service):
        conversation_service.process_message.side_effect = ValueError("Message cannot be empty")

        response = client.post("/chat", json={"message": "  "}, headers=AUTH)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid message", "message": "Message cannot be empty"}

    def test_chat_rate_limited(self, conversation_service):
        conversation_service.process_message.return_value = TurnResult(
            message="Try again in a moment.", conversation_id="c1", status="rate_limited"
        )

        response = client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        assert response.status_code == 429
        assert response.json()["error"] == "Rate limit exceeded"

    def test_chat_unexpected_error(self, conversation_service):
        conversation_service.process_message.side_effect = RuntimeError("boom")

        response = client.post("/chat", json={"message": "Hello"}, headers=AUTH)

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}

    def test_chat_missing_message_field(self, conversation_service):
        response = client.post("/chat", json={}, headers=AUTH)
        assert response.status_code == 422


class TestGoogleTokenEndpoint:
    """Tests for the credential endpoint."""

    def test_get_without_credential(self, token_issuer):
        response = client.post("/google-token", json={"action": "get"}, headers=AUTH)

        assert response.status_code == 404
        assert response.json()["needs_reauth"] is True

    def test_store_requires_refresh_token(self, token_issuer):
        response = client.post("/google-token", json={"action": "store", "access_token": "a"}, headers=AUTH)
        assert response.status_code == 400

    def test_store_then_get(self, token_issuer):
        stored = client.post(
            "/google-token",
            json={"action": "store", "access_token": "a", "refresh_token": "r", "expires_in": 3600},
            headers=AUTH,
        )
        fetched = client.post("/google-token", json={}, headers=AUTH)

        assert stored.json() == {"success": True, "message": "Token stored"}
        assert fetched.status_code == 200
        assert fetched.json()["access_token"] == "a"
        assert "expires_at" in fetched.json()
        token_issuer.refresh.assert_not_called()

    def test_refresh(self, token_issuer):
        client.post("/google-token", json={"action": "store", "refresh_token": "r"}, headers=AUTH)

        response = client.post("/google-token", json={"action": "refresh"}, headers=AUTH)

        assert response.status_code == 200
        assert response.json()["access_token"] == "fresh-token"
        token_issuer.refresh.assert_awaited_once_with("r")

    def test_rejected_refresh_needs_reauth(self, token_issuer):
        token_issuer.refresh.side_effect = TokenRefreshRejected(400, "invalid_grant")
        client.post("/google-token", json={"action": "store", "refresh_token": "r"}, headers=AUTH)

        response = client.post("/google-token", json={"action": "refresh"}, headers=AUTH)
        again = client.post("/google-token", json={"action": "get"}, headers=AUTH)

        assert response.status_code == 401
        assert response.json()["needs_reauth"] is True
        assert again.status_code == 404

    def test_unknown_action(self, token_issuer):
        response = client.post("/google-token", json={"action": "revoke"}, headers=AUTH)
        assert response.status_code == 422

    def test_requires_bearer(self, token_issuer):
        response = client.post("/google-token", json={"action": "get"})
        assert response.status_code == 401
