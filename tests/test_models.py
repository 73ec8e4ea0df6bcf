"""Tests for data models."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from plexy.errors import HistoryError
from plexy.models.conversation import ChatRequest, ChatResponse, GoogleTokenRequest, HealthResponse
from plexy.models.credentials import DelegatedCredential
from plexy.models.messages import Message, ToolCallRequest, TurnHistory


class TestConversationModels:
    """Tests for chat request/response models."""

    def test_chat_request_valid(self):
        """Test valid chat request."""
        request = ChatRequest(message="Hello")
        assert request.message == "Hello"
        assert request.conversation_id is None
        assert request.google_token is None

    def test_chat_request_from_json(self):
        """Test chat request parsing from JSON."""
        data = json.loads('{"message": "What is due?", "conversation_id": "clhqxrisp0001s67w2qccjhqr"}')
        request = ChatRequest.model_validate(data)
        assert request.message == "What is due?"
        assert request.conversation_id == "clhqxrisp0001s67w2qccjhqr"

    def test_chat_response_valid(self):
        """Test valid chat response."""
        response = ChatResponse(message="Hi there!", conversation_id="conv-1")
        assert response.message == "Hi there!"
        assert response.conversation_id == "conv-1"

    def test_google_token_request_defaults_to_get(self):
        request = GoogleTokenRequest()
        assert request.action == "get"

    def test_google_token_request_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            GoogleTokenRequest(action="revoke")

    def test_health_response_valid(self):
        """Test valid health response."""
        now = datetime.now(UTC)
        response = HealthResponse(status="healthy", timestamp=now, version="1.0.0")
        assert response.status == "healthy"
        assert response.timestamp == now


class TestMessages:
    """Tests for conversation messages and tool-call linkage."""

    def test_tool_message_requires_call_id(self):
        with pytest.raises(ValidationError, match="tool_call_id"):
            Message(role="tool", content="{}")

    def test_only_assistant_may_request_tools(self):
        with pytest.raises(ValidationError, match="only assistant messages"):
            Message(role="user", content="hi", tool_calls=[ToolCallRequest(id="1", name="get_user_classes")])

    def test_messages_are_immutable(self):
        message = Message.user("hello")
        with pytest.raises(ValidationError):
            message.content = "changed"

    def test_parsed_arguments_valid_json(self):
        call = ToolCallRequest(id="c1", name="get_class_assignments", arguments='{"courseId": "123"}')
        assert call.parsed_arguments() == {"courseId": "123"}

    @pytest.mark.parametrize("arguments", ["{not json", "", "   ", "[1, 2]", '"text"'])
    def test_parsed_arguments_degrades_to_empty(self, arguments):
        call = ToolCallRequest(id="c1", name="get_user_classes", arguments=arguments)
        assert call.parsed_arguments() == {}


class TestTurnHistory:
    """Tests for the append-only history."""

    def _request(self, *ids: str) -> Message:
        return Message.assistant("", tool_calls=[ToolCallRequest(id=i, name="get_user_classes") for i in ids])

    def test_results_must_follow_request_order(self):
        history = TurnHistory([Message.user("hi"), self._request("a", "b")])

        with pytest.raises(HistoryError, match="out of order"):
            history.append(Message.tool_result("b", "{}"))

        history.append(Message.tool_result("a", "{}"))
        history.append(Message.tool_result("b", "{}"))
        assert history.pending_tool_call_ids() == []

    def test_result_without_request_is_rejected(self):
        history = TurnHistory([Message.user("hi")])
        with pytest.raises(HistoryError, match="no matching tool call"):
            history.append(Message.tool_result("ghost", "{}"))

    def test_cannot_interleave_while_results_pending(self):
        history = TurnHistory([Message.user("hi"), self._request("a")])
        assert history.pending_tool_call_ids() == ["a"]

        with pytest.raises(HistoryError, match="unanswered"):
            history.append(Message.assistant("done"))

    def test_round_trip_preserves_linkage(self):
        """Re-serializing a request and its result keeps the same call ids."""
        history = TurnHistory(
            [
                Message.user("what's due?"),
                self._request("call_1", "call_2"),
                Message.tool_result("call_1", '{"courses": []}'),
                Message.tool_result("call_2", '{"courses": []}'),
                Message.assistant("Nothing is due."),
            ]
        )

        payload = json.loads(json.dumps(history.to_payload()))
        restored = TurnHistory.from_payload(payload)

        assert len(restored) == len(history)
        assert [call.id for call in restored.messages[1].tool_calls] == ["call_1", "call_2"]
        assert [m.tool_call_id for m in restored.messages[2:4]] == ["call_1", "call_2"]
        assert [m.model_dump() for m in restored] == [m.model_dump() for m in history]

    def test_from_payload_rechecks_linkage(self):
        payload = [Message.user("hi").model_dump(mode="json"), {"role": "tool", "content": "{}", "tool_call_id": "x"}]
        with pytest.raises(HistoryError):
            TurnHistory.from_payload(payload)


class TestDelegatedCredential:
    """Tests for credential expiry."""

    def test_expiry_inside_buffer_counts_as_expired(self):
        now = datetime.now(UTC)
        credential = DelegatedCredential("u1", "tok", "ref", expires_at=now + timedelta(minutes=4))
        assert credential.is_expired(now, timedelta(minutes=5))

    def test_expiry_beyond_buffer_is_valid(self):
        now = datetime.now(UTC)
        credential = DelegatedCredential("u1", "tok", "ref", expires_at=now + timedelta(minutes=6))
        assert not credential.is_expired(now, timedelta(minutes=5))

    def test_missing_expiry_counts_as_expired(self):
        credential = DelegatedCredential("u1", "tok", "ref", expires_at=None)
        assert credential.is_expired(datetime.now(UTC), timedelta(minutes=5))

    def test_refresh_keeps_refresh_token_unless_replaced(self):
        now = datetime.now(UTC)
        credential = DelegatedCredential("u1", "old", "ref-1", expires_at=now)

        kept = credential.with_refreshed_token("new", now + timedelta(hours=1))
        replaced = credential.with_refreshed_token("new", now + timedelta(hours=1), refresh_token="ref-2")

        assert kept.refresh_token == "ref-1"
        assert replaced.refresh_token == "ref-2"
        assert kept.access_token == "new"
