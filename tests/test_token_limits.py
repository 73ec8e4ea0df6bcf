"""Tests for the Anthropic adapter: token limits, truncation, conversion and errors."""

from unittest.mock import AsyncMock, Mock, patch

import anthropic
import httpx
import pytest

from plexy.clients.anthropic import (
    AnthropicClient,
    AnthropicConfig,
    AnthropicMessage,
    AnthropicResponse,
    to_anthropic_messages,
    to_model_reply,
)
from plexy.errors import ModelRateLimitError, ModelServiceError
from plexy.models.llm import LLMToolDefinition, LLMUsage, TextBlock, ToolResultBlock, ToolUseBlock
from plexy.models.messages import Message, ToolCallRequest


def make_client(**config) -> AnthropicClient:
    with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"}):
        client = AnthropicClient(config=AnthropicConfig(**config))
    # Mock tokenizer for consistent testing
    client.tokenizer = Mock()
    client.tokenizer.encode.return_value = ["token"] * 10
    return client


def api_request() -> httpx.Request:
    return httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class TestTokenValidation:
    """Tests for message token validation."""

    @pytest.fixture
    def anthropic_client(self):
        return make_client(max_message_tokens=1000)

    def test_validate_message_tokens_within_limit(self, anthropic_client):
        """Test that messages within token limit pass validation."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 500

        anthropic_client.validate_message_tokens("Short message")

    def test_validate_message_tokens_exceeds_limit(self, anthropic_client):
        """Test that messages exceeding token limit raise ValueError."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 1500

        with pytest.raises(ValueError, match="Message exceeds token limit"):
            anthropic_client.validate_message_tokens("Very long message")

    def test_validate_message_tokens_fallback_without_tokenizer(self, anthropic_client):
        """Test token validation fallback when tokenizer is unavailable."""
        anthropic_client.tokenizer = None

        # Roughly 4 characters per token
        anthropic_client.validate_message_tokens("a" * 3000)
        with pytest.raises(ValueError, match="Message exceeds token limit"):
            anthropic_client.validate_message_tokens("a" * 5000)

    def test_missing_api_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
                AnthropicClient()


class TestConversationTruncation:
    """Tests for conversation truncation functionality."""

    @pytest.fixture
    def anthropic_client(self):
        return make_client(max_conversation_tokens=10000, token_headroom=1000, max_message_tokens=1000)

    def test_truncate_conversation_within_limit(self, anthropic_client):
        """Test that conversations within limits are not truncated."""
        anthropic_client.tokenizer.encode.return_value = ["token"] * 100

        messages = [
            AnthropicMessage(role="user", content="Message 1"),
            AnthropicMessage(role="assistant", content="Response 1"),
            AnthropicMessage(role="user", content="Message 2"),
        ]

        result = anthropic_client.truncate_conversation(messages, "System prompt")

        assert result == messages

    def test_truncate_conversation_exceeds_limit(self, anthropic_client):
        """Test that conversations exceeding limits are truncated from the beginning."""

        def mock_encode(text):
            if "System prompt" in text:
                return ["token"] * 500
            return ["token"] * 3000

        anthropic_client.tokenizer.encode.side_effect = mock_encode

        messages = [
            AnthropicMessage(role="user", content="Message 1"),
            AnthropicMessage(role="assistant", content="Response 1"),
            AnthropicMessage(role="user", content="Message 2"),
            AnthropicMessage(role="assistant", content="Response 2"),
            AnthropicMessage(role="user", content="Message 3"),
        ]

        result = anthropic_client.truncate_conversation(messages, "System prompt")

        assert len(result) < len(messages)
        assert result[0].role == "user"
        assert result[-1].content == "Message 3"

    def test_truncation_never_starts_with_tool_results(self, anthropic_client):
        def mock_encode(text):
            if "System prompt" in text:
                return ["token"] * 500
            return ["token"] * 2500

        anthropic_client.tokenizer.encode.side_effect = mock_encode

        messages = to_anthropic_messages(
            [
                Message.user("Message 1"),
                Message.assistant("", tool_calls=[ToolCallRequest(id="t1", name="get_user_classes")]),
                Message.tool_result("t1", '{"courses": []}'),
                Message.assistant("No classes found."),
                Message.user("Message 2"),
            ]
        )

        result = anthropic_client.truncate_conversation(messages, "System prompt")

        assert [m.content for m in result] == ["Message 2"]

    def test_truncate_conversation_empty_messages(self, anthropic_client):
        """Test truncation with empty message list."""
        assert anthropic_client.truncate_conversation([], "System prompt") == []


class TestMessageConversion:
    """Tests for converting between provider-agnostic and Anthropic messages."""

    def test_tool_calls_and_results(self):
        history = [
            Message.user("What classes am I in?"),
            Message.assistant(
                "Let me check.",
                tool_calls=[
                    ToolCallRequest(id="t1", name="get_user_classes", arguments="{}"),
                    ToolCallRequest(id="t2", name="get_class_assignments", arguments='{"courseId": "1"}'),
                ],
            ),
            Message.tool_result("t1", '{"courses": []}'),
            Message.tool_result("t2", '{"courseWork": []}'),
            Message.assistant("You are not enrolled in any classes."),
        ]

        converted = to_anthropic_messages(history)

        assert [m.role for m in converted] == ["user", "assistant", "user", "assistant"]
        assert converted[1].content == [
            TextBlock(text="Let me check."),
            ToolUseBlock(id="t1", name="get_user_classes", input={}),
            ToolUseBlock(id="t2", name="get_class_assignments", input={"courseId": "1"}),
        ]
        assert converted[2].content == [
            ToolResultBlock(tool_use_id="t1", content='{"courses": []}'),
            ToolResultBlock(tool_use_id="t2", content='{"courseWork": []}'),
        ]

    def test_system_messages_dropped(self):
        converted = to_anthropic_messages([Message(role="system", content="rules"), Message.user("hi")])
        assert converted == [AnthropicMessage(role="user", content="hi")]

    def test_reply_with_tool_use(self):
        response = AnthropicResponse(
            content=[
                TextBlock(text="Checking"),
                ToolUseBlock(id="toolu_1", name="get_upcoming_deadlines", input={"days_ahead": 7}),
            ],
            stop_reason="tool_use",
            usage=LLMUsage(),
            model="claude",
        )

        reply = to_model_reply(response)

        assert reply.wants_tools
        assert reply.message.content == "Checking"
        assert reply.message.tool_calls[0].id == "toolu_1"
        assert reply.message.tool_calls[0].parsed_arguments() == {"days_ahead": 7}

    def test_final_reply(self):
        response = AnthropicResponse(
            content=[TextBlock(text="Done.")], stop_reason="end_turn", usage=LLMUsage(), model="claude"
        )

        reply = to_model_reply(response)

        assert not reply.wants_tools
        assert reply.message.tool_calls is None


class TestApiErrors:
    """Tests for API error mapping and retries."""

    @pytest.fixture
    def anthropic_client(self):
        client = make_client(retry_delay=0, max_retries=3)
        client.client = Mock()
        client.client.messages.create = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_complete_returns_reply(self, anthropic_client):
        anthropic_client.client.messages.create.return_value = Mock(
            content=[TextBlock(text="Hello!")],
            stop_reason="end_turn",
            usage=Mock(input_tokens=12, output_tokens=3),
            model="claude-test",
        )
        tools = [LLMToolDefinition(name="get_user_classes", description="classes", input_schema={"type": "object"})]

        reply = await anthropic_client.complete("System prompt", [Message.user("Hi")], tools)

        assert reply.message.content == "Hello!"
        assert reply.usage.total_tokens == 15
        params = anthropic_client.client.messages.create.call_args.kwargs
        assert params["system"] == "System prompt"
        assert params["messages"] == [{"role": "user", "content": "Hi"}]
        assert params["tools"][0]["cache_control"] == {"type": "ephemeral"}

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self, anthropic_client):
        response = httpx.Response(429, headers={"retry-after": "3"}, request=api_request())
        anthropic_client.client.messages.create.side_effect = anthropic.RateLimitError(
            "rate limited", response=response, body=None
        )

        with pytest.raises(ModelRateLimitError) as exc_info:
            await anthropic_client.complete("System prompt", [Message.user("Hi")], [])

        assert exc_info.value.retry_after == 3.0
        assert anthropic_client.client.messages.create.await_count == 1

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, anthropic_client):
        response = httpx.Response(500, request=api_request())
        anthropic_client.client.messages.create.side_effect = anthropic.InternalServerError(
            "server error", response=response, body=None
        )

        with pytest.raises(ModelServiceError) as exc_info:
            await anthropic_client.complete("System prompt", [Message.user("Hi")], [])

        assert not isinstance(exc_info.value, ModelRateLimitError)
        assert anthropic_client.client.messages.create.await_count == 3

    @pytest.mark.asyncio
    async def test_client_errors_fail_immediately(self, anthropic_client):
        response = httpx.Response(400, request=api_request())
        anthropic_client.client.messages.create.side_effect = anthropic.BadRequestError(
            "bad request", response=response, body=None
        )

        with pytest.raises(ModelServiceError, match="400"):
            await anthropic_client.complete("System prompt", [Message.user("Hi")], [])

        assert anthropic_client.client.messages.create.await_count == 1
