"""Anthropic API client with rate limiting and error handling."""

import asyncio
import json
import os
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import anthropic
import tiktoken
from anthropic import AsyncAnthropic
from anthropic.types import Message as AnthropicAPIMessage
from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter
from pydantic import BaseModel

from plexy.errors import ModelRateLimitError, ModelServiceError
from plexy.models.llm import (
    ContentBlock,
    LLMToolDefinition,
    LLMUsage,
    ModelReply,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from plexy.models.messages import Message, ToolCallRequest
from plexy.utils.logging import get_logger

logger = get_logger(__name__)


class CacheControl(BaseModel):
    """Cache control configuration for prompt caching."""

    type: Literal["ephemeral"] = "ephemeral"


class AnthropicMessage(BaseModel):
    """Message format for Anthropic API."""

    role: Literal["user", "assistant"]
    content: str | list[ContentBlock]


class AnthropicTool(BaseModel):
    """Tool definition for Anthropic API."""

    name: str
    description: str
    input_schema: dict[str, Any]
    cache_control: CacheControl | None = None


@dataclass
class AnthropicResponse:
    """Structured response from Anthropic API."""

    content: list[ContentBlock]
    stop_reason: str | None
    usage: LLMUsage
    model: str


@dataclass
class AnthropicConfig:
    """Configuration for Anthropic API client."""

    model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 2000
    temperature: float = 0.5
    max_retries: int = 3
    retry_delay: float = 1.0

    # Token limits for validation and truncation
    max_message_tokens: int = 8000
    max_conversation_tokens: int = 200000
    token_headroom: int = 2000


class ModelClient(Protocol):
    """What the orchestrator needs from a language model."""

    async def complete(
        self, system_prompt: str, messages: list[Message], tools: list[LLMToolDefinition]
    ) -> ModelReply: ...

    def validate_message_tokens(self, message: str) -> None: ...


class AnthropicRateLimiter:
    """Client-side request pacing using the limits library."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 40_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str = "anthropic") -> None:
        """Wait until the request fits inside the configured windows."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if not self.limiter.hit(self.token_limit, token_identifier, cost=estimated_tokens):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        if window_stats:
            # reset_time is epoch seconds
            wait_time = max(0, window_stats.reset_time - time.time())
            if wait_time > 0:
                logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)


def to_anthropic_messages(messages: list[Message]) -> list[AnthropicMessage]:
    """Convert provider-agnostic history into Anthropic's message shape.

    Assistant tool-call requests become ``tool_use`` blocks and consecutive
    ``tool`` messages are folded into one user message of ``tool_result``
    blocks. System messages are dropped; the system prompt travels separately.
    """
    converted: list[AnthropicMessage] = []
    pending_results: list[ContentBlock] = []

    def flush_results() -> None:
        if pending_results:
            converted.append(AnthropicMessage(role="user", content=list(pending_results)))
            pending_results.clear()

    for message in messages:
        if message.role == "tool":
            pending_results.append(ToolResultBlock(tool_use_id=message.tool_call_id or "", content=message.content))
            continue

        flush_results()

        if message.role == "system":
            continue

        if message.role == "assistant" and message.tool_calls:
            blocks: list[ContentBlock] = []
            if message.content:
                blocks.append(TextBlock(text=message.content))
            blocks.extend(
                ToolUseBlock(id=call.id, name=call.name, input=call.parsed_arguments()) for call in message.tool_calls
            )
            converted.append(AnthropicMessage(role="assistant", content=blocks))
        elif message.content:
            converted.append(AnthropicMessage(role=message.role, content=message.content))

    flush_results()
    return converted


def to_model_reply(response: AnthropicResponse) -> ModelReply:
    """Convert an Anthropic response into one provider-agnostic assistant message."""
    texts = [block.text for block in response.content if isinstance(block, TextBlock)]
    tool_calls = [
        ToolCallRequest(id=block.id, name=block.name, arguments=json.dumps(block.input))
        for block in response.content
        if isinstance(block, ToolUseBlock)
    ]

    return ModelReply(
        message=Message.assistant("\n".join(texts), tool_calls=tool_calls),
        stop_reason=response.stop_reason,
        usage=response.usage,
        model=response.model,
    )


class AnthropicClient:
    """Low-level Anthropic API client with rate limiting and error handling."""

    tokenizer: tiktoken.Encoding | None = None
    api_key: str
    client: AsyncAnthropic
    config: AnthropicConfig
    rate_limiter: AnthropicRateLimiter = AnthropicRateLimiter()

    def __init__(self, api_key: str | None = None, config: AnthropicConfig | None = None):
        """Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (defaults to ANTHROPIC_API_KEY env var)
            config: Client configuration
        """
        anthropic_api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable is required")

        self.api_key = anthropic_api_key

        # Retries are handled by _request_with_retries
        self.client = AsyncAnthropic(api_key=self.api_key, max_retries=0)
        self.config = config or AnthropicConfig()

        try:
            # Close approximation for Claude
            self.tokenizer = tiktoken.encoding_for_model("gpt-4")
        except Exception:
            self.tokenizer = None

    async def complete(
        self, system_prompt: str, messages: list[Message], tools: list[LLMToolDefinition]
    ) -> ModelReply:
        """Send a conversation and return the next assistant message."""
        anthropic_tools = [
            AnthropicTool(
                name=tool.name,
                description=tool.description,
                input_schema=tool.input_schema,
                # Marking the last tool caches the whole tool block
                cache_control=CacheControl() if i == len(tools) - 1 else None,
            )
            for i, tool in enumerate(tools)
        ]

        response = await self.create_message(to_anthropic_messages(messages), system_prompt, anthropic_tools)
        return to_model_reply(response)

    async def create_message(
        self,
        messages: list[AnthropicMessage],
        system_prompt: str,
        tools: list[AnthropicTool] | None = None,
        **kwargs,
    ) -> AnthropicResponse:
        """Create a message with Claude API.

        Args:
            messages: Conversation history
            system_prompt: System prompt for Claude
            tools: Available tools for Claude
            **kwargs: Additional parameters for Claude API

        Returns:
            Structured Anthropic response

        Raises:
            ModelRateLimitError: The API answered 429
            ModelServiceError: Any other failure after retries
        """
        truncated_messages = self.truncate_conversation(messages, system_prompt, tools)

        estimated_tokens = self._estimate_tokens(truncated_messages, system_prompt)
        logger.debug(f"Estimated tokens: {estimated_tokens}")
        await self.rate_limiter.check_rate_limit(estimated_tokens)

        request_params: dict[str, Any] = {
            "model": kwargs.get("model", self.config.model),
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
            "temperature": kwargs.get("temperature", self.config.temperature),
            "system": system_prompt,
            "messages": [msg.model_dump(exclude_none=True) for msg in truncated_messages],
        }
        if tools:
            request_params["tools"] = [tool.model_dump(exclude_none=True) for tool in tools]

        logger.debug(
            f"Making Anthropic API call with model: {request_params['model']}, "
            f"{len(truncated_messages)} messages, {len(tools) if tools else 0} tools"
        )
        response: AnthropicAPIMessage = await self._request_with_retries(
            lambda: self.client.messages.create(**request_params)
        )

        usage = LLMUsage()
        if response.usage:
            usage = LLMUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        logger.debug(
            f"Response received - Stop reason: {response.stop_reason}, Content blocks: {len(response.content)}"
        )

        return AnthropicResponse(
            content=self._convert_content_blocks(response.content),
            stop_reason=response.stop_reason,
            usage=usage,
            model=response.model,
        )

    async def _request_with_retries[T](self, call: Callable[[], Awaitable[T]]) -> T:
        """Execute Anthropic API request, retrying server and transport errors."""
        for attempt in range(self.config.max_retries):
            try:
                return await call()

            except anthropic.RateLimitError as e:
                retry_after = None
                if e.response is not None:
                    header = e.response.headers.get("retry-after")
                    retry_after = float(header) if header and header.replace(".", "", 1).isdigit() else None
                logger.warning(f"Anthropic rate limit reached (retry-after: {retry_after})")
                raise ModelRateLimitError(retry_after=retry_after) from e

            except anthropic.APIStatusError as e:
                if e.status_code >= 500 and attempt < self.config.max_retries - 1:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise ModelServiceError(f"Anthropic API error {e.status_code}: {e.message}") from e

            except anthropic.APIConnectionError as e:
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(self.config.retry_delay * (2**attempt))
                    continue
                raise ModelServiceError(f"Anthropic API unreachable: {e}") from e

            except anthropic.APIError as e:
                raise ModelServiceError(f"Anthropic API error: {e}") from e

        raise ModelServiceError(f"Failed to complete request after {self.config.max_retries} attempts")

    def _convert_content_blocks(self, anthropic_content: list[Any]) -> list[ContentBlock]:
        """Convert Anthropic content blocks to our ContentBlock types."""
        converted_blocks: list[ContentBlock] = []
        for block in anthropic_content:
            block_dict = block.model_dump() if hasattr(block, "model_dump") else dict(block)

            if block_dict.get("type") == "text":
                converted_blocks.append(TextBlock.model_validate(block_dict))
            elif block_dict.get("type") == "tool_use":
                converted_blocks.append(ToolUseBlock.model_validate(block_dict))
            else:
                logger.warning(f"Unknown content block type: {block_dict.get('type')}")

        return converted_blocks

    def _message_text(self, message: AnthropicMessage) -> str:
        if isinstance(message.content, str):
            return message.content

        parts = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolResultBlock):
                parts.append(block.content)
            elif isinstance(block, ToolUseBlock):
                parts.append(json.dumps(block.input))
        return "".join(parts)

    def _estimate_tokens(self, messages: list[AnthropicMessage], system_prompt: str) -> int:
        """Estimate token count for rate limiting."""
        text_content = system_prompt + "".join(self._message_text(message) for message in messages)
        return self.estimate_message_tokens(text_content)

    def estimate_message_tokens(self, message: str) -> int:
        """Estimate token count for a single message.

        Args:
            message: Message content

        Returns:
            Estimated token count
        """
        try:
            return len(self.tokenizer.encode(message)) if self.tokenizer else len(message) // 4
        except Exception:
            # Fallback: roughly 4 characters per token
            return len(message) // 4

    def validate_message_tokens(self, message: str) -> None:
        """Validate that a message doesn't exceed token limits.

        Raises:
            ValueError: If message exceeds token limit
        """
        token_count = self.estimate_message_tokens(message)
        if token_count > self.config.max_message_tokens:
            raise ValueError(
                f"Message exceeds token limit: {token_count} tokens > {self.config.max_message_tokens} limit"
            )

    def truncate_conversation(
        self, messages: list[AnthropicMessage], system_prompt: str, tools: list[AnthropicTool] | None = None
    ) -> list[AnthropicMessage]:
        """Truncate conversation from the beginning to fit within token limits.

        The kept window always starts with a plain user message so that no
        ``tool_result`` block is separated from its ``tool_use``.
        """
        if not messages:
            return messages

        available_tokens = self.config.max_conversation_tokens - self.config.token_headroom
        available_tokens -= self.estimate_message_tokens(system_prompt)

        if tools:
            tool_content = "".join(tool.name + tool.description + str(tool.input_schema) for tool in tools)
            available_tokens -= self.estimate_message_tokens(tool_content)

        truncated_messages: list[AnthropicMessage] = []
        current_tokens = 0

        for message in reversed(messages):
            message_tokens = self.estimate_message_tokens(self._message_text(message))
            if current_tokens + message_tokens > available_tokens:
                break
            truncated_messages.insert(0, message)
            current_tokens += message_tokens

        while truncated_messages and not (
            truncated_messages[0].role == "user" and isinstance(truncated_messages[0].content, str)
        ):
            truncated_messages.pop(0)

        if len(truncated_messages) < len(messages):
            logger.warning(
                f"Truncated conversation from {len(messages)} to {len(truncated_messages)} messages "
                f"to fit within {available_tokens} token limit"
            )

        return truncated_messages


_anthropic_client: AnthropicClient | None = None


def get_anthropic_client() -> AnthropicClient:
    """Get or create Anthropic client instance."""
    global _anthropic_client
    if _anthropic_client is None:
        from plexy.config import get_settings

        settings = get_settings()
        _anthropic_client = AnthropicClient(
            api_key=settings.anthropic_api_key, config=AnthropicConfig(model=settings.model)
        )
    return _anthropic_client
