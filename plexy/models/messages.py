"""Conversation message models and the per-turn history."""

import json
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from plexy.errors import HistoryError
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

Role = Literal["user", "assistant", "system", "tool"]


class ToolCallRequest(BaseModel):
    """A tool invocation requested by the model.

    ``arguments`` holds the raw JSON text exactly as the model produced it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> dict[str, Any]:
        """Decode the argument payload, degrading to an empty dict."""
        if not self.arguments or not self.arguments.strip():
            return {}

        try:
            parsed = json.loads(self.arguments)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Unparseable arguments for tool call {self.id} ({self.name}): {e}")
            return {}

        if not isinstance(parsed, dict):
            logger.warning(f"Tool call {self.id} ({self.name}) arguments are not an object, ignoring")
            return {}

        return parsed


class Message(BaseModel):
    """A single conversation message. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="after")
    def check_tool_fields(self) -> "Message":
        """Tool linkage fields only make sense on their own roles."""
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        if self.role != "tool" and self.tool_call_id is not None:
            raise ValueError("only tool messages may carry a tool_call_id")
        if self.tool_calls and self.role != "assistant":
            raise ValueError("only assistant messages may request tool calls")
        return self

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list[ToolCallRequest] | None = None) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


class TurnHistory:
    """Append-only message list that enforces tool-call linkage.

    Every ``tool`` message must answer the next unanswered request of the
    immediately preceding assistant tool-call message, in request order.
    No other message may be appended while requests are still unanswered.
    """

    def __init__(self, messages: Iterable[Message] = ()):
        self._messages: list[Message] = []
        for message in messages:
            self.append(message)

    def append(self, message: Message) -> None:
        """Append a message, rejecting anything that breaks the linkage."""
        pending = self.pending_tool_call_ids()

        if message.role == "tool":
            if not pending:
                raise HistoryError(f"Tool result {message.tool_call_id} has no matching tool call request")
            if message.tool_call_id != pending[0]:
                raise HistoryError(f"Tool result {message.tool_call_id} is out of order, expected {pending[0]}")
        elif pending:
            raise HistoryError(f"Cannot append {message.role} message while tool calls are unanswered: {pending}")

        self._messages.append(message)

    def pending_tool_call_ids(self) -> list[str]:
        """Ids of tool calls in the latest request that have no result yet."""
        answered = 0
        for message in reversed(self._messages):
            if message.role == "tool":
                answered += 1
                continue
            if message.role == "assistant" and message.tool_calls:
                return [call.id for call in message.tool_calls][answered:]
            break
        return []

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def to_payload(self) -> list[dict[str, Any]]:
        """Serialize to JSON-compatible dicts."""
        return [message.model_dump(mode="json", exclude_none=True) for message in self._messages]

    @classmethod
    def from_payload(cls, payload: Iterable[dict[str, Any]]) -> "TurnHistory":
        """Rebuild a history from ``to_payload`` output, re-checking linkage."""
        return cls(Message.model_validate(item) for item in payload)
