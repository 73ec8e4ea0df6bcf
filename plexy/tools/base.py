"""Base types and definitions for tools."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from plexy.models.llm import LLMToolDefinition
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

ToolResult = dict[str, Any]
ToolHandler = Callable[[Any, str], Awaitable[ToolResult]]

# Validation error types that mean "the model left the argument out"
MISSING_ERROR_TYPES = frozenset({"missing", "string_too_short", "string_type"})


class ToolInput(BaseModel):
    """Base class for tool argument models.

    Arguments arrive as model-produced JSON, so unknown keys are ignored,
    numbers are accepted for string ids and surrounding whitespace is dropped.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


class EmptyInput(ToolInput):
    """Input schema for tools that don't take parameters."""


@dataclass
class ToolDefinition:
    """Definition of a tool available to the assistant."""

    name: str
    description: str
    input_schema_class: type[ToolInput]
    handler: ToolHandler
    failure_message: str
    requires_google: bool = True

    def get_json_schema(self) -> dict[str, Any]:
        """Get JSON schema for this tool's input."""
        schema = self.input_schema_class.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        schema.setdefault("properties", {})
        return schema

    def parse_input(self, raw_input: dict[str, Any]) -> ToolInput:
        """Parse and validate tool input."""
        return self.input_schema_class.model_validate(raw_input)

    def to_llm_tool(self) -> LLMToolDefinition:
        return LLMToolDefinition(name=self.name, description=self.description, input_schema=self.get_json_schema())


def describe_validation_error(error: ValidationError) -> str:
    """Turn a pydantic error into the short message the model sees.

    ``courseId is required``, ``courseId and courseWorkId are required``,
    ``courseId, courseWorkId, and topic are required``.
    """
    fields: list[str] = []
    for item in error.errors():
        field = str(item["loc"][0]) if item["loc"] else "arguments"
        if field not in fields:
            fields.append(field)

    if not all(item["type"] in MISSING_ERROR_TYPES for item in error.errors()):
        return f"Invalid {', '.join(fields)}"

    if len(fields) == 1:
        return f"{fields[0]} is required"
    if len(fields) == 2:
        return f"{fields[0]} and {fields[1]} are required"
    return f"{', '.join(fields[:-1])}, and {fields[-1]} are required"


@dataclass
class Outcome[T]:
    """Result of one isolated external call."""

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def isolated[T](label: str, call: Awaitable[T]) -> Outcome[T]:
    """Await one external call whose failure must not affect its siblings.

    Any exception is logged and captured in the outcome; the caller decides
    what placeholder stands in for the missing value.
    """
    try:
        return Outcome(value=await call)
    except Exception as e:
        logger.warning(f"{label} failed: {e}")
        return Outcome(error=str(e) or type(e).__name__)
