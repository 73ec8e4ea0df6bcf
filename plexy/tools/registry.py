"""Tool registry and executor."""

from typing import Any

import httpx
from pydantic import ValidationError

from plexy.clients.classroom import ClassroomClient
from plexy.clients.drive import DriveClient
from plexy.errors import UpstreamError
from plexy.models.llm import LLMToolDefinition
from plexy.tools.assignment_help import create_assignment_help_tool
from plexy.tools.base import ToolDefinition, ToolResult, describe_validation_error
from plexy.tools.classroom import (
    create_announcements_tool,
    create_assignment_details_tool,
    create_class_assignments_tool,
    create_class_materials_tool,
    create_student_submissions_tool,
    create_user_classes_tool,
)
from plexy.tools.deadlines import create_upcoming_deadlines_tool
from plexy.tools.drive import create_read_file_tool, create_search_files_tool
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

NOT_CONNECTED_MESSAGE = "Please connect your Google account in settings to use this feature."


class ToolRegistry:
    """Fixed mapping of tool name to its definition."""

    def __init__(self, tools: list[ToolDefinition] | None = None):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or []:
            self.register_tool(tool)

    def register_tool(self, tool: ToolDefinition) -> None:
        """Register a new tool in the registry."""
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_tool_names(self) -> list[str]:
        """Get list of all registered tool names."""
        return list(self._tools.keys())

    def get_llm_tools(self) -> list[LLMToolDefinition]:
        """Tool schemas to send to the model, in registration order."""
        return [tool.to_llm_tool() for tool in self._tools.values()]


def build_default_registry(classroom: ClassroomClient, drive: DriveClient) -> ToolRegistry:
    """Register the study assistant's Classroom and Drive tools."""
    return ToolRegistry(
        [
            create_user_classes_tool(classroom),
            create_class_assignments_tool(classroom),
            create_assignment_details_tool(classroom),
            create_student_submissions_tool(classroom),
            create_search_files_tool(drive),
            create_read_file_tool(drive),
            create_upcoming_deadlines_tool(classroom),
            create_class_materials_tool(classroom),
            create_announcements_tool(classroom),
            create_assignment_help_tool(classroom, drive),
        ]
    )


class ToolExecutor:
    """Runs one tool call and always returns a JSON-serializable result.

    Failures never propagate: unknown names, a missing Google connection,
    bad arguments and upstream errors all become ``{"error": ...}`` results
    the model can explain to the student.
    """

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    def get_llm_tools(self) -> list[LLMToolDefinition]:
        return self.registry.get_llm_tools()

    async def execute(self, tool_name: str, args: dict[str, Any], access_token: str | None) -> ToolResult:
        """Execute a tool by name.

        Args:
            tool_name: Registered tool name requested by the model
            args: Decoded tool arguments
            access_token: Google access token for this turn, None when not connected

        Returns:
            The tool's result, or a structured error
        """
        tool = self.registry.get(tool_name)
        if tool is None:
            logger.error(f"Unknown tool requested: {tool_name}")
            return {"error": f"Unknown tool: {tool_name}"}

        if tool.requires_google and not access_token:
            logger.info(f"Tool {tool_name} requested without a Google connection")
            return {"error": "Google account not connected", "message": NOT_CONNECTED_MESSAGE}

        try:
            params = tool.parse_input(args)
        except ValidationError as e:
            logger.warning(f"Invalid arguments for {tool_name}: {args}")
            return {"error": describe_validation_error(e)}

        logger.debug(f"Executing tool: {tool_name} with input: {args}")
        try:
            result = await tool.handler(params, access_token or "")
        except (UpstreamError, httpx.HTTPError) as e:
            logger.error(f"Tool {tool_name} failed: {e}")
            return {"error": tool.failure_message, "message": str(e)}
        except Exception as e:
            logger.error(f"Unexpected error executing tool {tool_name}: {e}", exc_info=True)
            return {"error": "Tool execution failed", "message": str(e) or type(e).__name__}

        logger.debug(f"Tool {tool_name} succeeded: {str(result)[:100]}...")
        return result


_tool_executor: ToolExecutor | None = None


def get_tool_executor() -> ToolExecutor:
    """Get or create the process tool executor."""
    global _tool_executor
    if _tool_executor is None:
        from plexy.config import get_settings

        timeout = get_settings().http_timeout
        registry = build_default_registry(ClassroomClient(timeout=timeout), DriveClient(timeout=timeout))
        _tool_executor = ToolExecutor(registry)
    return _tool_executor
