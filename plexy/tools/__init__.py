"""Tools the study assistant can call."""

from plexy.tools.registry import ToolExecutor, ToolRegistry, build_default_registry, get_tool_executor

__all__ = ["ToolExecutor", "ToolRegistry", "build_default_registry", "get_tool_executor"]
