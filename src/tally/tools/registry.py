"""Tool registry for managing and dispatching tools."""

from __future__ import annotations

import logging
from typing import Any

from ..errors import ToolExecutionError, ToolNotFoundError
from .base import Tool, ToolResult, ToolSpec

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s", tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool by name."""
        if name in self._tools:
            del self._tools[name]

    def get(self, name: str) -> Tool:
        """Get a tool by name.

        Raises:
            ToolNotFoundError: If no tool has this name.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def list(self) -> list[ToolSpec]:
        """Describe every registered tool."""
        return [tool.spec() for tool in self._tools.values()]

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_tools_schema(self) -> list[dict[str, Any]]:
        """Get schemas for all tools (for function calling)."""
        return [spec.to_schema() for spec in self.list()]

    async def execute(self, name: str, args: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Invalid arguments produce a failed ToolResult rather than an exception,
        so the model can see what was wrong and try again.

        Raises:
            ToolNotFoundError: If no tool has this name.
            ToolExecutionError: If the tool raised.
        """
        tool = self.get(name)

        valid, error = tool.validate_args(args)
        if not valid:
            return ToolResult.failure(error or "Invalid arguments")

        logger.debug("Executing tool %s with args %s", name, sorted(args))
        try:
            return await tool.execute(**args)
        except Exception as e:
            logger.error("Tool %s raised: %s", name, e)
            raise ToolExecutionError(name, f"Error executing {name}: {e}") from e
