"""Tool contract, registry and built-in memory tools."""

from .base import Tool, ToolResult, ToolSpec
from .memory_tools import RecallTool, RememberTool
from .registry import ToolRegistry

__all__ = [
    "RecallTool",
    "RememberTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
    "ToolSpec",
]
