"""Memory tools that let the agent remember and look things up explicitly."""

from typing import Any

from ..errors import EmbeddingError
from ..memory.manager import MemoryManager
from ..memory.models import MemoryType
from .base import Tool, ToolResult


class RememberTool(Tool):
    """Tool for saving facts the user explicitly asks to keep."""

    def __init__(self, memory: MemoryManager) -> None:
        """Initialize with a memory manager.

        Args:
            memory: The MemoryManager used for storage.
        """
        self.memory = memory

    @property
    def name(self) -> str:
        return "remember"

    @property
    def description(self) -> str:
        return (
            "Save a fact about the business or the user for future reference. "
            "Use when the user explicitly asks to remember something."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": (
                        "The fact to remember, as a complete sentence "
                        "(e.g. 'Fiscal year ends on 31 March')"
                    ),
                },
                "importance": {
                    "type": "number",
                    "description": "How important the fact is, from 0 to 1",
                },
            },
            "required": ["content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Store the fact with high default importance."""
        content = kwargs.get("content", "")
        importance = kwargs.get("importance", 0.8)

        try:
            memory = await self.memory.store(content, MemoryType.FACT, importance=importance)
        except EmbeddingError as e:
            return ToolResult.failure(str(e))

        return ToolResult(
            success=True,
            result=f"Remembered: {memory.content}",
            data={"memory_id": memory.id},
        )


class RecallTool(Tool):
    """Tool for searching stored memories."""

    def __init__(self, memory: MemoryManager) -> None:
        self.memory = memory

    @property
    def name(self) -> str:
        return "recall_memory"

    @property
    def description(self) -> str:
        return (
            "Search long-term memory for facts, preferences and past conversations "
            "related to a query."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "What to look for",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of memories to return",
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        query = kwargs.get("query", "")
        limit = kwargs.get("limit")

        try:
            matches = await self.memory.recall(query, limit=limit)
        except EmbeddingError as e:
            return ToolResult.failure(str(e))

        if not matches:
            return ToolResult(success=True, result="No relevant memories found.", data=[])

        lines = [
            f"- [{m.memory_type.label}] {m.content} (similarity {m.similarity:.2f})"
            for m in matches
        ]
        return ToolResult(
            success=True,
            result="\n".join(lines),
            data=[m.id for m in matches],
        )
