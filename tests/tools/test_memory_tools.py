"""Tests for the remember and recall_memory tools."""

import pytest

from tally.db import Database
from tally.memory import EmbeddingService, MemoryManager, MemoryStore, MemoryType
from tally.tools import RecallTool, RememberTool, ToolRegistry


@pytest.fixture
def memory(db: Database, embeddings: EmbeddingService) -> MemoryManager:
    return MemoryManager(MemoryStore(db), embeddings)


@pytest.fixture
def registry(memory: MemoryManager) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(RememberTool(memory))
    registry.register(RecallTool(memory))
    return registry


class TestRememberTool:
    """Tests for RememberTool."""

    @pytest.mark.asyncio
    async def test_remember_stores_important_fact(self, registry: ToolRegistry, memory):
        result = await registry.execute("remember", {"content": "rent is paid on the 1st"})

        assert result.success
        assert result.result == "Remembered: rent is paid on the 1st"
        stored = memory.memory_store.get(result.data["memory_id"])
        assert stored.memory_type is MemoryType.FACT
        assert stored.importance == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_remember_custom_importance(self, registry: ToolRegistry, memory):
        result = await registry.execute(
            "remember", {"content": "rent is paid on the 1st", "importance": 0.2}
        )
        assert memory.memory_store.get(result.data["memory_id"]).importance == pytest.approx(0.2)

    @pytest.mark.asyncio
    async def test_remember_blank_fails(self, registry: ToolRegistry, memory):
        result = await registry.execute("remember", {"content": "   "})

        assert not result.success
        assert memory.memory_store.count() == 0

    @pytest.mark.asyncio
    async def test_remember_requires_content(self, registry: ToolRegistry):
        result = await registry.execute("remember", {})
        assert not result.success


class TestRecallTool:
    """Tests for RecallTool."""

    @pytest.mark.asyncio
    async def test_recall_lists_matches(self, registry: ToolRegistry, memory):
        stored = await memory.store("invoice 42 is overdue", MemoryType.FACT)

        result = await registry.execute("recall_memory", {"query": "overdue invoices"})

        assert result.success
        assert result.result.startswith("- [Fact] invoice 42 is overdue (similarity 0.99")
        assert result.data == [stored.id]

    @pytest.mark.asyncio
    async def test_recall_nothing_found(self, registry: ToolRegistry):
        result = await registry.execute("recall_memory", {"query": "when is rent due"})

        assert result.success
        assert result.result == "No relevant memories found."
        assert result.data == []

    @pytest.mark.asyncio
    async def test_recall_limit(self, registry: ToolRegistry, memory):
        await memory.store("invoice 42 is overdue", MemoryType.FACT)
        await memory.store("invoice 42 is late", MemoryType.FACT)

        result = await registry.execute("recall_memory", {"query": "overdue invoices", "limit": 1})
        assert len(result.data) == 1
