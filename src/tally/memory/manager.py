"""Memory manager: semantic store, recall, consolidation and forgetting."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from ..config import MemoryConfig
from ..db import format_timestamp, utc_now
from ..errors import EmbeddingError
from .embeddings import EmbeddingService, cosine_similarity
from .models import (
    Memory,
    MemoryStats,
    MemoryType,
    MemoryWithScore,
    UserPreference,
    clamp_unit,
)
from .store import MemoryStore

if TYPE_CHECKING:
    from .extractor import ConversationExtractor

logger = logging.getLogger(__name__)

DUPLICATE_SIMILARITY = 0.95
CONSOLIDATED_TYPES = [MemoryType.FACT, MemoryType.CONVERSATION]


class MemoryManager:
    """Orchestrates memory operations on top of the store and embeddings.

    This is the main interface for the memory system. Recall updates access
    metadata on every returned memory, and that metadata is what ``forget``
    uses to decide what is still worth keeping.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        embeddings: EmbeddingService,
        config: MemoryConfig | None = None,
        extractor: ConversationExtractor | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the manager.

        Args:
            memory_store: The MemoryStore for persistence.
            embeddings: Service used to embed content and queries.
            config: Recall and eviction parameters.
            extractor: Optional extractor for facts and preferences.
            clock: Source of the current time.
        """
        self.memory_store = memory_store
        self.embeddings = embeddings
        self.config = config or MemoryConfig()
        self.extractor = extractor
        self._clock = clock
        self._maintenance_lock = asyncio.Lock()

    def _now(self) -> str:
        return format_timestamp(self._clock())

    async def store(
        self,
        content: str,
        memory_type: MemoryType,
        importance: float = 0.5,
        source_message_id: str | None = None,
    ) -> Memory:
        """Embed and persist a new memory.

        Args:
            content: Text to remember.
            memory_type: Kind of memory.
            importance: Value score, clamped to [0, 1].
            source_message_id: Optional originating message id.

        Returns:
            The stored memory.

        Raises:
            EmbeddingError: If content is blank. Nothing is persisted.
        """
        if not content or not content.strip():
            raise EmbeddingError("Cannot store empty memory")

        embedding = await self.embeddings.embed(content)
        memory = self.memory_store.insert(
            content=content,
            embedding=embedding,
            memory_type=memory_type,
            importance=clamp_unit(importance),
            created_at=self._now(),
            source_message_id=source_message_id,
        )
        logger.debug(
            "Stored memory id=%s type=%s length=%d",
            memory.id, memory_type.value, len(content),
        )
        return memory

    async def recall(
        self,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        types: list[MemoryType] | None = None,
    ) -> list[MemoryWithScore]:
        """Find the memories most similar to a query.

        Args:
            query: Text to search for.
            limit: Maximum results. Defaults to config.recall_limit.
            min_similarity: Minimum cosine similarity. Defaults to config.
            types: Restrict to these memory types.

        Returns:
            Matches sorted by similarity, highest first. Each returned memory
            has already had its access count and last access time updated.

        Raises:
            EmbeddingError: If the query is blank.
        """
        limit = self.config.recall_limit if limit is None else limit
        if min_similarity is None:
            min_similarity = self.config.min_similarity

        query_embedding = await self.embeddings.embed(query)
        candidates = self.memory_store.scan(types=types)
        if not candidates:
            return []

        scored = []
        for memory in candidates:
            similarity = cosine_similarity(query_embedding, memory.embedding)
            if similarity >= min_similarity:
                scored.append((memory, similarity))

        scored.sort(key=lambda item: item[1], reverse=True)
        top = scored[: max(limit, 0)]
        if not top:
            logger.debug("Recall found nothing among %d memories", len(candidates))
            return []

        accessed_at = self._now()
        self.memory_store.touch([memory.id for memory, _ in top], accessed_at)

        results = [
            MemoryWithScore(
                memory=Memory(
                    id=memory.id,
                    content=memory.content,
                    embedding=memory.embedding,
                    memory_type=memory.memory_type,
                    importance=memory.importance,
                    created_at=memory.created_at,
                    source_message_id=memory.source_message_id,
                    last_accessed_at=accessed_at,
                    access_count=memory.access_count + 1,
                ),
                similarity=similarity,
            )
            for memory, similarity in top
        ]
        logger.debug("Recalled %d of %d memories", len(results), len(candidates))
        return results

    async def extract_facts(
        self,
        turns: list[dict[str, Any]],
        source_message_id: str | None = None,
    ) -> list[Memory]:
        """Extract facts from a conversation and store them as memories.

        Facts whose embedding fails are logged and skipped.

        Returns:
            The newly stored memories (empty if no extractor or no facts).
        """
        if not self.extractor or not turns:
            return []

        facts = await self.extractor.extract_facts(turns)
        memories = []
        for fact in facts:
            try:
                memory = await self.store(
                    fact.fact,
                    MemoryType.FACT,
                    importance=fact.importance,
                    source_message_id=source_message_id,
                )
            except EmbeddingError as e:
                logger.warning("Skipping extracted fact %r: %s", fact.fact[:50], e)
                continue
            memories.append(memory)

        if memories:
            logger.info("Extracted and stored %d fact(s)", len(memories))
        return memories

    async def learn_preferences(self, turns: list[dict[str, Any]]) -> list[UserPreference]:
        """Learn preferences from a conversation.

        A learned preference replaces a stored one only when its confidence
        is strictly higher.

        Returns:
            The preferences proposed by the extractor.
        """
        if not self.extractor or not turns:
            return []

        preferences = await self.extractor.extract_preferences(turns)
        updated_at = self._now()
        for preference in preferences:
            self.memory_store.upsert_preference(preference, updated_at)

        if preferences:
            logger.info("Learned %d preference(s)", len(preferences))
        return preferences

    def get_preferences(self) -> list[UserPreference]:
        """All stored preferences."""
        return self.memory_store.get_preferences()

    def get_preference(self, key: str) -> str | None:
        """Value of a stored preference, or None."""
        preference = self.memory_store.get_preference(key)
        return preference.value if preference else None

    def set_preference(self, key: str, value: str, confidence: float = 1.0) -> None:
        """Set a preference directly, overriding any learned value."""
        self.memory_store.set_preference(
            UserPreference(
                key=key,
                value=value,
                confidence=clamp_unit(confidence),
                source="manual",
            ),
            self._now(),
        )

    async def consolidate(self) -> int:
        """Remove near-duplicate fact and conversation memories.

        Runs only once the total count reaches the consolidation threshold.
        Memories are compared pairwise, oldest first; for a pair above the
        duplicate threshold the more important one is kept, and on a tie the
        older one. A removed memory takes no part in later comparisons.

        Returns:
            Number of memories removed.
        """
        async with self._maintenance_lock:
            if self.memory_store.count() < self.config.consolidation_threshold:
                return 0

            memories = self.memory_store.scan(types=CONSOLIDATED_TYPES, oldest_first=True)
            removed: set[int] = set()

            for i, first in enumerate(memories):
                if first.id in removed:
                    continue

                for second in memories[i + 1:]:
                    if second.id in removed:
                        continue

                    similarity = cosine_similarity(first.embedding, second.embedding)
                    if similarity <= DUPLICATE_SIMILARITY:
                        continue

                    if first.importance >= second.importance:
                        removed.add(second.id)
                    else:
                        removed.add(first.id)
                        break

            deleted = self.memory_store.delete_many(sorted(removed))
            logger.info("Consolidated memories: removed %d", deleted)
            return deleted

    async def forget(self) -> int:
        """Delete memories that are old, unimportant, rarely used and idle.

        Returns:
            Number of memories removed.
        """
        async with self._maintenance_lock:
            cutoff = format_timestamp(
                self._clock() - timedelta(days=self.config.max_age_days)
            )
            deleted = self.memory_store.delete_stale(cutoff, self.config.min_importance)
            logger.info("Forgot %d old memories", deleted)
            return deleted

    def get_stats(self) -> MemoryStats:
        """Counts by type, average importance and date range."""
        return self.memory_store.stats()

    def format_for_context(self, memories: list[MemoryWithScore]) -> str:
        """Format recalled memories as a block for the reasoning transcript.

        Returns:
            Markdown block, or empty string if there are no memories.
        """
        if not memories:
            return ""

        lines = ["## Relevant Context from Memory"]
        lines.extend(f"- [{m.memory_type.label}] {m.content}" for m in memories)
        return "\n".join(lines)
