"""SQLite storage for memories and user preferences."""

import sqlite3

from ..db import Database
from .embeddings import deserialize_embedding, serialize_embedding
from .models import Memory, MemoryStats, MemoryType, UserPreference


class MemoryStore:
    """Persistent storage for memories using SQLite.

    This layer only moves rows in and out of the database. Embedding,
    ranking and eviction policy live in MemoryManager.
    """

    def __init__(self, db: Database) -> None:
        """Initialize the store.

        Args:
            db: Shared database handle. ``init_db`` must have been called.
        """
        self.db = db

    def insert(
        self,
        content: str,
        embedding: list[float],
        memory_type: MemoryType,
        importance: float,
        created_at: str,
        source_message_id: str | None = None,
    ) -> Memory:
        """Insert a new memory row.

        Returns:
            The stored memory with its assigned id.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO agent_memories
                    (content, embedding, memory_type, source_message_id,
                     importance, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    content,
                    serialize_embedding(embedding),
                    memory_type.value,
                    source_message_id,
                    importance,
                    created_at,
                ),
            )
            memory_id = cursor.lastrowid

        return Memory(
            id=memory_id,
            content=content,
            embedding=embedding,
            memory_type=memory_type,
            importance=importance,
            created_at=created_at,
            source_message_id=source_message_id,
        )

    def get(self, memory_id: int) -> Memory | None:
        """Get a memory by id."""
        row = self.db.query_one("SELECT * FROM agent_memories WHERE id = ?", (memory_id,))
        return self._row_to_memory(row) if row else None

    def scan(
        self,
        types: list[MemoryType] | None = None,
        oldest_first: bool = False,
    ) -> list[Memory]:
        """Load every memory, optionally restricted to some types.

        Args:
            types: Memory types to include. All types if None or empty.
            oldest_first: Order by creation time (then id) ascending.

        Returns:
            Matching memories.
        """
        sql = "SELECT * FROM agent_memories"
        params: list[str] = []

        if types:
            placeholders = ", ".join("?" for _ in types)
            sql += f" WHERE memory_type IN ({placeholders})"
            params.extend(t.value for t in types)

        if oldest_first:
            sql += " ORDER BY created_at ASC, id ASC"

        return [self._row_to_memory(row) for row in self.db.query(sql, params)]

    def touch(self, memory_ids: list[int], accessed_at: str) -> None:
        """Record an access for each id in a single statement."""
        if not memory_ids:
            return

        placeholders = ", ".join("?" for _ in memory_ids)
        with self.db.transaction() as conn:
            conn.execute(
                f"""
                UPDATE agent_memories
                SET last_accessed_at = ?, access_count = access_count + 1
                WHERE id IN ({placeholders})
                """,
                (accessed_at, *memory_ids),
            )

    def delete_many(self, memory_ids: list[int]) -> int:
        """Delete memories by id.

        Returns:
            Number of rows deleted.
        """
        if not memory_ids:
            return 0

        placeholders = ", ".join("?" for _ in memory_ids)
        with self.db.transaction() as conn:
            cursor = conn.execute(
                f"DELETE FROM agent_memories WHERE id IN ({placeholders})",
                memory_ids,
            )
            return cursor.rowcount

    def delete_stale(self, cutoff: str, min_importance: float) -> int:
        """Delete memories that are old, unimportant, rarely used and idle.

        A row is removed only when all four hold: created before ``cutoff``,
        importance below ``min_importance``, accessed fewer than 3 times, and
        not accessed since ``cutoff``.

        Returns:
            Number of rows deleted.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM agent_memories
                WHERE created_at < ?
                  AND importance < ?
                  AND access_count < 3
                  AND (last_accessed_at IS NULL OR last_accessed_at < ?)
                """,
                (cutoff, min_importance, cutoff),
            )
            return cursor.rowcount

    def count(self) -> int:
        """Total number of stored memories."""
        row = self.db.query_one("SELECT COUNT(*) AS count FROM agent_memories")
        return row["count"] if row else 0

    def stats(self) -> MemoryStats:
        """Aggregate counts, average importance and date range."""
        stats = MemoryStats()

        for row in self.db.query(
            "SELECT memory_type, COUNT(*) AS count FROM agent_memories GROUP BY memory_type"
        ):
            stats.by_type[MemoryType(row["memory_type"])] = row["count"]

        row = self.db.query_one(
            """
            SELECT COUNT(*) AS total, AVG(importance) AS avg_importance,
                   MIN(created_at) AS oldest, MAX(created_at) AS newest
            FROM agent_memories
            """
        )
        if row:
            stats.total = row["total"]
            stats.avg_importance = row["avg_importance"] or 0.0
            stats.oldest = row["oldest"]
            stats.newest = row["newest"]
        return stats

    def upsert_preference(self, preference: UserPreference, updated_at: str) -> bool:
        """Insert a preference or replace it if the new confidence is higher.

        Ties keep the stored value.

        Returns:
            True if the row was inserted or replaced.
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO agent_user_preferences (key, value, confidence, source, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    confidence = excluded.confidence,
                    source = excluded.source,
                    updated_at = excluded.updated_at
                WHERE excluded.confidence > agent_user_preferences.confidence
                """,
                (
                    preference.key,
                    preference.value,
                    preference.confidence,
                    preference.source,
                    updated_at,
                ),
            )
            return cursor.rowcount > 0

    def set_preference(self, preference: UserPreference, updated_at: str) -> None:
        """Insert or unconditionally replace a preference."""
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO agent_user_preferences (key, value, confidence, source, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    confidence = excluded.confidence,
                    source = excluded.source,
                    updated_at = excluded.updated_at
                """,
                (
                    preference.key,
                    preference.value,
                    preference.confidence,
                    preference.source,
                    updated_at,
                ),
            )

    def get_preferences(self) -> list[UserPreference]:
        """All stored preferences, ordered by key."""
        rows = self.db.query(
            "SELECT key, value, confidence, source FROM agent_user_preferences ORDER BY key"
        )
        return [self._row_to_preference(row) for row in rows]

    def get_preference(self, key: str) -> UserPreference | None:
        """Get a single preference by key."""
        row = self.db.query_one(
            "SELECT key, value, confidence, source FROM agent_user_preferences WHERE key = ?",
            (key,),
        )
        return self._row_to_preference(row) if row else None

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert a database row to a Memory."""
        return Memory(
            id=row["id"],
            content=row["content"],
            embedding=deserialize_embedding(row["embedding"]),
            memory_type=MemoryType(row["memory_type"]),
            importance=row["importance"],
            created_at=row["created_at"],
            source_message_id=row["source_message_id"],
            last_accessed_at=row["last_accessed_at"],
            access_count=row["access_count"],
        )

    def _row_to_preference(self, row: sqlite3.Row) -> UserPreference:
        return UserPreference(
            key=row["key"],
            value=row["value"],
            confidence=row["confidence"],
            source=row["source"],
        )
