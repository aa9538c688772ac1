"""SQLite database shared by the memory store and the action log."""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS agent_memories (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    content           TEXT NOT NULL,
    embedding         BLOB NOT NULL,
    memory_type       TEXT NOT NULL
        CHECK (memory_type IN ('conversation', 'fact', 'preference', 'task')),
    source_message_id TEXT,
    importance        REAL NOT NULL DEFAULT 0.5
        CHECK (importance >= 0 AND importance <= 1),
    created_at        TEXT NOT NULL,
    last_accessed_at  TEXT,
    access_count      INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_memories_type ON agent_memories(memory_type);
CREATE INDEX IF NOT EXISTS idx_memories_created ON agent_memories(created_at);

CREATE TABLE IF NOT EXISTS agent_user_preferences (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    key         TEXT UNIQUE NOT NULL,
    value       TEXT NOT NULL,
    confidence  REAL NOT NULL DEFAULT 0.5
        CHECK (confidence >= 0 AND confidence <= 1),
    source      TEXT,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS agent_actions (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id        TEXT NOT NULL,
    tool_name         TEXT NOT NULL,
    category          TEXT NOT NULL
        CHECK (category IN ('read', 'create', 'update', 'delete', 'external', 'financial')),
    risk_level        TEXT NOT NULL
        CHECK (risk_level IN ('none', 'low', 'medium', 'high', 'critical')),
    input_summary     TEXT,
    output_summary    TEXT,
    success           INTEGER NOT NULL DEFAULT 1,
    error_message     TEXT,
    execution_time_ms INTEGER,
    requires_review   INTEGER NOT NULL DEFAULT 0,
    reviewed_at       TEXT,
    reviewed_by       TEXT,
    created_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_agent_actions_session ON agent_actions(session_id);
CREATE INDEX IF NOT EXISTS idx_agent_actions_created ON agent_actions(created_at);
CREATE INDEX IF NOT EXISTS idx_agent_actions_review
    ON agent_actions(requires_review, reviewed_at);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp   TEXT NOT NULL,
    action      TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id   INTEGER,
    old_value   TEXT,
    new_value   TEXT,
    user        TEXT
);
"""


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime the way every timestamp column stores it.

    Fixed-width ISO 8601 in UTC, so string comparison matches time order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Database:
    """Lazily opened SQLite connection with schema management.

    All writes go through ``transaction()`` so that a failure rolls back and
    surfaces as a PersistenceError instead of a raw sqlite3 exception.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize with a database path.

        Args:
            db_path: Path to the SQLite file, or ":memory:".
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            if str(self.db_path) != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            try:
                self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            except sqlite3.Error as e:
                raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create all tables and indexes if they don't exist."""
        with self.transaction() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements atomically.

        Commits on success, rolls back on any error.

        Raises:
            PersistenceError: If SQLite reports an error.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error("Database operation failed: %s", e)
            raise PersistenceError(str(e)) from e
        except BaseException:
            conn.rollback()
            raise

    def query(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        """Run a read-only statement and return all rows."""
        conn = self._get_connection()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    def query_one(self, sql: str, params: tuple | list = ()) -> sqlite3.Row | None:
        """Run a read-only statement and return the first row, if any."""
        conn = self._get_connection()
        try:
            return conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(str(e)) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
