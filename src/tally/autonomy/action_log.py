"""Durable log of every tool execution attempt, with a human review queue."""

import json
import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..db import Database, format_timestamp, utc_now
from ..errors import PersistenceError
from ..tools.base import ToolResult
from .classifier import ActionCategory, RiskClassifier, RiskLevel

logger = logging.getLogger(__name__)

MAX_INPUT_VALUE_CHARS = 50
MAX_OUTPUT_CHARS = 200
TOP_TOOLS_LIMIT = 10


@dataclass(frozen=True)
class AgentAction:
    """One logged tool execution attempt."""

    id: int
    session_id: str
    tool_name: str
    category: ActionCategory
    risk_level: RiskLevel
    input_summary: str
    output_summary: str
    success: bool
    execution_time_ms: int
    requires_review: bool
    created_at: str
    error_message: str | None = None
    reviewed_at: str | None = None
    reviewed_by: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """Compliance audit record written for high and critical risk actions."""

    id: int
    timestamp: str
    action: str
    entity_type: str
    entity_id: int | None
    new_value: dict[str, Any]
    user: str | None


@dataclass
class ActionStats:
    """Aggregate view of the action log."""

    total_actions: int = 0
    successful_actions: int = 0
    failed_actions: int = 0
    pending_review: int = 0
    avg_execution_time_ms: int = 0
    actions_by_category: dict[str, int] = field(default_factory=dict)
    actions_by_risk: dict[str, int] = field(default_factory=dict)
    most_used_tools: list[tuple[str, int]] = field(default_factory=list)


def summarize_input(arguments: dict[str, Any]) -> str:
    """Render arguments as ``key: value`` pairs with each value capped."""
    parts = []
    for key, value in arguments.items():
        text = json.dumps(value) if isinstance(value, (dict, list)) else str(value)
        if len(text) > MAX_INPUT_VALUE_CHARS:
            text = text[:MAX_INPUT_VALUE_CHARS] + "..."
        parts.append(f"{key}: {text}")
    return ", ".join(parts)


def summarize_output(text: str) -> str:
    """Cap observation text for storage."""
    if len(text) > MAX_OUTPUT_CHARS:
        return text[:MAX_OUTPUT_CHARS] + "..."
    return text


class ActionLog:
    """Records agent actions in SQLite and serves the review queue."""

    def __init__(
        self,
        db: Database,
        classifier: RiskClassifier,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the log.

        Args:
            db: Shared database handle. ``init_db`` must have been called.
            classifier: Source of category, risk and review flags.
            clock: Source of the current time.
        """
        self.db = db
        self.classifier = classifier
        self._clock = clock

    def record(
        self,
        session_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        result: ToolResult,
        execution_time_ms: float,
    ) -> AgentAction:
        """Log one tool execution attempt, successful or not.

        High and critical risk actions also get an ``audit_log`` entry,
        written in the same transaction.

        Returns:
            The stored action.
        """
        classification = self.classifier.classify(tool_name)
        input_summary = summarize_input(arguments)
        now = format_timestamp(self._clock())
        error_message = None if result.success else (result.error or result.result)

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO agent_actions (
                    session_id, tool_name, category, risk_level, input_summary,
                    output_summary, success, error_message, execution_time_ms,
                    requires_review, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    tool_name,
                    classification.category.value,
                    classification.risk_level.value,
                    input_summary,
                    summarize_output(result.result),
                    int(result.success),
                    error_message,
                    round(execution_time_ms),
                    int(classification.requires_review),
                    now,
                ),
            )
            action_id = cursor.lastrowid

            if classification.risk_level.is_elevated:
                conn.execute(
                    """
                    INSERT INTO audit_log (timestamp, action, entity_type, entity_id, new_value, user)
                    VALUES (?, 'agent_action', 'agent', ?, ?, ?)
                    """,
                    (
                        now,
                        action_id,
                        json.dumps({
                            "tool": tool_name,
                            "risk": classification.risk_level.value,
                            "input": input_summary,
                            "success": result.success,
                        }),
                        session_id,
                    ),
                )

        if classification.risk_level.is_elevated:
            logger.warning(
                "High-risk agent action %s: tool=%s risk=%s success=%s",
                action_id, tool_name, classification.risk_level.value, result.success,
            )

        action = self.get(action_id)
        if action is None:
            raise PersistenceError(f"Agent action {action_id} was not persisted")
        return action

    def get(self, action_id: int) -> AgentAction | None:
        """Get an action by id."""
        row = self.db.query_one("SELECT * FROM agent_actions WHERE id = ?", (action_id,))
        return self._row_to_action(row) if row else None

    def list_recent(self, session_id: str | None = None, limit: int = 50) -> list[AgentAction]:
        """Most recent actions first, optionally for one session."""
        if session_id:
            rows = self.db.query(
                """
                SELECT * FROM agent_actions WHERE session_id = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (session_id, limit),
            )
        else:
            rows = self.db.query(
                "SELECT * FROM agent_actions ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            )
        return [self._row_to_action(row) for row in rows]

    def list_pending_review(self) -> list[AgentAction]:
        """Actions flagged for review that nobody has reviewed yet."""
        rows = self.db.query(
            """
            SELECT * FROM agent_actions
            WHERE requires_review = 1 AND reviewed_at IS NULL
            ORDER BY created_at DESC, id DESC
            """
        )
        return [self._row_to_action(row) for row in rows]

    def mark_reviewed(self, action_id: int, reviewed_by: str = "user") -> bool:
        """Mark an action as reviewed.

        Only the first call sets the reviewer; later calls leave the row as is.

        Returns:
            True if the action exists.
        """
        with self.db.transaction() as conn:
            conn.execute(
                """
                UPDATE agent_actions SET reviewed_at = ?, reviewed_by = ?
                WHERE id = ? AND reviewed_at IS NULL
                """,
                (format_timestamp(self._clock()), reviewed_by, action_id),
            )
        return self.get(action_id) is not None

    def get_stats(self, from_date: str | None = None) -> ActionStats:
        """Aggregate statistics, optionally from a date (ISO string) onwards."""
        where = ""
        params: list[str] = []
        if from_date:
            where = " WHERE created_at >= ?"
            params.append(from_date)

        totals = self.db.query_one(
            f"""
            SELECT
                COUNT(*) AS total_actions,
                SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END) AS successful_actions,
                SUM(CASE WHEN success = 0 THEN 1 ELSE 0 END) AS failed_actions,
                SUM(CASE WHEN requires_review = 1 AND reviewed_at IS NULL THEN 1 ELSE 0 END)
                    AS pending_review,
                AVG(execution_time_ms) AS avg_execution_time_ms
            FROM agent_actions{where}
            """,
            params,
        )
        by_category = self.db.query(
            f"SELECT category, COUNT(*) AS count FROM agent_actions{where} GROUP BY category",
            params,
        )
        by_risk = self.db.query(
            f"SELECT risk_level, COUNT(*) AS count FROM agent_actions{where} GROUP BY risk_level",
            params,
        )
        top_tools = self.db.query(
            f"""
            SELECT tool_name, COUNT(*) AS count FROM agent_actions{where}
            GROUP BY tool_name ORDER BY count DESC, tool_name ASC LIMIT ?
            """,
            [*params, TOP_TOOLS_LIMIT],
        )

        return ActionStats(
            total_actions=totals["total_actions"] or 0,
            successful_actions=totals["successful_actions"] or 0,
            failed_actions=totals["failed_actions"] or 0,
            pending_review=totals["pending_review"] or 0,
            avg_execution_time_ms=round(totals["avg_execution_time_ms"] or 0),
            actions_by_category={row["category"]: row["count"] for row in by_category},
            actions_by_risk={row["risk_level"]: row["count"] for row in by_risk},
            most_used_tools=[(row["tool_name"], row["count"]) for row in top_tools],
        )

    def list_audit_entries(self, limit: int = 50) -> list[AuditEntry]:
        """Most recent compliance audit entries first."""
        rows = self.db.query(
            "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)
        )
        return [
            AuditEntry(
                id=row["id"],
                timestamp=row["timestamp"],
                action=row["action"],
                entity_type=row["entity_type"],
                entity_id=row["entity_id"],
                new_value=json.loads(row["new_value"]) if row["new_value"] else {},
                user=row["user"],
            )
            for row in rows
        ]

    def _row_to_action(self, row: sqlite3.Row) -> AgentAction:
        """Convert a database row to an AgentAction."""
        return AgentAction(
            id=row["id"],
            session_id=row["session_id"],
            tool_name=row["tool_name"],
            category=ActionCategory(row["category"]),
            risk_level=RiskLevel(row["risk_level"]),
            input_summary=row["input_summary"] or "",
            output_summary=row["output_summary"] or "",
            success=bool(row["success"]),
            execution_time_ms=row["execution_time_ms"] or 0,
            requires_review=bool(row["requires_review"]),
            created_at=row["created_at"],
            error_message=row["error_message"],
            reviewed_at=row["reviewed_at"],
            reviewed_by=row["reviewed_by"],
        )
