"""Per-session JSONL trace of reasoning invocations.

Each session gets its own file under the log directory with every query,
provider turn, tool call, confirmation decision and final answer.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

MAX_OUTPUT_CHARS = 2000


class ReasoningTraceLogger:
    """Writes structured reasoning events for later analysis."""

    def __init__(self, log_dir: Path | str) -> None:
        """Initialize the trace logger.

        Args:
            log_dir: Directory to store trace files. Created if missing.
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log_file(self, session_id: str) -> Path:
        """Trace file path for a session (one file per day)."""
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.log_dir / f"{date_str}_{session_id}.jsonl"

    def _write(self, session_id: str, entry: dict[str, Any]) -> None:
        """Append an entry to the session's trace file."""
        entry["timestamp"] = datetime.now(timezone.utc).isoformat()
        entry["session_id"] = session_id

        with open(self.log_file(session_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")

    def log_query(self, session_id: str, query: str, memories: int = 0) -> None:
        """Log the start of a reasoning invocation."""
        self._write(session_id, {
            "event": "query",
            "content": query,
            "memories": memories,
        })

    def log_provider_request(
        self,
        session_id: str,
        iteration: int,
        messages_count: int,
        tools_count: int,
    ) -> None:
        self._write(session_id, {
            "event": "provider_request",
            "iteration": iteration,
            "messages_count": messages_count,
            "tools_count": tools_count,
        })

    def log_provider_response(
        self,
        session_id: str,
        has_text: bool,
        tool_calls_count: int,
    ) -> None:
        self._write(session_id, {
            "event": "provider_response",
            "has_text": has_text,
            "tool_calls_count": tool_calls_count,
        })

    def log_tool_call(
        self,
        session_id: str,
        tool_name: str,
        tool_args: dict[str, Any],
        tool_call_id: str | None = None,
    ) -> None:
        """Log a tool call requested by the model."""
        self._write(session_id, {
            "event": "tool_call",
            "tool_name": tool_name,
            "tool_args": tool_args,
            "tool_call_id": tool_call_id,
        })

    def log_tool_result(
        self,
        session_id: str,
        tool_name: str,
        success: bool,
        output: str,
        error: str | None = None,
        tool_call_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log the result of a tool execution."""
        entry: dict[str, Any] = {
            "event": "tool_result",
            "tool_name": tool_name,
            "success": success,
            "output": output[:MAX_OUTPUT_CHARS] if output else "",
            "tool_call_id": tool_call_id,
        }
        if error:
            entry["error"] = error
        if duration_ms is not None:
            entry["duration_ms"] = duration_ms

        self._write(session_id, entry)

    def log_confirmation(
        self,
        session_id: str,
        tool_name: str,
        approved: bool,
        reason: str | None,
    ) -> None:
        """Log a confirmation gate decision that needed a human."""
        self._write(session_id, {
            "event": "confirmation",
            "tool_name": tool_name,
            "approved": approved,
            "reason": reason,
        })

    def log_answer(self, session_id: str, content: str, confidence: float) -> None:
        self._write(session_id, {
            "event": "answer",
            "content": content[:MAX_OUTPUT_CHARS],
            "confidence": confidence,
        })

    def log_error(self, session_id: str, error: str, context: str | None = None) -> None:
        """Log an error."""
        entry = {
            "event": "error",
            "error": error,
        }
        if context:
            entry["context"] = context
        self._write(session_id, entry)

    def log_stop(
        self,
        session_id: str,
        stop_reason: str,
        iterations: int,
        tools_used: int,
    ) -> None:
        """Log when the reasoning loop stops."""
        self._write(session_id, {
            "event": "stop",
            "stop_reason": stop_reason,
            "iterations": iterations,
            "tools_used": tools_used,
        })
