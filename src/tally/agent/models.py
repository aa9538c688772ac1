"""Reasoning data types."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..tools.base import ToolResult


class StepType(Enum):
    """Kind of reasoning step."""

    THOUGHT = "thought"
    ACTION = "action"
    OBSERVATION = "observation"
    ANSWER = "answer"


class StopReason(Enum):
    """Why the reasoning loop stopped."""

    COMPLETE = "complete"
    MAX_ITERATIONS = "max_iterations"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class ReasoningStep:
    """One entry in the append-only reasoning trace."""

    id: int
    type: StepType
    content: str
    tool_name: str | None = None
    tool_args: dict[str, Any] | None = None
    tool_result: ToolResult | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ReasoningContext:
    """Input to a reasoning invocation.

    Attributes:
        query: The user's request. Must not be blank.
        system_prompt: System instructions for the provider.
        prior_turns: Earlier conversation turns ({"role", "content"} dicts).
        extra_context: Additional context blocks placed before the query,
            e.g. a financial summary.
        session_id: Identifies the conversation for auditing and tracing.
    """

    query: str
    system_prompt: str = ""
    prior_turns: list[dict[str, str]] = field(default_factory=list)
    extra_context: list[str] = field(default_factory=list)
    session_id: str = "default"

    def __post_init__(self) -> None:
        if not self.query or not self.query.strip():
            raise ValueError("query must not be empty")


@dataclass
class ReasoningResult:
    """Outcome of a reasoning invocation."""

    steps: list[ReasoningStep]
    final_answer: str
    tools_used: list[str]
    iteration_count: int
    confidence: float
    sources: list[str] = field(default_factory=list)
    stop_reason: StopReason = StopReason.COMPLETE
