"""Data models for the memory system."""

from dataclasses import dataclass, field
from enum import Enum


class MemoryType(Enum):
    """Kind of information a memory holds."""

    CONVERSATION = "conversation"
    FACT = "fact"
    PREFERENCE = "preference"
    TASK = "task"

    @property
    def label(self) -> str:
        """Human-readable label used when injecting memories into prompts."""
        labels = {
            MemoryType.CONVERSATION: "Previous conversation",
            MemoryType.FACT: "Fact",
            MemoryType.PREFERENCE: "Preference",
            MemoryType.TASK: "Note",
        }
        return labels[self]


def clamp_unit(value: float) -> float:
    """Clamp a score to the [0, 1] range."""
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class Memory:
    """A stored memory with its embedding.

    Attributes:
        id: Database ID.
        content: The remembered text. Never edited after creation.
        embedding: Vector for ``content``.
        memory_type: What kind of memory this is.
        importance: Value score in [0, 1]; low scores are eligible for forgetting.
        created_at: ISO timestamp when stored.
        source_message_id: Optional message the memory was derived from.
        last_accessed_at: ISO timestamp of the last recall that returned it.
        access_count: Number of recalls that returned it.
    """

    id: int
    content: str
    embedding: list[float]
    memory_type: MemoryType
    importance: float
    created_at: str
    source_message_id: str | None = None
    last_accessed_at: str | None = None
    access_count: int = 0


@dataclass(frozen=True)
class MemoryWithScore:
    """A memory paired with its similarity to a recall query."""

    memory: Memory
    similarity: float

    @property
    def id(self) -> int:
        return self.memory.id

    @property
    def content(self) -> str:
        return self.memory.content

    @property
    def memory_type(self) -> MemoryType:
        return self.memory.memory_type


@dataclass(frozen=True)
class UserPreference:
    """A learned or manually set user preference.

    Attributes:
        key: Unique preference name (e.g. 'preferred_currency').
        value: Preference value.
        confidence: How sure we are, in [0, 1].
        source: 'conversation' for learned, 'manual' for explicit.
    """

    key: str
    value: str
    confidence: float = 0.5
    source: str | None = None


@dataclass
class MemoryStats:
    """Aggregate view of the memory table."""

    total: int = 0
    by_type: dict[MemoryType, int] = field(
        default_factory=lambda: {t: 0 for t in MemoryType}
    )
    avg_importance: float = 0.0
    oldest: str | None = None
    newest: str | None = None
