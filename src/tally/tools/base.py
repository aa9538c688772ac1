"""Base tool interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ToolResult:
    """Result from tool execution.

    Attributes:
        success: Whether the tool did what was asked.
        result: Text shown to the model as the observation.
        data: Optional structured payload for callers.
        error: Error detail when ``success`` is False.
    """

    success: bool
    result: str
    data: Any = None
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        """Build a failed result whose observation text is the error."""
        return cls(success=False, result=error, error=error)


@dataclass(frozen=True)
class ToolSpec:
    """What the registry exposes about a tool to the capability provider."""

    name: str
    description: str
    parameters: dict[str, Any]

    def to_schema(self) -> dict[str, Any]:
        """Tool schema in function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class Tool(ABC):
    """Base interface for all tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for the model."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with given arguments."""
        ...

    def spec(self) -> ToolSpec:
        return ToolSpec(self.name, self.description, self.parameters)

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """Validate arguments against schema. Returns (valid, error_message)."""
        required = self.parameters.get("required", [])
        properties = self.parameters.get("properties", {})

        for field in required:
            if field not in args:
                return False, f"Missing required argument: {field}"

        # Basic type checks only
        for key, value in args.items():
            if key not in properties:
                continue
            expected_type = properties[key].get("type")
            if expected_type == "string" and not isinstance(value, str):
                return False, f"Argument '{key}' must be a string"
            if expected_type == "integer" and (
                not isinstance(value, int) or isinstance(value, bool)
            ):
                return False, f"Argument '{key}' must be an integer"
            if expected_type == "number" and (
                not isinstance(value, (int, float)) or isinstance(value, bool)
            ):
                return False, f"Argument '{key}' must be a number"
            if expected_type == "boolean" and not isinstance(value, bool):
                return False, f"Argument '{key}' must be a boolean"
            if expected_type == "array" and not isinstance(value, list):
                return False, f"Argument '{key}' must be an array"

        return True, None
