"""Exception types raised by the cognition core."""


class TallyError(Exception):
    """Base class for all errors raised by tally."""


class ConfigError(TallyError):
    """Invalid configuration value."""


class ProviderError(TallyError):
    """The capability provider call failed or timed out."""


class ToolError(TallyError):
    """Base class for tool dispatch failures."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class ToolExecutionError(ToolError):
    """A tool raised while executing."""


class EmbeddingError(TallyError):
    """Text could not be embedded (blank input or bad provider response)."""


class ExtractionParseError(TallyError):
    """The extraction model returned something that is not the expected JSON."""


class PersistenceError(TallyError):
    """A database operation failed."""
