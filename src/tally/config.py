"""Configuration loader for the cognition core.

Loads settings from ~/.tally/config.json. Every section is optional; missing
keys keep their defaults. API keys are never read from this file, they come
from the environment (see ``tally.main``).
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".tally" / "config.json"


@dataclass
class ModelConfig:
    """Model names used by the providers."""

    chat: str = "llama-3.3-70b-versatile"
    extraction: str = "llama-3.1-8b-instant"
    embedding: str = "text-embedding-3-small"
    temperature: float = 0.5
    extraction_temperature: float = 0.2
    max_tokens: int = 2000


@dataclass
class ReasoningConfig:
    """Limits for the reasoning loop.

    Attributes:
        max_iterations: Maximum provider turns per invocation.
        provider_timeout: Seconds allowed for a single provider call.
        tool_timeout: Seconds allowed for a single tool execution.
    """

    max_iterations: int = 10
    provider_timeout: float = 60.0
    tool_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be at least 1")
        if self.provider_timeout <= 0 or self.tool_timeout <= 0:
            raise ConfigError("timeouts must be positive")


@dataclass
class MemoryConfig:
    """Recall, consolidation and forgetting parameters."""

    recall_limit: int = 10
    min_similarity: float = 0.7
    consolidation_threshold: int = 100
    max_age_days: int = 90
    min_importance: float = 0.3
    embedding_dimensions: int = 1536

    def __post_init__(self) -> None:
        if self.recall_limit < 1:
            raise ConfigError("recall_limit must be at least 1")
        if self.embedding_dimensions < 1:
            raise ConfigError("embedding_dimensions must be at least 1")
        if self.max_age_days < 0:
            raise ConfigError("max_age_days cannot be negative")
        if not 0.0 <= self.min_importance <= 1.0:
            raise ConfigError("min_importance must be between 0 and 1")


@dataclass
class AutonomyConfig:
    """Thresholds for the confirmation gate.

    Attributes:
        batch_threshold: Actions touching more items than this need confirmation.
        value_threshold: Actions moving more money than this need confirmation.
        classifications: Per-tool overrides of the default risk table.
    """

    batch_threshold: int = 10
    value_threshold: float = 10000.0
    classifications: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class CoreConfig:
    """Top-level configuration consumed by ``create_services``."""

    db_path: Path | None = None
    log_dir: Path | None = None
    models: ModelConfig = field(default_factory=ModelConfig)
    reasoning: ReasoningConfig = field(default_factory=ReasoningConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    autonomy: AutonomyConfig = field(default_factory=AutonomyConfig)

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = Path.home() / ".tally" / "tally.db"
        if self.log_dir is None:
            self.log_dir = Path.home() / ".tally" / "logs"


def load_config(config_path: Path | None = None) -> CoreConfig:
    """Load CoreConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "db_path": "~/.tally/tally.db",
      "reasoning": {"max_iterations": 8},
      "memory": {"min_similarity": 0.75},
      "autonomy": {
        "value_threshold": 5000,
        "classifications": {
          "void_invoice": {"category": "financial", "risk_level": "high"}
        }
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        CoreConfig instance with loaded values.

    Raises:
        ConfigError: If a value is present but out of range.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return CoreConfig()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return CoreConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return CoreConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return CoreConfig()

    return _parse_config(data)


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    """Build a config section, ignoring unknown keys."""
    raw = data.get(name, {})
    if not isinstance(raw, dict):
        logger.warning("Config section '%s' is not an object, ignoring", name)
        return cls()

    known = cls.__dataclass_fields__
    unknown = set(raw) - set(known)
    if unknown:
        logger.warning("Ignoring unknown keys in '%s': %s", name, sorted(unknown))

    try:
        return cls(**{k: v for k, v in raw.items() if k in known})
    except TypeError as e:
        raise ConfigError(f"Invalid '{name}' section: {e}") from e


def _parse_config(data: dict[str, Any]) -> CoreConfig:
    """Parse config dictionary into CoreConfig."""
    db_path = data.get("db_path")
    log_dir = data.get("log_dir")

    return CoreConfig(
        db_path=Path(db_path).expanduser() if db_path else None,
        log_dir=Path(log_dir).expanduser() if log_dir else None,
        models=_section(data, "models", ModelConfig),
        reasoning=_section(data, "reasoning", ReasoningConfig),
        memory=_section(data, "memory", MemoryConfig),
        autonomy=_section(data, "autonomy", AutonomyConfig),
    )
