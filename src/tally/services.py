"""Wiring of the cognition core.

``create_services`` builds every component from a CoreConfig and shares a
single database between the memory store and the action log.
"""

import logging
import os
from dataclasses import dataclass

from groq import AsyncGroq
from openai import AsyncOpenAI

from .agent import ConfirmationHandler, GroqProvider, ReasoningEngine
from .autonomy import ActionLog, ConfirmationGate, RiskClassifier
from .config import CoreConfig
from .db import Database
from .memory import ConversationExtractor, EmbeddingService, MemoryManager, MemoryStore
from .tools import RecallTool, RememberTool, ToolRegistry
from .trace_logger import ReasoningTraceLogger

logger = logging.getLogger(__name__)


@dataclass
class CoreServices:
    """Every long-lived component of the core."""

    config: CoreConfig
    db: Database
    memory: MemoryManager
    classifier: RiskClassifier
    gate: ConfirmationGate
    action_log: ActionLog
    registry: ToolRegistry
    engine: ReasoningEngine

    def close(self) -> None:
        """Release the database connection."""
        self.db.close()


def create_services(
    config: CoreConfig | None = None,
    groq_client: AsyncGroq | None = None,
    openai_client: AsyncOpenAI | None = None,
    confirmation_handler: ConfirmationHandler | None = None,
) -> CoreServices:
    """Build the core from configuration.

    Args:
        config: Configuration. Defaults are used if None.
        groq_client: Client for reasoning and extraction. Created from
            GROQ_API_KEY if None.
        openai_client: Client for embeddings. Created from OPENAI_API_KEY if None.
        confirmation_handler: Async handler asked to approve gated tool calls.

    Returns:
        The wired services. Call ``close()`` when done.
    """
    config = config or CoreConfig()
    groq_client = groq_client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))

    db = Database(config.db_path)
    db.init_db()

    embeddings = EmbeddingService(
        openai_client,
        model=config.models.embedding,
        dimensions=config.memory.embedding_dimensions,
    )
    extractor = ConversationExtractor(
        groq_client,
        model=config.models.extraction,
        temperature=config.models.extraction_temperature,
    )
    memory = MemoryManager(
        MemoryStore(db),
        embeddings,
        config=config.memory,
        extractor=extractor,
    )

    classifier = RiskClassifier(overrides=config.autonomy.classifications)
    gate = ConfirmationGate(
        classifier,
        batch_threshold=config.autonomy.batch_threshold,
        value_threshold=config.autonomy.value_threshold,
    )
    action_log = ActionLog(db, classifier)

    registry = ToolRegistry()
    registry.register(RememberTool(memory))
    registry.register(RecallTool(memory))

    provider = GroqProvider(
        groq_client,
        model=config.models.chat,
        temperature=config.models.temperature,
        max_tokens=config.models.max_tokens,
    )
    engine = ReasoningEngine(
        provider,
        registry,
        config=config.reasoning,
        memory=memory,
        gate=gate,
        action_log=action_log,
        confirm=confirmation_handler,
        trace_logger=ReasoningTraceLogger(config.log_dir),
    )

    logger.debug(
        "Core services ready: db=%s tools=%s", config.db_path, registry.list_tools()
    )
    return CoreServices(
        config=config,
        db=db,
        memory=memory,
        classifier=classifier,
        gate=gate,
        action_log=action_log,
        registry=registry,
        engine=engine,
    )
