"""Fact and preference extraction from conversations using an LLM."""

import json
import logging
from dataclasses import dataclass
from typing import Any

from groq import AsyncGroq, GroqError

from ..errors import ExtractionParseError
from .models import UserPreference, clamp_unit

logger = logging.getLogger(__name__)

MAX_CONVERSATION_CHARS = 4000

FACT_PROMPT = """Extract key accounting facts from this conversation that would be useful to remember for future interactions. Focus on:
- Business information (company name, industry, fiscal year)
- Financial patterns (typical expenses, income sources)
- User preferences (reporting style, frequency, categories)
- Important dates (tax deadlines, payment schedules)

Return ONLY a JSON array of objects: [{"fact": "...", "importance": 0.1-1.0}]
Only include genuinely useful facts. Return [] if there are no notable facts."""

PREFERENCE_PROMPT = """Identify user preferences from this accounting conversation. Look for:
- preferred_date_format (e.g. "DD/MM/YYYY")
- preferred_currency (e.g. "MYR")
- reporting_frequency (e.g. "weekly", "monthly")
- detail_level (e.g. "summary", "detailed")
- expense_categories (commonly used categories)
- communication_style (e.g. "concise", "detailed")

Return ONLY a JSON array: [{"key": "...", "value": "...", "confidence": 0.1-1.0}]
Only include preferences that are clearly indicated. Return [] if none found."""


@dataclass(frozen=True)
class ExtractedFact:
    """A fact proposed by the extraction model, not yet stored."""

    fact: str
    importance: float = 0.5


class ConversationExtractor:
    """Extracts facts and preferences from conversations using an LLM.

    Extraction is best effort: model errors and malformed output are logged
    and produce an empty result instead of raising.
    """

    def __init__(
        self,
        llm_client: AsyncGroq,
        model: str = "llama-3.1-8b-instant",
        temperature: float = 0.2,
    ) -> None:
        """Initialize the extractor.

        Args:
            llm_client: The Groq client for LLM calls.
            model: The model to use for extraction.
            temperature: Sampling temperature, kept low for stable JSON.
        """
        self.client = llm_client
        self.model = model
        self.temperature = temperature

    async def extract_facts(self, turns: list[dict[str, Any]]) -> list[ExtractedFact]:
        """Extract memorable facts from a conversation.

        Args:
            turns: Conversation messages with 'role' and 'content'.

        Returns:
            Extracted facts, empty if none found or on error.
        """
        content = await self._complete(FACT_PROMPT, turns)
        if content is None:
            return []

        try:
            return self._parse_facts(content)
        except ExtractionParseError as e:
            logger.warning("Failed to parse extracted facts: %s", e)
            return []

    async def extract_preferences(
        self, turns: list[dict[str, Any]]
    ) -> list[UserPreference]:
        """Extract user preferences from a conversation.

        Returns:
            Extracted preferences (source 'conversation'), empty on error.
        """
        content = await self._complete(PREFERENCE_PROMPT, turns)
        if content is None:
            return []

        try:
            return self._parse_preferences(content)
        except ExtractionParseError as e:
            logger.warning("Failed to parse extracted preferences: %s", e)
            return []

    async def _complete(self, system: str, turns: list[dict[str, Any]]) -> str | None:
        """Run the extraction prompt. Returns None when there is nothing to do."""
        if not turns:
            return None

        conversation_text = self._format_conversation(turns)
        if not conversation_text:
            return None

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": conversation_text},
                ],
                temperature=self.temperature,
            )
        except GroqError as e:
            logger.warning("Extraction request failed: %s", e)
            return None

        if not response.choices:
            logger.warning("Extraction response had no choices")
            return None

        return response.choices[0].message.content or "[]"

    def _format_conversation(self, turns: list[dict[str, Any]]) -> str:
        """Format user and assistant turns, capped in length."""
        lines = []
        for turn in turns:
            role = turn.get("role", "unknown")
            content = turn.get("content") or ""
            if role in ("user", "assistant") and content:
                lines.append(f"{role}: {content}")
            # Skip system and tool messages
        return "\n".join(lines)[:MAX_CONVERSATION_CHARS]

    def _load_array(self, content: str) -> list[Any]:
        """Decode the model output as a JSON array.

        The model may wrap the JSON in a markdown code block; the fence is
        removed but the payload itself must be a strict JSON array.

        Raises:
            ExtractionParseError: If the payload is not a JSON array.
        """
        json_str = content.strip()
        if json_str.startswith("```"):
            lines = [line for line in json_str.split("\n") if not line.startswith("```")]
            json_str = "\n".join(lines)

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ExtractionParseError(f"Invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise ExtractionParseError(f"Expected a JSON array, got {type(data).__name__}")
        return data

    def _parse_facts(self, content: str) -> list[ExtractedFact]:
        facts = []
        for item in self._load_array(content):
            if not isinstance(item, dict):
                logger.warning("Skipping invalid fact item: %r", item)
                continue

            fact = item.get("fact")
            if not isinstance(fact, str) or not fact.strip():
                logger.warning("Skipping fact without text: %r", item)
                continue

            facts.append(
                ExtractedFact(
                    fact=fact.strip(),
                    importance=_score(item.get("importance")),
                )
            )
        return facts

    def _parse_preferences(self, content: str) -> list[UserPreference]:
        preferences = []
        for item in self._load_array(content):
            if not isinstance(item, dict) or not item.get("key") or not item.get("value"):
                logger.warning("Skipping invalid preference item: %r", item)
                continue

            preferences.append(
                UserPreference(
                    key=str(item["key"]),
                    value=str(item["value"]),
                    confidence=_score(item.get("confidence")),
                    source="conversation",
                )
            )
        return preferences


def _score(value: Any) -> float:
    """Coerce a model-supplied score into [0, 1], defaulting to 0.5."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return 0.5
    return clamp_unit(value)
