"""Tests for ConversationExtractor."""

from unittest.mock import AsyncMock, Mock

import pytest
from groq import GroqError

from tally.memory import ConversationExtractor, ExtractedFact, UserPreference
from tally.memory.extractor import MAX_CONVERSATION_CHARS


def _client(content: str | None) -> Mock:
    """Groq client mock whose completion returns the given content."""
    client = Mock()
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = content
    client.chat.completions.create = AsyncMock(return_value=response)
    return client


TURNS = [
    {"role": "system", "content": "You are Tally."},
    {"role": "user", "content": "Our fiscal year ends in March. Show amounts in MYR."},
    {"role": "assistant", "content": "Got it."},
    {"role": "tool", "content": "{\"rows\": 3}"},
]


class TestExtractFacts:
    """Tests for fact extraction."""

    @pytest.mark.asyncio
    async def test_parses_facts(self):
        client = _client('[{"fact": "Fiscal year ends in March", "importance": 0.9}]')
        extractor = ConversationExtractor(client)

        facts = await extractor.extract_facts(TURNS)

        assert facts == [ExtractedFact("Fiscal year ends in March", 0.9)]

    @pytest.mark.asyncio
    async def test_strips_code_fence(self):
        client = _client('```json\n[{"fact": "Pays rent monthly"}]\n```')
        extractor = ConversationExtractor(client)

        facts = await extractor.extract_facts(TURNS)

        assert facts == [ExtractedFact("Pays rent monthly", 0.5)]

    @pytest.mark.asyncio
    async def test_only_user_and_assistant_turns_sent(self):
        client = _client("[]")
        extractor = ConversationExtractor(client, model="small-model")

        await extractor.extract_facts(TURNS)

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "small-model"
        user_message = kwargs["messages"][1]["content"]
        assert user_message == (
            "user: Our fiscal year ends in March. Show amounts in MYR.\nassistant: Got it."
        )

    @pytest.mark.asyncio
    async def test_conversation_is_capped(self):
        client = _client("[]")
        extractor = ConversationExtractor(client)

        await extractor.extract_facts([{"role": "user", "content": "x" * 10000}])

        user_message = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
        assert len(user_message) == MAX_CONVERSATION_CHARS

    @pytest.mark.asyncio
    async def test_invalid_json_returns_empty(self):
        extractor = ConversationExtractor(_client("The user likes MYR."))
        assert await extractor.extract_facts(TURNS) == []

    @pytest.mark.asyncio
    async def test_non_array_returns_empty(self):
        extractor = ConversationExtractor(_client('{"fact": "x"}'))
        assert await extractor.extract_facts(TURNS) == []

    @pytest.mark.asyncio
    async def test_invalid_items_skipped(self):
        client = _client('[{"fact": ""}, "loose string", {"fact": "Has two shops", "importance": 7}]')
        extractor = ConversationExtractor(client)

        facts = await extractor.extract_facts(TURNS)

        assert facts == [ExtractedFact("Has two shops", 1.0)]

    @pytest.mark.asyncio
    async def test_api_error_returns_empty(self):
        client = Mock()
        client.chat.completions.create = AsyncMock(side_effect=GroqError("rate limited"))
        extractor = ConversationExtractor(client)

        assert await extractor.extract_facts(TURNS) == []

    @pytest.mark.asyncio
    async def test_no_choices_returns_empty(self):
        client = _client("[]")
        client.chat.completions.create.return_value.choices = []
        extractor = ConversationExtractor(client)

        assert await extractor.extract_facts(TURNS) == []
        assert await extractor.extract_preferences(TURNS) == []

    @pytest.mark.asyncio
    async def test_empty_conversation_skips_call(self):
        client = _client("[]")
        extractor = ConversationExtractor(client)

        assert await extractor.extract_facts([]) == []
        assert await extractor.extract_facts([{"role": "system", "content": "only system"}]) == []
        client.chat.completions.create.assert_not_called()


class TestExtractPreferences:
    """Tests for preference extraction."""

    @pytest.mark.asyncio
    async def test_parses_preferences(self):
        client = _client('[{"key": "preferred_currency", "value": "MYR", "confidence": 0.8}]')
        extractor = ConversationExtractor(client)

        prefs = await extractor.extract_preferences(TURNS)

        assert prefs == [UserPreference("preferred_currency", "MYR", 0.8, "conversation")]

    @pytest.mark.asyncio
    async def test_items_without_key_or_value_skipped(self):
        client = _client('[{"key": "detail_level"}, {"value": "weekly"}]')
        extractor = ConversationExtractor(client)

        assert await extractor.extract_preferences(TURNS) == []

    @pytest.mark.asyncio
    async def test_none_content_treated_as_empty(self):
        extractor = ConversationExtractor(_client(None))
        assert await extractor.extract_preferences(TURNS) == []
