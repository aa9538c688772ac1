"""Capability provider interface and the Groq-backed implementation."""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Protocol

from groq import AsyncGroq, GroqError

from ..errors import ProviderError


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the provider."""

    id: str
    name: str
    arguments_json: str = "{}"


@dataclass
class ProviderRequest:
    """Everything the provider sees for one turn."""

    system_prompt: str
    transcript: list[dict[str, Any]]
    tool_schemas: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ProviderResponse:
    """Either tool calls (possibly with accompanying text) or a plain answer."""

    text: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)


class CapabilityProvider(Protocol):
    """Opaque language-model capability used by the reasoning engine."""

    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        """Run one provider turn.

        Raises:
            ProviderError: If the call fails.
        """
        ...


def parse_tool_arguments(arguments_json: str | None) -> dict[str, Any]:
    """Decode tool-call arguments.

    Arguments that are missing, not valid JSON, or not a JSON object become
    an empty dict. The tool then reports missing arguments itself, which
    keeps a single bad call from ending the turn.
    """
    if not arguments_json:
        return {}
    try:
        args = json.loads(arguments_json)
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


class GroqProvider:
    """CapabilityProvider implementation that wraps AsyncGroq."""

    def __init__(
        self,
        client: AsyncGroq | None = None,
        model: str = "llama-3.3-70b-versatile",
        temperature: float = 0.5,
        max_tokens: int = 2000,
    ) -> None:
        """Initialize the provider.

        Args:
            client: Groq client. Created from GROQ_API_KEY if None.
            model: Chat model used for reasoning and tool selection.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens per response.
        """
        self.client = client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, request: ProviderRequest) -> ProviderResponse:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": request.system_prompt},
            *request.transcript,
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=request.tool_schemas or None,
                tool_choice="auto" if request.tool_schemas else None,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except GroqError as e:
            raise ProviderError(f"Groq request failed: {e}") from e

        if not response.choices:
            raise ProviderError("No response from provider")

        message = response.choices[0].message
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments_json=tc.function.arguments or "{}",
            )
            for tc in (message.tool_calls or [])
        ]
        return ProviderResponse(text=message.content, tool_calls=tool_calls)
