"""Prompt building for the reasoning engine."""

from typing import Any

CONTEXT_SEPARATOR = "\n\n---\n\n"

SYSTEM_PROMPT_BASE = """You are Tally, an accounting assistant for a small business.

You have access to the following tools:
{tools_description}

Use tools to look up real figures before answering questions about the books.
Never invent amounts, dates or customer names. If a tool fails, say so and
explain what you could not verify.

Important:
- Actions that change records or contact external systems may require the
  user's confirmation before they run
- Keep answers concise and state the figures you relied on"""


def build_system_prompt(tools_schema: list[dict[str, Any]], preferences_block: str = "") -> str:
    """Build the default system prompt with available tools and preferences.

    Args:
        tools_schema: List of tool schemas for the provider.
        preferences_block: Optional block describing known user preferences.

    Returns:
        Complete system prompt string.
    """
    if not tools_schema:
        tools_desc = "No tools available."
    else:
        tools_desc = "\n".join(
            f"- {t['function']['name']}: {t['function']['description']}"
            for t in tools_schema
        )

    prompt = SYSTEM_PROMPT_BASE.format(tools_description=tools_desc)

    if preferences_block.strip():
        prompt += "\n\n" + preferences_block

    return prompt


def build_user_content(query: str, context_blocks: list[str]) -> str:
    """Place context blocks ahead of the query, separated by rules."""
    blocks = [block for block in context_blocks if block and block.strip()]
    return CONTEXT_SEPARATOR.join([*blocks, query])


def format_preferences(preferences: list[Any]) -> str:
    """Format stored preferences as a prompt block, or '' if there are none."""
    if not preferences:
        return ""
    lines = [f"- {p.key}: {p.value}" for p in preferences]
    return "Known user preferences:\n" + "\n".join(lines)


def format_tool_result(tool_name: str, success: bool, output: str, error: str | None) -> str:
    """Format a tool result for the transcript."""
    if success:
        return f"[{tool_name}] Success:\n{output}"
    return f"[{tool_name}] Error: {error or output}"
