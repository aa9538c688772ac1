"""Command-line interface for Tally.

Provides commands to ask the reasoning engine a question, maintain the
memory store and review the agent action log.
"""

import argparse
import asyncio
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any

from .agent import (
    ReasoningContext,
    ReasoningStep,
    StepType,
    StopReason,
    build_system_prompt,
    format_preferences,
)
from .autonomy import ActionLog, ConfirmationDecision, RiskClassifier
from .config import CoreConfig, load_config
from .db import Database
from .errors import TallyError
from .services import CoreServices, create_services

REQUIRED_KEYS = ("GROQ_API_KEY", "OPENAI_API_KEY")


def _load(args: argparse.Namespace) -> CoreConfig:
    return load_config(Path(args.config) if args.config else None)


def _missing_keys() -> list[str]:
    """API keys the LLM-backed commands need but the environment lacks."""
    return [key for key in REQUIRED_KEYS if not os.getenv(key)]


def _open_services(args: argparse.Namespace, **kwargs: Any) -> CoreServices | None:
    """Create the core services, or print why they can't be created."""
    missing = _missing_keys()
    if missing:
        for key in missing:
            print(f"Error: {key} environment variable not set")
        print("Please set it in your .env file or environment")
        return None
    return create_services(_load(args), **kwargs)


def _open_action_log(args: argparse.Namespace) -> tuple[Database, ActionLog]:
    """Open the action log without the LLM clients."""
    config = _load(args)
    db = Database(config.db_path)
    db.init_db()
    return db, ActionLog(db, RiskClassifier(overrides=config.autonomy.classifications))


def _confirmation_handler(auto_approve: bool):
    """Build the handler that asks the user before gated tool calls run."""

    async def confirm(tool_name: str, args: dict[str, Any], decision: ConfirmationDecision) -> bool:
        print(f"\n⚠ {tool_name} needs confirmation: {decision.reason}")
        if auto_approve:
            print("   Approved (--yes)")
            return True
        answer = await asyncio.to_thread(input, "   Proceed? (y/n): ")
        return answer.strip().lower() in ("y", "yes")

    return confirm


def _format_step(step: ReasoningStep) -> str:
    """One line per reasoning step for streaming output."""
    if step.type is StepType.ACTION:
        return f"→ {step.tool_name} {step.tool_args or {}}"
    if step.type is StepType.OBSERVATION:
        ok = step.tool_result is not None and step.tool_result.success
        first_line = step.content.splitlines()[0] if step.content else ""
        return f"{'✓' if ok else '✗'} {step.tool_name}: {first_line[:100]}"
    if step.type is StepType.THOUGHT:
        return f"… {step.content}"
    return ""


async def _ask(services: CoreServices, args: argparse.Namespace) -> int:
    query = " ".join(args.query)
    preferences = format_preferences(services.memory.get_preferences())
    context = ReasoningContext(
        query=query,
        system_prompt=build_system_prompt(services.registry.get_tools_schema(), preferences),
        session_id=args.session,
    )

    if args.stream:
        stream = services.engine.reason_stream(context)
        async for step in stream:
            line = _format_step(step)
            if line:
                print(line)
        result = await stream.result()
    else:
        result = await services.engine.reason(context)

    print("\n" + "─" * 40)
    print(result.final_answer)
    print("─" * 40)
    print(f"confidence: {result.confidence:.2f}  iterations: {result.iteration_count}")
    if result.stop_reason is not StopReason.COMPLETE:
        print(f"⚠ Stopped: {result.stop_reason.value}")

    if args.learn:
        facts = await services.engine.on_session_end([
            {"role": "user", "content": query},
            {"role": "assistant", "content": result.final_answer},
        ])
        if facts:
            print(f"Saved {len(facts)} new fact(s)")

    return 0 if result.stop_reason is not StopReason.PROVIDER_ERROR else 1


def cmd_ask(args: argparse.Namespace) -> int:
    """Ask the reasoning engine a question."""
    services = _open_services(
        args, confirmation_handler=_confirmation_handler(args.yes)
    )
    if services is None:
        return 1
    try:
        return asyncio.run(_ask(services, args))
    finally:
        services.close()


def cmd_memory_stats(args: argparse.Namespace) -> int:
    """Show memory statistics."""
    services = _open_services(args)
    if services is None:
        return 1
    try:
        stats = services.memory.get_stats()
    finally:
        services.close()

    print(f"\nMemories: {stats.total}")
    print("-" * 40)
    for memory_type, count in stats.by_type.items():
        print(f"  {memory_type.value:<14} {count}")
    print(f"Average importance: {stats.avg_importance:.2f}")
    if stats.oldest:
        print(f"Oldest: {stats.oldest}")
        print(f"Newest: {stats.newest}")
    return 0


def cmd_memory_recall(args: argparse.Namespace) -> int:
    """Recall memories similar to a query."""
    services = _open_services(args)
    if services is None:
        return 1
    try:
        memories = asyncio.run(
            services.memory.recall(" ".join(args.query), limit=args.limit)
        )
    finally:
        services.close()

    if not memories:
        print("No relevant memories found.")
        return 0
    for m in memories:
        print(f"{m.similarity:.2f}  [{m.memory_type.label}] {m.content}")
    return 0


def cmd_memory_consolidate(args: argparse.Namespace) -> int:
    """Remove near-duplicate memories."""
    services = _open_services(args)
    if services is None:
        return 1
    try:
        removed = asyncio.run(services.memory.consolidate())
    finally:
        services.close()
    print(f"Consolidated: removed {removed} duplicate memor{'y' if removed == 1 else 'ies'}")
    return 0


def cmd_memory_forget(args: argparse.Namespace) -> int:
    """Delete old, unimportant, rarely used memories."""
    services = _open_services(args)
    if services is None:
        return 1
    try:
        removed = asyncio.run(services.memory.forget())
    finally:
        services.close()
    print(f"Forgot {removed} stale memor{'y' if removed == 1 else 'ies'}")
    return 0


def _print_actions(actions: list) -> None:
    print(f"\n{'ID':<6} {'Tool':<26} {'Risk':<9} {'OK':<3} {'ms':>6}  Created")
    print("-" * 80)
    for a in actions:
        flag = "✓" if a.success else "✗"
        review = " (review)" if a.requires_review and not a.reviewed_at else ""
        print(
            f"{a.id:<6} {a.tool_name:<26} {a.risk_level.value:<9} {flag:<3} "
            f"{a.execution_time_ms:>6}  {a.created_at}{review}"
        )
    print(f"\nTotal: {len(actions)} action(s)")


def cmd_actions_recent(args: argparse.Namespace) -> int:
    """List recent agent actions."""
    db, action_log = _open_action_log(args)
    try:
        actions = action_log.list_recent(session_id=args.session, limit=args.limit)
    finally:
        db.close()

    if not actions:
        print("No actions logged.")
        return 0
    _print_actions(actions)
    return 0


def cmd_actions_pending(args: argparse.Namespace) -> int:
    """List actions waiting for review."""
    db, action_log = _open_action_log(args)
    try:
        actions = action_log.list_pending_review()
    finally:
        db.close()

    if not actions:
        print("Nothing to review.")
        return 0
    _print_actions(actions)
    return 0


def cmd_actions_review(args: argparse.Namespace) -> int:
    """Mark an action as reviewed."""
    db, action_log = _open_action_log(args)
    try:
        if not action_log.mark_reviewed(args.id, reviewed_by=args.by):
            print(f"Error: Action {args.id} not found.")
            return 1
        action = action_log.get(args.id)
    finally:
        db.close()

    print(f"Action {args.id} reviewed by {action.reviewed_by} at {action.reviewed_at}")
    return 0


def cmd_actions_stats(args: argparse.Namespace) -> int:
    """Show action log statistics."""
    db, action_log = _open_action_log(args)
    try:
        stats = action_log.get_stats(from_date=args.since)
    finally:
        db.close()

    print(f"\nActions: {stats.total_actions}")
    print("-" * 40)
    print(f"Successful: {stats.successful_actions}")
    print(f"Failed: {stats.failed_actions}")
    print(f"Pending review: {stats.pending_review}")
    print(f"Average time: {stats.avg_execution_time_ms} ms")
    if stats.actions_by_risk:
        print("By risk: " + ", ".join(f"{k}={v}" for k, v in sorted(stats.actions_by_risk.items())))
    if stats.most_used_tools:
        print("Most used:")
        for tool_name, count in stats.most_used_tools:
            print(f"  {tool_name:<26} {count}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the Tally CLI."""
    parser = argparse.ArgumentParser(
        prog="tally",
        description="Accounting assistant with memory and audited tool use",
    )
    parser.add_argument("-c", "--config", help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    # ask command
    ask_parser = subparsers.add_parser("ask", help="Ask a question")
    ask_parser.add_argument("query", nargs="+", help="The question")
    ask_parser.add_argument(
        "-s", "--session",
        default=f"cli-{uuid.uuid4().hex[:8]}",
        help="Session id used for auditing and tracing",
    )
    ask_parser.add_argument("--stream", action="store_true", help="Print steps as they happen")
    ask_parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Approve every action that needs confirmation",
    )
    ask_parser.add_argument(
        "--learn",
        action="store_true",
        help="Extract facts and preferences from the exchange afterwards",
    )

    # memory commands
    memory_parser = subparsers.add_parser("memory", help="Manage memories")
    memory_sub = memory_parser.add_subparsers(dest="subcommand")
    memory_sub.add_parser("stats", help="Show memory statistics")
    recall_parser = memory_sub.add_parser("recall", help="Recall similar memories")
    recall_parser.add_argument("query", nargs="+", help="What to look for")
    recall_parser.add_argument("-n", "--limit", type=int, default=None, help="Maximum results")
    memory_sub.add_parser("consolidate", help="Remove near-duplicate memories")
    memory_sub.add_parser("forget", help="Delete stale memories")

    # actions commands
    actions_parser = subparsers.add_parser("actions", help="Review the action log")
    actions_sub = actions_parser.add_subparsers(dest="subcommand")
    recent_parser = actions_sub.add_parser("recent", help="List recent actions")
    recent_parser.add_argument("-s", "--session", help="Only this session")
    recent_parser.add_argument("-n", "--limit", type=int, default=50, help="Maximum rows")
    actions_sub.add_parser("pending", help="List actions waiting for review")
    review_parser = actions_sub.add_parser("review", help="Mark an action as reviewed")
    review_parser.add_argument("id", type=int, help="Action id")
    review_parser.add_argument("--by", default="user", help="Reviewer name")
    stats_parser = actions_sub.add_parser("stats", help="Show action statistics")
    stats_parser.add_argument("--since", help="ISO date to count from")

    return parser


COMMANDS = {
    ("ask", None): cmd_ask,
    ("memory", "stats"): cmd_memory_stats,
    ("memory", "recall"): cmd_memory_recall,
    ("memory", "consolidate"): cmd_memory_consolidate,
    ("memory", "forget"): cmd_memory_forget,
    ("actions", "recent"): cmd_actions_recent,
    ("actions", "pending"): cmd_actions_pending,
    ("actions", "review"): cmd_actions_review,
    ("actions", "stats"): cmd_actions_stats,
}


def run_cli(argv: list[str] | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    handler = COMMANDS.get((args.command, getattr(args, "subcommand", None)))
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except TallyError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(run_cli())
