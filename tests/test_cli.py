"""Tests for the Tally CLI."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from tally import cli
from tally.autonomy import ActionLog, RiskClassifier
from tally.cli import create_parser, run_cli
from tally.db import Database
from tally.services import create_services
from tally.tools import ToolResult


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "db_path": str(tmp_path / "tally.db"),
        "log_dir": str(tmp_path / "logs"),
        "memory": {"embedding_dimensions": 3},
    }))
    return path


@pytest.fixture
def seeded_actions(tmp_path: Path, config_path: Path) -> list:
    db = Database(tmp_path / "tally.db")
    db.init_db()
    log = ActionLog(db, RiskClassifier())
    actions = [
        log.record("s1", "list_invoices", {}, ToolResult(True, "3 rows"), 5),
        log.record("s1", "auto_match_transactions", {}, ToolResult(True, "matched 4"), 9),
    ]
    db.close()
    return actions


@pytest.fixture
def fake_clients(monkeypatch, embeddings_api) -> Mock:
    """Route create_services to fake Groq and OpenAI clients."""
    monkeypatch.setenv("GROQ_API_KEY", "test")
    monkeypatch.setenv("OPENAI_API_KEY", "test")

    groq_client = Mock()
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message.content = "You are owed RM 500."
    response.choices[0].message.tool_calls = None
    groq_client.chat.completions.create = AsyncMock(return_value=response)

    openai_client = Mock()
    openai_client.embeddings = embeddings_api

    def fake_create_services(config, **kwargs):
        return create_services(
            config, groq_client=groq_client, openai_client=openai_client, **kwargs
        )

    monkeypatch.setattr(cli, "create_services", fake_create_services)
    return groq_client


class TestParser:
    """Tests for argument parsing."""

    def test_ask_joins_words(self):
        args = create_parser().parse_args(["ask", "who", "owes", "us?", "--stream", "-y"])
        assert args.query == ["who", "owes", "us?"]
        assert args.stream and args.yes
        assert args.session.startswith("cli-")

    def test_actions_review(self):
        args = create_parser().parse_args(["actions", "review", "7", "--by", "alice"])
        assert (args.command, args.subcommand, args.id, args.by) == ("actions", "review", 7, "alice")

    def test_memory_recall_limit(self):
        args = create_parser().parse_args(["memory", "recall", "rent", "-n", "3"])
        assert args.limit == 3


class TestRunCli:
    """Tests for command dispatch."""

    def test_no_command_prints_help(self, capsys):
        assert run_cli([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_group_without_subcommand(self, capsys):
        assert run_cli(["actions"]) == 1

    def test_missing_api_keys(self, monkeypatch, capsys, config_path):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        assert run_cli(["-c", str(config_path), "ask", "hello"]) == 1
        out = capsys.readouterr().out
        assert "GROQ_API_KEY environment variable not set" in out
        assert "OPENAI_API_KEY environment variable not set" in out


class TestActionsCommands:
    """Tests for the action log commands, which need no API keys."""

    def test_recent(self, config_path, seeded_actions, capsys):
        assert run_cli(["-c", str(config_path), "actions", "recent"]) == 0
        out = capsys.readouterr().out
        assert "list_invoices" in out
        assert "auto_match_transactions" in out
        assert "Total: 2 action(s)" in out

    def test_recent_empty(self, config_path, capsys):
        assert run_cli(["-c", str(config_path), "actions", "recent"]) == 0
        assert "No actions logged." in capsys.readouterr().out

    def test_pending_then_review(self, config_path, seeded_actions, capsys):
        flagged = seeded_actions[1]

        assert run_cli(["-c", str(config_path), "actions", "pending"]) == 0
        assert "auto_match_transactions" in capsys.readouterr().out

        assert run_cli(["-c", str(config_path), "actions", "review", str(flagged.id), "--by", "alice"]) == 0
        assert "reviewed by alice" in capsys.readouterr().out

        assert run_cli(["-c", str(config_path), "actions", "pending"]) == 0
        assert "Nothing to review." in capsys.readouterr().out

    def test_review_missing(self, config_path, capsys):
        assert run_cli(["-c", str(config_path), "actions", "review", "99"]) == 1
        assert "not found" in capsys.readouterr().out

    def test_stats(self, config_path, seeded_actions, capsys):
        assert run_cli(["-c", str(config_path), "actions", "stats"]) == 0
        out = capsys.readouterr().out
        assert "Actions: 2" in out
        assert "Pending review: 1" in out


class TestLlmCommands:
    """Tests for commands that use the providers."""

    def test_ask(self, config_path, fake_clients, capsys):
        assert run_cli(["-c", str(config_path), "ask", "How", "much", "are", "we", "owed?"]) == 0

        out = capsys.readouterr().out
        assert "You are owed RM 500." in out
        assert "confidence: 0.50" in out
        messages = fake_clients.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1]["content"] == "How much are we owed?"

    def test_ask_stream(self, config_path, fake_clients, capsys):
        assert run_cli(["-c", str(config_path), "ask", "hello", "--stream"]) == 0
        assert "You are owed RM 500." in capsys.readouterr().out

    def test_memory_stats(self, config_path, fake_clients, capsys):
        assert run_cli(["-c", str(config_path), "memory", "stats"]) == 0
        out = capsys.readouterr().out
        assert "Memories: 0" in out
        assert "fact" in out

    def test_memory_recall_empty(self, config_path, fake_clients, capsys):
        assert run_cli(["-c", str(config_path), "memory", "recall", "rent"]) == 0
        assert "No relevant memories found." in capsys.readouterr().out

    def test_memory_maintenance(self, config_path, fake_clients, capsys):
        assert run_cli(["-c", str(config_path), "memory", "consolidate"]) == 0
        assert "removed 0" in capsys.readouterr().out
        assert run_cli(["-c", str(config_path), "memory", "forget"]) == 0
        assert "Forgot 0" in capsys.readouterr().out
