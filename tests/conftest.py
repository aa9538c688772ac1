"""Shared fixtures: a temporary database and a deterministic embedding client."""

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from tally.db import Database
from tally.memory import EmbeddingService

DIMENSIONS = 3
DEFAULT_VECTOR = [0.0, 0.0, 1.0]

# Texts that tests embed, mapped to fixed unit-ish vectors.
VECTORS = {
    "invoice 42 is overdue": [1.0, 0.0, 0.0],
    "invoice 42 is late": [0.99, 0.05, 0.0],
    "overdue invoices": [0.95, 0.1, 0.0],
    "rent is paid on the 1st": [0.0, 1.0, 0.0],
    "when is rent due": [0.1, 0.95, 0.0],
}


class FakeEmbeddingsAPI:
    """Replacement for ``AsyncOpenAI().embeddings`` that looks vectors up by text."""

    def __init__(self, vectors: dict[str, list[float]]) -> None:
        self.vectors = vectors
        self.calls: list[list[str]] = []

    async def create(self, model: str, input: list[str], dimensions: int):
        self.calls.append(list(input))
        return SimpleNamespace(
            data=[
                SimpleNamespace(index=i, embedding=self.vectors.get(text, DEFAULT_VECTOR))
                for i, text in enumerate(input)
            ]
        )


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Create an initialized database in a temporary directory."""
    database = Database(tmp_path / "tally.db")
    database.init_db()
    yield database
    database.close()


@pytest.fixture
def embeddings_api() -> FakeEmbeddingsAPI:
    return FakeEmbeddingsAPI(dict(VECTORS))


@pytest.fixture
def embeddings(embeddings_api: FakeEmbeddingsAPI) -> EmbeddingService:
    """EmbeddingService backed by the fake API, producing 3-dimensional vectors."""
    client = Mock()
    client.embeddings = embeddings_api
    return EmbeddingService(client, dimensions=DIMENSIONS)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
