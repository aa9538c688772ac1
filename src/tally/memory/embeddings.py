"""Embedding generation and vector utilities for semantic memory.

Embeddings come from the OpenAI embeddings API (text-embedding-3-small by
default). Vectors are stored as little-endian float32 BLOBs.
"""

import logging
import os
import struct

from openai import AsyncOpenAI, OpenAIError

from ..errors import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
EMBEDDING_DIM = 1536


class EmbeddingService:
    """Turns text into fixed-length vectors."""

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = DEFAULT_MODEL,
        dimensions: int = EMBEDDING_DIM,
    ) -> None:
        """Initialize the service.

        Args:
            client: OpenAI client. Created from OPENAI_API_KEY if None.
            model: Embedding model name.
            dimensions: Expected vector length.
        """
        self.client = client or AsyncOpenAI(api_key=os.getenv("OPENAI_API_KEY"))
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding for a single text.

        Raises:
            EmbeddingError: If the text is blank or the provider fails.
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        vectors = await self._create([text.strip()])
        logger.debug("Generated embedding for %d chars", len(text))
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for several texts in one request.

        Blank entries are dropped first; the result follows the order of the
        remaining inputs.

        Raises:
            EmbeddingError: If every input is blank or the provider fails.
        """
        if not texts:
            return []

        valid = [t.strip() for t in texts if t and t.strip()]
        if not valid:
            raise EmbeddingError("No valid texts to embed")

        vectors = await self._create(valid)
        logger.debug("Generated %d batch embeddings", len(vectors))
        return vectors

    async def _create(self, inputs: list[str]) -> list[list[float]]:
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=inputs,
                dimensions=self.dimensions,
            )
        except OpenAIError as e:
            logger.error("Embedding request failed for %d input(s): %s", len(inputs), e)
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        items = sorted(response.data, key=lambda d: d.index)
        if len(items) != len(inputs):
            raise EmbeddingError(
                f"Expected {len(inputs)} embeddings, got {len(items)}"
            )

        vectors = [list(item.embedding) for item in items]
        for vector in vectors:
            if len(vector) != self.dimensions:
                raise EmbeddingError(
                    f"Embedding has {len(vector)} dimensions, expected {self.dimensions}"
                )
        return vectors


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors have different lengths.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimension mismatch: {len(a)} vs {len(b)}")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = sum(x * x for x in a) ** 0.5
    norm_b = sum(x * x for x in b) ** 0.5
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot_product / (norm_a * norm_b)


def find_most_similar(
    query: list[float],
    vectors: list[list[float]],
    top_k: int = 10,
    min_similarity: float = 0.0,
) -> list[tuple[int, float]]:
    """Rank vectors against a query.

    Returns:
        (index, similarity) pairs, highest similarity first.
    """
    scores = []
    for i, vector in enumerate(vectors):
        similarity = cosine_similarity(query, vector)
        if similarity >= min_similarity:
            scores.append((i, similarity))

    scores.sort(key=lambda s: s[1], reverse=True)
    return scores[:top_k]


def serialize_embedding(embedding: list[float]) -> bytes:
    """Pack a vector into a float32 BLOB."""
    return struct.pack(f"<{len(embedding)}f", *embedding)


def deserialize_embedding(data: bytes) -> list[float]:
    """Unpack a float32 BLOB into a vector."""
    count = len(data) // 4
    return list(struct.unpack(f"<{count}f", data))
