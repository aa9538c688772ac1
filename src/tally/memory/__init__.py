"""Semantic memory: embeddings, storage, recall and eviction."""

from .embeddings import (
    EmbeddingService,
    cosine_similarity,
    deserialize_embedding,
    find_most_similar,
    serialize_embedding,
)
from .extractor import ConversationExtractor, ExtractedFact
from .manager import MemoryManager
from .models import Memory, MemoryStats, MemoryType, MemoryWithScore, UserPreference
from .store import MemoryStore

__all__ = [
    "ConversationExtractor",
    "EmbeddingService",
    "ExtractedFact",
    "Memory",
    "MemoryManager",
    "MemoryStats",
    "MemoryStore",
    "MemoryType",
    "MemoryWithScore",
    "UserPreference",
    "cosine_similarity",
    "deserialize_embedding",
    "find_most_similar",
    "serialize_embedding",
]
