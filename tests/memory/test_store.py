"""Tests for MemoryStore persistence."""

import pytest

from tally.db import Database
from tally.memory import MemoryStore, MemoryType, UserPreference


@pytest.fixture
def store(db: Database) -> MemoryStore:
    return MemoryStore(db)


def _insert(store: MemoryStore, content: str, created_at: str, **kwargs):
    return store.insert(
        content=content,
        embedding=kwargs.pop("embedding", [1.0, 0.0, 0.0]),
        memory_type=kwargs.pop("memory_type", MemoryType.FACT),
        importance=kwargs.pop("importance", 0.5),
        created_at=created_at,
        **kwargs,
    )


class TestMemoryRows:
    """Tests for inserting and reading memories."""

    def test_insert_and_get(self, store: MemoryStore):
        memory = _insert(store, "VAT is filed quarterly", "2025-01-01T00:00:00.000000+00:00",
                         source_message_id="msg-1")

        loaded = store.get(memory.id)
        assert loaded.content == "VAT is filed quarterly"
        assert loaded.embedding == [1.0, 0.0, 0.0]
        assert loaded.memory_type is MemoryType.FACT
        assert loaded.source_message_id == "msg-1"
        assert loaded.access_count == 0
        assert loaded.last_accessed_at is None

    def test_get_missing_returns_none(self, store: MemoryStore):
        assert store.get(999) is None

    def test_scan_filters_types(self, store: MemoryStore):
        _insert(store, "a fact", "2025-01-01T00:00:00.000000+00:00")
        _insert(store, "a task", "2025-01-01T00:00:00.000000+00:00", memory_type=MemoryType.TASK)

        assert [m.content for m in store.scan(types=[MemoryType.TASK])] == ["a task"]
        assert len(store.scan()) == 2

    def test_scan_oldest_first_breaks_ties_by_id(self, store: MemoryStore):
        same = "2025-02-01T00:00:00.000000+00:00"
        first = _insert(store, "first", same)
        second = _insert(store, "second", same)
        oldest = _insert(store, "oldest", "2025-01-01T00:00:00.000000+00:00")

        ids = [m.id for m in store.scan(oldest_first=True)]
        assert ids == [oldest.id, first.id, second.id]

    def test_touch_increments_once_per_call(self, store: MemoryStore):
        memory = _insert(store, "a fact", "2025-01-01T00:00:00.000000+00:00")

        store.touch([memory.id], "2025-03-01T00:00:00.000000+00:00")
        store.touch([memory.id], "2025-03-02T00:00:00.000000+00:00")

        loaded = store.get(memory.id)
        assert loaded.access_count == 2
        assert loaded.last_accessed_at == "2025-03-02T00:00:00.000000+00:00"

    def test_delete_many(self, store: MemoryStore):
        a = _insert(store, "a", "2025-01-01T00:00:00.000000+00:00")
        b = _insert(store, "b", "2025-01-01T00:00:00.000000+00:00")

        assert store.delete_many([a.id]) == 1
        assert store.delete_many([]) == 0
        assert [m.id for m in store.scan()] == [b.id]

    def test_importance_outside_unit_range_rejected(self, store: MemoryStore):
        from tally.errors import PersistenceError

        with pytest.raises(PersistenceError):
            _insert(store, "bad", "2025-01-01T00:00:00.000000+00:00", importance=1.5)


class TestStats:
    """Tests for aggregate statistics."""

    def test_empty_store(self, store: MemoryStore):
        stats = store.stats()
        assert stats.total == 0
        assert stats.by_type == {t: 0 for t in MemoryType}
        assert stats.oldest is None

    def test_counts_and_range(self, store: MemoryStore):
        _insert(store, "a", "2025-01-01T00:00:00.000000+00:00", importance=0.2)
        _insert(store, "b", "2025-03-01T00:00:00.000000+00:00", importance=0.6,
                memory_type=MemoryType.CONVERSATION)

        stats = store.stats()
        assert stats.total == 2
        assert stats.by_type[MemoryType.FACT] == 1
        assert stats.by_type[MemoryType.CONVERSATION] == 1
        assert stats.by_type[MemoryType.TASK] == 0
        assert stats.avg_importance == pytest.approx(0.4)
        assert stats.oldest == "2025-01-01T00:00:00.000000+00:00"
        assert stats.newest == "2025-03-01T00:00:00.000000+00:00"


class TestPreferences:
    """Tests for the preference table."""

    def test_upsert_inserts_new_key(self, store: MemoryStore):
        assert store.upsert_preference(UserPreference("currency", "EUR", 0.6), "t1")
        assert store.get_preference("currency").value == "EUR"

    def test_upsert_replaces_only_when_more_confident(self, store: MemoryStore):
        store.upsert_preference(UserPreference("currency", "EUR", 0.6), "t1")

        assert not store.upsert_preference(UserPreference("currency", "USD", 0.6), "t2")
        assert not store.upsert_preference(UserPreference("currency", "USD", 0.4), "t3")
        assert store.get_preference("currency").value == "EUR"

        assert store.upsert_preference(UserPreference("currency", "GBP", 0.9), "t4")
        assert store.get_preference("currency").value == "GBP"

    def test_set_preference_always_replaces(self, store: MemoryStore):
        store.upsert_preference(UserPreference("currency", "EUR", 0.9), "t1")
        store.set_preference(UserPreference("currency", "USD", 0.1, "manual"), "t2")

        pref = store.get_preference("currency")
        assert pref.value == "USD"
        assert pref.source == "manual"

    def test_get_preferences_ordered_by_key(self, store: MemoryStore):
        store.upsert_preference(UserPreference("tone", "brief", 0.5), "t")
        store.upsert_preference(UserPreference("currency", "EUR", 0.5), "t")

        assert [p.key for p in store.get_preferences()] == ["currency", "tone"]
