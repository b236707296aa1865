"""Tests for the storage backends and state persistence."""

import json
import pytest
from datetime import date

from expense_tracker.models.audit import AuditEventBuilder
from expense_tracker.models.expense import ExpenseState, default_categories
from expense_tracker.services.storage import (
    CorruptStateError,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    StatePersistence,
    StorageError,
)


class TestJsonFileKeyValueStore:
    """Tests for the file-backed store."""

    def test_get_missing_key(self, tmp_path):
        store = JsonFileKeyValueStore(data_dir=tmp_path)
        assert store.get("expense-storage") is None

    def test_set_and_get(self, tmp_path):
        """Test values are written to one file per key."""
        store = JsonFileKeyValueStore(data_dir=tmp_path)
        store.set("expense-storage", '{"state": {}}')

        assert store.get("expense-storage") == '{"state": {}}'
        assert (tmp_path / "expense-storage.json").exists()

    def test_set_creates_data_dir(self, tmp_path):
        store = JsonFileKeyValueStore(data_dir=tmp_path / "nested" / "dir")
        store.set("k", "v")
        assert store.get("k") == "v"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = JsonFileKeyValueStore(data_dir=tmp_path)
        store.set("k", "one")
        store.set("k", "two")

        assert store.get("k") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_delete(self, tmp_path):
        store = JsonFileKeyValueStore(data_dir=tmp_path)
        store.set("k", "v")
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "key with spaces"])
    def test_unsafe_keys_rejected(self, tmp_path, key):
        """Test keys that are not filesystem-safe are refused."""
        store = JsonFileKeyValueStore(data_dir=tmp_path)
        with pytest.raises(StorageError):
            store.set(key, "v")

    def test_persistent_write_failure_raises_storage_error(self, tmp_path, monkeypatch):
        """Test OS errors are retried and then surface as StorageError."""
        store = JsonFileKeyValueStore(data_dir=tmp_path, write_attempts=2)
        calls = []

        def failing_write(path, value):
            calls.append(path)
            raise OSError("disk full")

        monkeypatch.setattr(store, "_write_atomic", failing_write)
        with pytest.raises(StorageError, match="disk full"):
            store.set("k", "v")
        assert len(calls) == 2

    def test_transient_write_failure_is_retried(self, tmp_path, monkeypatch):
        store = JsonFileKeyValueStore(data_dir=tmp_path, write_attempts=3)
        real_write = store._write_atomic
        attempts = {"count": 0}

        def flaky_write(path, value):
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise OSError("busy")
            real_write(path, value)

        monkeypatch.setattr(store, "_write_atomic", flaky_write)
        store.set("k", "v")
        assert store.get("k") == "v"
        assert attempts["count"] == 2


class TestInMemoryStorage:
    """Tests for the in-memory backends."""

    def test_key_value_store(self):
        store = InMemoryKeyValueStore({"a": "1"})
        store.set("b", "2")
        assert store.keys() == ["a", "b"]
        assert store.delete("a") is True
        assert store.get("a") is None

    def test_audit_storage_queries(self):
        """Test entity lookup and newest-first recent events."""
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.expense_added("e1", "Lunch", "10")
        second = AuditEventBuilder.expense_deleted("e1")
        third = AuditEventBuilder.expense_added("e2", "Taxi", "20")
        for event in (first, second, third):
            storage.append_event(event)

        assert storage.get_events_by_entity("expense", "e1") == [first, second]
        assert storage.get_recent_events(limit=2) == [third, second]


class TestStatePersistence:
    """Tests for loading and saving the state blob."""

    def test_load_nothing_stored(self):
        assert StatePersistence(InMemoryKeyValueStore()).load() is None

    def test_default_key(self):
        assert StatePersistence(InMemoryKeyValueStore()).key == "expense-storage"

    def test_save_and_load(self, make_expense):
        """Test the state round-trips through the envelope."""
        kv = InMemoryKeyValueStore()
        persistence = StatePersistence(kv)
        state = ExpenseState(
            expenses=[make_expense("12.50", date(2024, 4, 1))],
            categories=default_categories(),
            display_currency="EUR",
        )
        persistence.save(state)

        envelope = json.loads(kv.get("expense-storage"))
        assert envelope["version"] == 0
        assert envelope["state"]["displayCurrency"] == "EUR"
        assert persistence.load() == state

    def test_save_keeps_other_envelope_keys(self):
        kv = InMemoryKeyValueStore({
            "expense-storage": json.dumps({"version": 0, "state": {}, "extra": "keep"}),
        })
        StatePersistence(kv).save(ExpenseState())
        assert json.loads(kv.get("expense-storage"))["extra"] == "keep"

    @pytest.mark.parametrize("raw", [
        "{broken",
        "[]",
        json.dumps({"state": {"expenses": [{"title": "no amount"}]}}),
    ])
    def test_corrupt_blob_raises(self, raw):
        """Test unreadable state is reported and left untouched."""
        kv = InMemoryKeyValueStore({"expense-storage": raw})
        with pytest.raises(CorruptStateError) as exc_info:
            StatePersistence(kv).load()
        assert exc_info.value.key == "expense-storage"
        assert kv.get("expense-storage") == raw

    def test_save_replaces_corrupt_blob(self):
        kv = InMemoryKeyValueStore({"expense-storage": "{broken"})
        persistence = StatePersistence(kv)
        persistence.save(ExpenseState())
        assert persistence.load() == ExpenseState()
