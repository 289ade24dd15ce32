"""
Tests for SQLite memory storage.
"""

import logging
import sqlite3

import pytest

from semantic_recall.exceptions import PersistenceError
from semantic_recall.memory.storage import SQLiteStorage
from semantic_recall.memory.types import MemoryItem, MemoryRecord


def make_record(item_id, text="some text", last_accessed=1000, **metadata):
    return MemoryRecord(
        item=MemoryItem(id=item_id, text=text, embedding=[0.6, 0.8], metadata=metadata),
        created_at=500,
        last_accessed=last_accessed,
    )


class TestSQLiteStorage:
    """Test SQLite storage backend."""

    def test_creates_database(self, tmp_path):
        """Test that the database and its directory are created."""
        db_path = tmp_path / "nested" / "memory.db"

        storage = SQLiteStorage(db_path=str(db_path))

        assert db_path.exists()
        assert storage.count() == 0
        storage.close()

    def test_save_and_load(self, storage):
        """Test that saved records load back unchanged."""
        record = make_record("1", source="notes", tags=["a", "b"])

        storage.save(record)
        loaded = storage.load_all()

        assert loaded == [record]

    def test_save_replaces(self, storage):
        """Test that saving an existing id replaces it."""
        storage.save(make_record("1", text="old"))
        storage.save(make_record("1", text="new"))

        loaded = storage.load_all()

        assert len(loaded) == 1
        assert loaded[0].item.text == "new"

    def test_load_orders_by_last_access(self, storage):
        """Test that records load least recently accessed first."""
        storage.save_many([
            make_record("recent", last_accessed=3000),
            make_record("oldest", last_accessed=1000),
            make_record("middle", last_accessed=2000),
        ])

        assert [r.id for r in storage.load_all()] == ["oldest", "middle", "recent"]

    def test_delete(self, storage):
        """Test deleting records."""
        storage.save(make_record("1"))

        assert storage.delete("1") is True
        assert storage.delete("1") is False
        assert storage.count() == 0

    def test_touch(self, storage):
        """Test that touch() records an access."""
        storage.save(make_record("1"))

        storage.touch(["1", "unknown"], at=9000)
        record = storage.load_all()[0]

        assert record.last_accessed == 9000
        assert record.access_count == 1

    def test_clear_all(self, storage):
        """Test deleting every record."""
        storage.save_many([make_record("1"), make_record("2")])

        storage.clear_all()

        assert storage.count() == 0

    def test_persists_across_instances(self, db_path):
        """Test that data survives reopening the database."""
        first = SQLiteStorage(db_path=db_path)
        first.save(make_record("1"))
        first.close()

        second = SQLiteStorage(db_path=db_path)

        assert [r.id for r in second.load_all()] == ["1"]
        second.close()

    @pytest.mark.parametrize("column, value", [
        ("embedding", "not json"),
        ("embedding", '{"a": 1}'),
        ("metadata", '{"nested": {"y": 1}}'),
        ("metadata", "[1, 2]"),
    ])
    def test_load_all_skips_corrupt_rows(self, storage, db_path, caplog, column, value):
        """Test that a malformed row is skipped with a warning."""
        storage.save(make_record("1", last_accessed=1000))
        storage.save(make_record("2", last_accessed=2000))
        conn = sqlite3.connect(db_path)
        conn.execute(f"UPDATE memories SET {column} = ? WHERE id = '1'", (value,))
        conn.commit()
        conn.close()

        with caplog.at_level(logging.WARNING):
            records = storage.load_all()

        assert [r.id for r in records] == ["2"]
        assert "Corrupt record 1" in caplog.text

    def test_unusable_path_raises_persistence_error(self, tmp_path):
        """Test that a path under a regular file cannot be opened."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(PersistenceError):
            SQLiteStorage(db_path=str(blocker / "memory.db"))
