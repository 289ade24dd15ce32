"""
Tests for the persistent memory service.
"""

import json
import logging
import sqlite3
from unittest.mock import MagicMock

import pytest

from semantic_recall.config import PersistenceConfig
from semantic_recall.exceptions import NotFound, PersistenceError
from semantic_recall.memory.service import PersistentMemoryService
from semantic_recall.memory.storage import MemoryStorage
from semantic_recall.memory.types import SearchOptions


def failing_storage(**failures):
    """A storage mock whose named methods raise PersistenceError."""
    storage = MagicMock(spec=MemoryStorage)
    storage.load_all.return_value = []
    for name in failures:
        getattr(storage, name).side_effect = PersistenceError("disk full", name)
    return storage


class TestLifecycle:
    """Test loading and persistence."""

    def test_add_generates_id(self, service):
        """Test that ids are generated when not given."""
        record = service.add("remember this text")

        assert record.id.startswith("mem_")
        assert len(record.id) == 20

    def test_add_with_explicit_id(self, service):
        """Test storing under a caller-chosen id."""
        record = service.add("remember this text", item_id="custom")

        assert record.id == "custom"
        assert service.get("custom").text == "remember this text"

    def test_reload_from_storage(self, db_path):
        """Test that memories survive a restart and are retrained."""
        first = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        first.add("artificial intelligence machine learning", item_id="1")
        first.add("cooking recipes food", item_id="2")
        first.close()

        second = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        second.initialize()

        assert second.stats()["total_items"] == 2
        assert second.manager.embedder.is_trained
        results = second.search("machine learning", SearchOptions(top_k=1))
        assert results[0].id == "1"
        second.close()

    def test_initialize_is_idempotent(self, service):
        """Test that initializing twice keeps items."""
        service.add("some stored text")
        service.initialize()
        service.initialize()

        assert service.stats()["total_items"] == 1

    def test_write_through(self, service):
        """Test that adds and removes reach storage immediately."""
        service.add("first memory text", item_id="1")
        service.add("second memory text", item_id="2")
        service.remove("1")

        assert [r.id for r in service.storage.load_all()] == ["2"]

    def test_clear(self, service):
        """Test clearing memory and storage."""
        service.add("first memory text")

        service.clear()

        assert service.stats()["total_items"] == 0
        assert service.storage.count() == 0

    def test_persistence_disabled(self):
        """Test purely in-memory operation."""
        service = PersistentMemoryService(PersistenceConfig(enabled=False))

        service.add("alpha bravo charlie", item_id="1")

        assert service.storage is None
        assert service.get("1") is not None


class TestRetraining:
    """Test automatic retraining."""

    def test_first_add_trains(self, service):
        """Test that an untrained embedder is trained on first add."""
        service.add("alpha bravo")

        assert service.manager.embedder.is_trained
        assert service.stats()["vocabulary_size"] == 2

    def test_retrain_interval(self, db_path):
        """Test retraining every retrain_interval inserts."""
        service = PersistentMemoryService(PersistenceConfig(db_path=db_path, retrain_interval=2))

        service.add("alpha bravo")
        service.add("charlie delta")
        assert service.stats()["vocabulary_size"] == 2

        service.add("echo foxtrot")
        assert service.stats()["vocabulary_size"] == 6
        service.close()

    def test_retrain_does_not_rewrite_storage(self):
        """Test that retraining leaves stored rows alone."""
        storage = failing_storage()
        service = PersistentMemoryService(storage=storage)
        service.add("alpha bravo", item_id="1")
        service.add("charlie delta", item_id="2")
        storage.reset_mock()

        service.train()

        storage.save.assert_not_called()
        storage.save_many.assert_not_called()

    def test_reload_reembeds_stored_vectors(self, db_path):
        """Test that vectors saved under an older vocabulary are recomputed on load."""
        first = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        first.add("alpha bravo", item_id="1")
        first.add("charlie delta", item_id="2")
        first.close()

        second = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        second.initialize()

        size = second.stats()["vocabulary_size"]
        assert size == 4
        for item in second.manager.list_all():
            assert len(item.embedding) == size
        second.close()


class TestAccessAndEviction:
    """Test access tracking and LRU eviction."""

    def test_search_records_access(self, service):
        """Test that search results are marked accessed."""
        service.add("artificial intelligence machine learning", item_id="1")
        service.add("cooking recipes food", item_id="2")
        service.train()

        service.search("machine learning", SearchOptions(top_k=1))

        stored = {r.id: r for r in service.storage.load_all()}
        assert stored["1"].access_count == 1
        assert stored["2"].access_count == 0

    def test_get_records_access(self, service):
        """Test that get() is an access."""
        service.add("some text here", item_id="1")

        service.get("1")
        service.get("1")

        assert service.storage.load_all()[0].access_count == 2

    def test_find_similar_records_access(self, service):
        """Test that find_similar() marks its results accessed, not the source."""
        service.add("solar panels convert sunlight", item_id="1")
        service.add("solar power from sunlight", item_id="2")
        service.add("wind turbines generate power", item_id="3")
        service.train()

        results = service.find_similar("1", SearchOptions(min_score=0.0))

        assert sorted(r.id for r in results) == ["2", "3"]
        stored = {r.id: r for r in service.storage.load_all()}
        assert stored["1"].access_count == 0
        assert stored["2"].access_count == 1
        assert stored["3"].access_count == 1
        assert stored["2"].last_accessed >= stored["1"].last_accessed

    def test_evicts_least_recently_used(self, db_path):
        """Test that the least recently accessed item is evicted first."""
        service = PersistentMemoryService(PersistenceConfig(db_path=db_path, capacity=2))
        service.add("first memory text", item_id="a")
        service.add("second memory text", item_id="b")
        service.get("a")

        service.add("third memory text", item_id="c")

        assert service.get("b") is None
        assert service.get("a") is not None
        assert sorted(r.id for r in service.storage.load_all()) == ["a", "c"]
        service.close()

    def test_capacity_enforced_on_load(self, db_path):
        """Test that an oversized store is trimmed at startup."""
        first = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        for i in range(5):
            first.add(f"memory number {i} text", item_id=str(i))
        first.close()

        second = PersistentMemoryService(PersistenceConfig(db_path=db_path, capacity=3))

        assert second.stats()["total_items"] == 3
        second.close()


class TestPersistenceFailures:
    """Test that storage failures degrade to in-memory operation."""

    def test_save_failure_is_logged(self, caplog):
        """Test that a failed write is logged and counted."""
        service = PersistentMemoryService(storage=failing_storage(save=True))

        with caplog.at_level(logging.WARNING):
            record = service.add("text that cannot be saved", item_id="1")

        assert record.id == "1"
        assert service.get("1") is not None
        assert service.stats()["persistence_failures"] == 1
        assert "Persistence save failed" in caplog.text

    def test_load_failure_starts_empty(self):
        """Test that an unreadable store starts empty."""
        storage = failing_storage(load_all=True)
        service = PersistentMemoryService(storage=storage)

        service.initialize()

        assert service.stats()["total_items"] == 0
        assert service.persistence_failures == 1

    @pytest.mark.parametrize("column, value", [
        ("metadata", '{"x": {"y": 1}}'),
        ("metadata", "[1, 2]"),
        ("embedding", '"not a vector"'),
        ("embedding", '[1, "two"]'),
    ])
    def test_corrupt_row_is_skipped(self, db_path, caplog, column, value):
        """Test that one malformed row does not stop the others from loading."""
        first = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        first.add("artificial intelligence machine learning", item_id="a")
        first.add("broken row text", item_id="b")
        first.add("cooking recipes food", item_id="c")
        first.close()

        conn = sqlite3.connect(db_path)
        conn.execute(f"UPDATE memories SET {column} = ? WHERE id = 'b'", (value,))
        conn.commit()
        conn.close()

        service = PersistentMemoryService(PersistenceConfig(db_path=db_path))
        with caplog.at_level(logging.WARNING):
            results = service.search("machine learning", SearchOptions(top_k=1))

        assert [r.id for r in results] == ["a"]
        assert service.stats()["total_items"] == 2
        assert service.get("b") is None
        assert "Skipping memory record" in caplog.text
        service.close()

    def test_search_survives_touch_failure(self):
        """Test that failing access tracking does not break search."""
        service = PersistentMemoryService(storage=failing_storage(touch=True))
        service.add("artificial intelligence machine learning", item_id="1")

        results = service.search("machine learning")

        assert [r.id for r in results] == ["1"]

    def test_unopenable_database(self, tmp_path):
        """Test that a bad database path falls back to memory."""
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        config = PersistenceConfig(db_path=str(blocker / "memory.db"))
        service = PersistentMemoryService(config)

        service.add("still works in memory", item_id="1")

        assert service.get("1") is not None
        assert service.persistence_failures == 1


class TestRetrieval:
    """Test retrieval helpers."""

    def test_find_similar_missing(self, service):
        """Test that an unknown id raises NotFound."""
        with pytest.raises(NotFound):
            service.find_similar("missing")

    def test_filter_for_ai(self, service):
        """Test filtering transient documents without storing them."""
        documents = [
            {"id": "n1", "text": "formal tone for business emails"},
            {"id": "n2", "text": "python code uses snake case"},
        ]

        results = service.filter_for_ai(documents, "write a formal business email")

        assert [r.id for r in results] == ["n1"]
        assert service.stats()["total_items"] == 0

    def test_stats_keys(self, service):
        """Test the statistics dictionary."""
        stats = service.stats()

        assert stats == {
            "total_items": 0,
            "vocabulary_size": 0,
            "capacity": 1000,
            "persistence_failures": 0,
        }


class TestExportImport:
    """Test JSON export and import."""

    def test_export_format(self, service, tmp_path):
        """Test the export file layout."""
        service.add("exported memory text", metadata={"source": "test"}, item_id="1")
        output = tmp_path / "export.json"

        count = service.export_memories(str(output))
        data = json.loads(output.read_text())

        assert count == 1
        assert data["version"] == 1
        assert "exported_at" in data
        assert data["entries"][0]["id"] == "1"
        assert data["entries"][0]["metadata"] == {"source": "test"}

    def test_import_replaces_contents(self, service, tmp_path):
        """Test that import replaces memories and retrains."""
        source = PersistentMemoryService(PersistenceConfig(enabled=False))
        source.add("artificial intelligence machine learning", item_id="1")
        source.add("cooking recipes food", item_id="2")
        output = tmp_path / "export.json"
        source.export_memories(str(output))
        service.add("will be replaced", item_id="old")

        count = service.import_memories(str(output))

        assert count == 2
        assert service.get("old") is None
        assert sorted(r.id for r in service.storage.load_all()) == ["1", "2"]
        assert service.search("machine learning", SearchOptions(top_k=1))[0].id == "1"

    def test_import_skips_bad_entries(self, service, tmp_path):
        """Test that malformed entries are skipped."""
        path = tmp_path / "import.json"
        path.write_text(json.dumps({
            "version": 1,
            "entries": [{"id": "ok", "text": "valid entry text"}, {"text": "no id"}],
        }))

        assert service.import_memories(str(path)) == 1

    def test_import_rejects_non_export(self, service, tmp_path):
        """Test that a JSON file without an export object is rejected."""
        path = tmp_path / "import.json"
        path.write_text(json.dumps([{"id": "1", "text": "listed entry"}]))

        with pytest.raises(ValueError, match="not a memory export"):
            service.import_memories(str(path))
