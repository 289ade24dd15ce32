"""
Persistent Memory Service - durable, capacity-bounded semantic memory.

Wraps a SemanticMemoryManager with write-through persistence,
least-recently-used eviction and periodic retraining. Storage is
best-effort: any PersistenceError is logged and the service keeps
working against the in-memory store.
"""

import json
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import PersistenceConfig
from ..exceptions import PersistenceError
from .manager import SemanticMemoryManager, create_semantic_filter
from .storage import MemoryStorage, SQLiteStorage
from .types import MemoryItem, MemoryRecord, ScoredItem, SearchOptions, now_millis


logger = logging.getLogger(__name__)


# Defaults used when filtering transient document sets for generation
FILTER_FOR_AI_DEFAULTS = SearchOptions(
    top_k=10,
    min_score=0.1,
    max_overlap=0.8,
    enable_overlap_filter=True,
)


def generate_id() -> str:
    """Generate a unique memory id."""
    return f"mem_{uuid.uuid4().hex[:16]}"


class PersistentMemoryService:
    """
    Semantic memory with a durable backing store.

    Features:
    - Loads and retrains on stored items at startup
    - Write-through on every insert, removal and access
    - Evicts least-recently-accessed items above capacity
    - Retrains every ``retrain_interval`` inserts
    - Degrades to in-memory operation when storage fails

    Example usage:
        service = PersistentMemoryService(PersistenceConfig(db_path="memory.db"))
        service.add("Prefer short sentences", metadata={"source": "style"})
        results = service.search("sentence length")
        service.close()
    """

    def __init__(
        self,
        config: Optional[PersistenceConfig] = None,
        storage: Optional[MemoryStorage] = None,
        manager: Optional[SemanticMemoryManager] = None,
    ):
        """
        Initialize the service.

        Args:
            config: Persistence settings. Defaults to PersistenceConfig().
            storage: Storage backend. Defaults to SQLite at config.db_path
                when persistence is enabled.
            manager: Engine instance. Defaults to a new manager.
        """
        self.config = config or PersistenceConfig()
        self._manager = manager or SemanticMemoryManager()
        self._storage = storage
        self._storage_ready = storage is not None or not self.config.enabled

        # id -> MemoryRecord, least recently accessed first
        self._records: "OrderedDict[str, MemoryRecord]" = OrderedDict()
        self._inserts_since_train = 0
        self._initialized = False
        self._lock = threading.RLock()
        self.persistence_failures = 0

    @property
    def manager(self) -> SemanticMemoryManager:
        return self._manager

    @property
    def storage(self) -> Optional[MemoryStorage]:
        self._open_storage()
        return self._storage

    # ========== Persistence helpers ==========

    def _open_storage(self):
        if self._storage_ready:
            return
        self._storage_ready = True
        try:
            self._storage = SQLiteStorage(db_path=self.config.db_path)
        except PersistenceError as e:
            self._record_failure("open", e)

    def _record_failure(self, operation: str, error: Exception):
        self.persistence_failures += 1
        logger.warning(
            f"Persistence {operation} failed, continuing in memory: {error}",
            extra={"operation": operation, "failures": self.persistence_failures},
        )

    def _persist(self, operation: str, action: Callable[[MemoryStorage], Any]) -> Any:
        """Run a storage action, logging and absorbing PersistenceError."""
        self._open_storage()
        if self._storage is None:
            return None
        try:
            return action(self._storage)
        except PersistenceError as e:
            self._record_failure(operation, e)
            return None

    # ========== Lifecycle ==========

    def initialize(self):
        """
        Load stored items and train the embedder on them.

        Safe to call more than once; later calls do nothing.
        """
        with self._lock:
            if self._initialized:
                return

            records = self._persist("load", lambda s: s.load_all()) or []
            records.sort(key=lambda r: r.last_accessed)

            self._records = OrderedDict((r.id, r) for r in records)
            self._manager.import_all([r.item for r in records])
            logger.info(f"Loaded {len(records)} memories from storage")

            if records:
                # Stored vectors may predate the current vocabulary
                self._manager.train_on_memories()
                self._refresh_records()
                logger.info("Trained embedder on existing memories")

            self._initialized = True
            self._enforce_capacity()

    def _ensure_initialized(self):
        if not self._initialized:
            self.initialize()

    def close(self):
        """Close the backing store."""
        if self._storage is not None:
            self._storage.close()

    # ========== Core Memory Operations ==========

    def add(
        self,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
        item_id: Optional[str] = None,
    ) -> MemoryRecord:
        """
        Store a new memory.

        Args:
            text: Text content to remember
            metadata: Optional metadata (timestamp, source, tags, ...)
            item_id: Id to use; generated when omitted. An existing id
                is replaced.

        Returns:
            The stored record
        """
        with self._lock:
            self._ensure_initialized()

            item_id = item_id or generate_id()
            item = self._manager.insert(item_id, text, metadata)

            previous = self._records.pop(item_id, None)
            record = MemoryRecord(item=item)
            if previous is not None:
                record.created_at = previous.created_at
                record.access_count = previous.access_count
            self._records[item_id] = record
            self._persist("save", lambda s: s.save(record))

            self._inserts_since_train += 1
            if (
                not self._manager.embedder.is_trained
                or self._inserts_since_train >= self.config.retrain_interval
            ):
                self._retrain()

            self._enforce_capacity()
            return record

    def get(self, item_id: str) -> Optional[MemoryItem]:
        """Retrieve an item by id, recording the access."""
        with self._lock:
            self._ensure_initialized()
            item = self._manager.get(item_id)
            if item is not None:
                self._mark_accessed([item_id])
            return item

    def remove(self, item_id: str) -> bool:
        """
        Delete a memory.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            self._ensure_initialized()
            self._records.pop(item_id, None)
            removed = self._manager.remove(item_id)
            self._persist("delete", lambda s: s.delete(item_id))
            return removed

    def clear(self):
        """Clear all memories, in memory and in storage."""
        with self._lock:
            self._ensure_initialized()
            self._manager.clear()
            self._records.clear()
            self._persist("clear", lambda s: s.clear_all())

    def train(self) -> int:
        """
        Retrain on all stored memories.

        Returns:
            The vocabulary size after training
        """
        with self._lock:
            self._ensure_initialized()
            return self._retrain()

    def _retrain(self) -> int:
        size = self._manager.train_on_memories()
        self._inserts_since_train = 0
        self._refresh_records()
        return size

    def _refresh_records(self):
        """
        Point records at the re-embedded items.

        Retraining does not rewrite stored vectors; they are recomputed
        when the store is loaded.
        """
        for item in self._manager.list_all():
            record = self._records.get(item.id)
            if record is not None:
                record.item = item

    # ========== Retrieval ==========

    def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[ScoredItem]:
        """Search memories, recording an access for each result."""
        with self._lock:
            self._ensure_initialized()
            results = self._manager.search(query, options)
            self._mark_accessed([r.id for r in results])
            return results

    def find_similar(
        self,
        item_id: str,
        options: Optional[SearchOptions] = None,
    ) -> List[ScoredItem]:
        """
        Find memories similar to an existing one.

        Raises:
            NotFound: If item_id does not exist
        """
        with self._lock:
            self._ensure_initialized()
            results = self._manager.find_similar(item_id, options)
            self._mark_accessed([r.id for r in results])
            return results

    def filter_for_ai(
        self,
        documents: Sequence[Dict[str, Any]],
        query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[ScoredItem]:
        """
        Filter a transient document set for generation input.

        The documents are not stored; a throwaway engine is trained on
        them. Defaults: top_k=10, min_score=0.1, max_overlap=0.8.
        """
        return create_semantic_filter(documents, query, options or FILTER_FOR_AI_DEFAULTS)

    # ========== Access tracking and eviction ==========

    def _mark_accessed(self, item_ids: Sequence[str]):
        if not item_ids:
            return
        at = now_millis()
        for item_id in item_ids:
            record = self._records.get(item_id)
            if record is not None:
                record.touch(at)
                self._records.move_to_end(item_id)
        self._persist("touch", lambda s: s.touch(item_ids, at))

    def _enforce_capacity(self) -> int:
        """Evict least-recently-accessed items until within capacity."""
        evicted = 0
        while len(self._records) > self.config.capacity:
            oldest_id = next(iter(self._records))
            del self._records[oldest_id]
            self._manager.remove(oldest_id)
            self._persist("delete", lambda s: s.delete(oldest_id))
            evicted += 1

        if evicted:
            logger.info(f"Evicted {evicted} least recently used memories")
        return evicted

    # ========== Import/Export ==========

    def export_memories(self, output_path: str) -> int:
        """
        Export all memories to a JSON file.

        Args:
            output_path: Path to the output file

        Returns:
            Number of entries exported
        """
        with self._lock:
            self._ensure_initialized()
            entries = [record.to_dict() for record in self._records.values()]

        with open(output_path, "w") as f:
            json.dump({
                "version": 1,
                "exported_at": now_millis(),
                "entries": entries,
            }, f, indent=2)

        logger.info(f"Exported {len(entries)} memories to {output_path}")
        return len(entries)

    def import_memories(self, input_path: str) -> int:
        """
        Replace all memories with the contents of a JSON export.

        Args:
            input_path: Path to the input file

        Returns:
            Number of entries imported

        Raises:
            ValueError: If the file is not JSON or not an export object
        """
        with open(input_path, "r") as f:
            data = json.load(f)

        if not isinstance(data, dict) or not isinstance(data.get("entries", []), list):
            raise ValueError(f"{input_path} is not a memory export")

        records = []
        for entry in data.get("entries", []):
            try:
                records.append(MemoryRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Failed to import entry: {e}")

        with self._lock:
            self._ensure_initialized()
            self._persist("clear", lambda s: s.clear_all())

            records.sort(key=lambda r: r.last_accessed)
            self._records = OrderedDict((r.id, r) for r in records)
            self._manager.import_all([r.item for r in records])
            self._retrain()
            self._enforce_capacity()
            imported = list(self._records.values())
            self._persist("save", lambda s: s.save_many(imported))

        logger.info(f"Imported {len(records)} memories from {input_path}")
        return len(records)

    # ========== Statistics ==========

    def stats(self) -> Dict[str, int]:
        """Get memory statistics."""
        with self._lock:
            self._ensure_initialized()
            stats = self._manager.stats().to_dict()
        stats["capacity"] = self.config.capacity
        stats["persistence_failures"] = self.persistence_failures
        return stats
