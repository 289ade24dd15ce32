"""
Memory storage backends.

Provides SQLite-based durable storage for memory records. Every
failure is raised as PersistenceError so callers can degrade to
in-memory operation.
"""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from ..exceptions import InvalidMetadata, PersistenceError
from .types import MemoryItem, MemoryRecord, normalize_metadata, now_millis


logger = logging.getLogger(__name__)


class MemoryStorage(ABC):
    """Abstract base class for memory storage backends."""

    @abstractmethod
    def save(self, record: MemoryRecord) -> None:
        """
        Insert or replace a record.

        Args:
            record: The record to store
        """
        pass

    def save_many(self, records: Sequence[MemoryRecord]) -> None:
        """Insert or replace several records."""
        for record in records:
            self.save(record)

    @abstractmethod
    def load_all(self) -> List[MemoryRecord]:
        """Load every stored record."""
        pass

    @abstractmethod
    def delete(self, item_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if the record was deleted, False if not found
        """
        pass

    @abstractmethod
    def touch(self, item_ids: Sequence[str], at: Optional[int] = None) -> None:
        """
        Record an access for each id.

        Args:
            item_ids: Ids that were accessed
            at: Access time in epoch milliseconds, defaults to now
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored records."""
        pass

    @abstractmethod
    def clear_all(self) -> None:
        """Delete every record."""
        pass

    def close(self) -> None:
        """Release resources."""
        pass


class SQLiteStorage(MemoryStorage):
    """
    SQLite-based memory storage.

    One row per memory item. Embeddings, metadata and tags are stored
    as JSON text. Thread-safe with one connection per thread.
    """

    # Default database location
    DEFAULT_DB_PATH = ".semantic_recall/memory.db"

    # Schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: Optional[str] = None,
        auto_create: bool = True,
    ):
        """
        Initialize SQLite storage.

        Args:
            db_path: Path to the database file. If None, uses default.
            auto_create: Whether to create the database if it doesn't exist.

        Raises:
            PersistenceError: If the database cannot be created
        """
        if db_path is None:
            db_path = str(Path.home() / self.DEFAULT_DB_PATH)

        self.db_path = db_path
        self._local = threading.local()

        if auto_create:
            try:
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PersistenceError(
                    f"Cannot create database directory for {self.db_path}: {e}",
                    operation="open",
                ) from e
            self._ensure_schema()

    @property
    def _conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return self._local.conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Cursor]:
        """Context manager for database transactions."""
        try:
            conn = self._conn
            cursor = conn.cursor()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open {self.db_path}: {e}", operation) from e

        try:
            yield cursor
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"SQLite {operation} failed: {e}", operation) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _ensure_schema(self):
        """Create the database schema if needed."""
        with self._transaction("migrate") as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()
            current_version = row["version"] if row else 0

            if current_version < self.SCHEMA_VERSION:
                self._apply_migrations(cursor, current_version)

    def _apply_migrations(self, cursor: sqlite3.Cursor, from_version: int):
        """Apply schema migrations."""
        if from_version < 1:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS memories (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    embedding TEXT,
                    metadata TEXT,
                    created_at INTEGER NOT NULL,
                    last_accessed INTEGER NOT NULL,
                    access_count INTEGER DEFAULT 0
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_memories_last_accessed
                ON memories(last_accessed)
            """)
            cursor.execute(
                "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,)
            )

    def _row_params(self, record: MemoryRecord) -> tuple:
        item = record.item
        return (
            item.id,
            item.text,
            json.dumps(item.embedding),
            json.dumps(item.metadata) if item.metadata else None,
            record.created_at,
            record.last_accessed,
            record.access_count,
        )

    def save(self, record: MemoryRecord) -> None:
        """Insert or replace a record."""
        self.save_many([record])
        logger.debug(f"Saved memory record: {record.id}")

    def save_many(self, records: Sequence[MemoryRecord]) -> None:
        """Insert or replace several records in one transaction."""
        if not records:
            return
        with self._transaction("save") as cursor:
            cursor.executemany("""
                INSERT OR REPLACE INTO memories (
                    id, text, embedding, metadata,
                    created_at, last_accessed, access_count
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, [self._row_params(r) for r in records])

    def _row_to_record(self, row: sqlite3.Row) -> MemoryRecord:
        """
        Convert a database row to a MemoryRecord.

        Raises:
            PersistenceError: If the row's JSON is malformed or has the
                wrong shape
        """
        try:
            embedding = json.loads(row["embedding"]) if row["embedding"] else []
            metadata = json.loads(row["metadata"]) if row["metadata"] else {}
            if not isinstance(embedding, list) or not all(
                isinstance(v, (int, float)) and not isinstance(v, bool)
                for v in embedding
            ):
                raise TypeError("embedding is not a list of numbers")
            if not isinstance(metadata, dict):
                raise TypeError(f"metadata is a {type(metadata).__name__}, not an object")

            return MemoryRecord(
                item=MemoryItem(
                    id=row["id"],
                    text=row["text"],
                    embedding=[float(v) for v in embedding],
                    metadata=normalize_metadata(metadata),
                ),
                created_at=row["created_at"],
                last_accessed=row["last_accessed"],
                access_count=row["access_count"] or 0,
            )
        except (ValueError, TypeError, AttributeError, InvalidMetadata) as e:
            raise PersistenceError(
                f"Corrupt record {row['id']}: {e}", operation="load"
            ) from e

    def load_all(self) -> List[MemoryRecord]:
        """
        Load every record, least recently accessed first.

        Corrupt rows are skipped with a warning; the rest still load.
        """
        with self._transaction("load") as cursor:
            cursor.execute("SELECT * FROM memories ORDER BY last_accessed, created_at")
            rows = cursor.fetchall()

        records = []
        for row in rows:
            try:
                records.append(self._row_to_record(row))
            except PersistenceError as e:
                logger.warning(f"Skipping memory record: {e}", extra={"item_id": row["id"]})
        return records

    def delete(self, item_id: str) -> bool:
        """Delete a record."""
        with self._transaction("delete") as cursor:
            cursor.execute("DELETE FROM memories WHERE id = ?", (item_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"Deleted memory record: {item_id}")
        return deleted

    def touch(self, item_ids: Sequence[str], at: Optional[int] = None) -> None:
        """Record an access for each id."""
        if not item_ids:
            return
        at = at if at is not None else now_millis()
        with self._transaction("touch") as cursor:
            cursor.executemany("""
                UPDATE memories
                SET last_accessed = ?, access_count = access_count + 1
                WHERE id = ?
            """, [(at, item_id) for item_id in item_ids])

    def count(self) -> int:
        with self._transaction("count") as cursor:
            cursor.execute("SELECT COUNT(*) as count FROM memories")
            return cursor.fetchone()["count"]

    def clear_all(self) -> None:
        """Delete every record."""
        with self._transaction("clear") as cursor:
            cursor.execute("DELETE FROM memories")
        logger.warning("Cleared all memory records")

    def close(self):
        """Close the database connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
