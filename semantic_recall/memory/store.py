"""
In-memory item store.

Holds memory items keyed by id and embeds text on insert using the
embedder it was created with.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .embeddings import EmbeddingProvider
from .types import MemoryItem, normalize_metadata


logger = logging.getLogger(__name__)


class MemoryStore:
    """
    Owns the memory items of one engine instance.

    Items are embedded with the store's embedder at insert time, so
    every stored vector has the length of the embedder's current
    vocabulary. ``import_all`` is the one exception: it trusts the
    embeddings it is given.
    """

    def __init__(self, embedder: EmbeddingProvider):
        self._embedder = embedder
        self._items: Dict[str, MemoryItem] = {}

    @property
    def embedder(self) -> EmbeddingProvider:
        return self._embedder

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __iter__(self) -> Iterator[MemoryItem]:
        return iter(list(self._items.values()))

    def insert(
        self,
        item_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryItem:
        """
        Embed and store an item, replacing any item with the same id.

        Args:
            item_id: Unique identifier
            text: Text content
            metadata: Optional metadata

        Returns:
            The stored item
        """
        item = MemoryItem(
            id=item_id,
            text=text,
            embedding=self._embedder.embed(text),
            metadata=normalize_metadata(metadata),
        )
        self._items[item_id] = item
        logger.debug(f"Stored memory item: {item_id}")
        return item

    def remove(self, item_id: str) -> bool:
        """Delete an item. Returns False if it did not exist."""
        if self._items.pop(item_id, None) is None:
            return False
        logger.debug(f"Removed memory item: {item_id}")
        return True

    def get(self, item_id: str) -> Optional[MemoryItem]:
        return self._items.get(item_id)

    def list_all(self) -> List[MemoryItem]:
        return list(self._items.values())

    def clear(self):
        self._items.clear()

    def export_all(self) -> List[MemoryItem]:
        """Independent copies of all items, for persistence."""
        return [item.copy() for item in self._items.values()]

    def import_all(self, items: Sequence[MemoryItem]):
        """
        Replace the entire store with the given items.

        Embeddings are taken as-is; matching them to the current
        vocabulary is the caller's responsibility.
        """
        self._items = {item.id: item.copy() for item in items}
        logger.debug(f"Imported {len(self._items)} memory items")

    def reembed_all(self) -> int:
        """
        Recompute every stored embedding with the current embedder.

        Returns:
            Number of items re-embedded
        """
        texts = [item.text for item in self._items.values()]
        vectors = self._embedder.embed_batch(texts)
        for item, vector in zip(self._items.values(), vectors):
            item.embedding = vector
        return len(texts)
