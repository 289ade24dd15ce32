"""
Semantic Memory Manager - ranked, filtered retrieval over stored items.

Owns exactly one embedder, its vocabulary/IDF pairing, and one memory
store. Several managers can coexist (for example one per document)
without sharing any state.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import NotFound
from .embeddings import TfidfEmbedding
from .similarity import overlap_similarity, weighted_similarity
from .store import MemoryStore
from .types import MemoryItem, MemoryStats, ScoredItem, SearchOptions


logger = logging.getLogger(__name__)


# find_similar is used for clustering and dedup, so it asks for closer matches
DEFAULT_SIMILAR_MIN_SCORE = 0.5


class SemanticMemoryManager:
    """
    Retrieval engine over an in-memory item store.

    Relevance is ranked by weighted (cosine) similarity between the
    query embedding and each item's embedding. Overlap (Jaccard)
    similarity with the query is used only to drop near-restatements
    of the query, never to rank.

    Retraining re-embeds every stored item, so stored vectors always
    match the current vocabulary.

    Example usage:
        manager = SemanticMemoryManager()
        manager.insert("1", "artificial intelligence machine learning")
        manager.insert("2", "cooking recipes food")
        manager.train_on_memories()

        results = manager.search("machine learning", SearchOptions(top_k=1))
    """

    def __init__(
        self,
        embedder: Optional[TfidfEmbedding] = None,
        store: Optional[MemoryStore] = None,
    ):
        """
        Initialize the manager.

        Args:
            embedder: Embedding provider. Defaults to a fresh TfidfEmbedding.
            store: Item store. Defaults to a new store bound to the embedder.
        """
        if store is not None and embedder is not None and store.embedder is not embedder:
            raise ValueError("store must be bound to the manager's embedder")

        if store is not None:
            self._embedder = store.embedder
            self._store = store
        else:
            self._embedder = embedder or TfidfEmbedding()
            self._store = MemoryStore(self._embedder)

        # train() swaps the vocabulary that embed() reads, so reads and
        # writes are serialized through one lock
        self._lock = threading.RLock()

    @property
    def embedder(self) -> TfidfEmbedding:
        return self._embedder

    @property
    def store(self) -> MemoryStore:
        return self._store

    def __len__(self) -> int:
        return len(self._store)

    # ========== Training ==========

    def train(self, documents: Sequence[str]) -> int:
        """
        Train the embedder on a corpus and re-embed all stored items.

        Args:
            documents: Training corpus, may be empty

        Returns:
            The new vocabulary size
        """
        with self._lock:
            self._embedder.train(documents)
            reembedded = self._store.reembed_all()

        if reembedded:
            logger.debug(f"Re-embedded {reembedded} items after training")
        return self._embedder.vocabulary_size

    def train_on_memories(self) -> int:
        """
        Train on the texts of the stored items.

        Does nothing when the store is empty.

        Returns:
            The vocabulary size after training
        """
        with self._lock:
            documents = [item.text for item in self._store]
            if not documents:
                logger.debug("No stored items to train on")
                return self._embedder.vocabulary_size
            return self.train(documents)

    # ========== Core Memory Operations ==========

    def insert(
        self,
        item_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MemoryItem:
        """
        Store an item, replacing any existing item with the same id.

        The text is embedded with the currently trained embedder.
        """
        with self._lock:
            return self._store.insert(item_id, text, metadata)

    def remove(self, item_id: str) -> bool:
        with self._lock:
            return self._store.remove(item_id)

    def get(self, item_id: str) -> Optional[MemoryItem]:
        with self._lock:
            return self._store.get(item_id)

    def require(self, item_id: str) -> MemoryItem:
        """
        Retrieve an item or fail.

        Raises:
            NotFound: If no item has this id
        """
        item = self.get(item_id)
        if item is None:
            raise NotFound(item_id)
        return item

    def list_all(self) -> List[MemoryItem]:
        with self._lock:
            return self._store.list_all()

    def clear(self):
        with self._lock:
            self._store.clear()

    def export_all(self) -> List[MemoryItem]:
        with self._lock:
            return self._store.export_all()

    def import_all(self, items: Sequence[MemoryItem]):
        """Replace all items. Embeddings are not validated."""
        with self._lock:
            self._store.import_all(items)

    # ========== Retrieval ==========

    def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
    ) -> List[ScoredItem]:
        """
        Find the stored items most relevant to a query.

        Filtering order: minimum score, then overlap with the query
        (when enabled), then a stable sort by score, then optional
        pairwise dedup, then truncation to top_k.

        Args:
            query: Query text
            options: Search options, defaults to SearchOptions()

        Returns:
            Scored items, most relevant first. Empty when nothing matches.
        """
        options = options or SearchOptions()

        with self._lock:
            query_embedding = self._embedder.embed(query)
            scored = []
            for item in self._store:
                score = weighted_similarity(query_embedding, item.embedding)
                if score < options.min_score:
                    continue

                overlap = None
                if options.enable_overlap_filter:
                    overlap = overlap_similarity(query, item.text)
                    if overlap > options.max_overlap:
                        continue

                scored.append(ScoredItem(item=item, score=score, overlap_score=overlap))

        return self._rank(scored, options)

    def find_similar(
        self,
        item_id: str,
        options: Optional[SearchOptions] = None,
    ) -> List[ScoredItem]:
        """
        Find items similar to an existing item.

        Useful for clustering and deduplication. The item itself is
        excluded. Overlap with the source item is reported in
        overlap_score but is not used as a filter.

        Args:
            item_id: Id of the source item
            options: Search options, defaults to min_score=0.5

        Raises:
            NotFound: If item_id does not exist
        """
        if options is None:
            options = SearchOptions(min_score=DEFAULT_SIMILAR_MIN_SCORE)

        with self._lock:
            source = self.require(item_id)
            scored = []
            for item in self._store:
                if item.id == item_id:
                    continue
                score = weighted_similarity(source.embedding, item.embedding)
                if score < options.min_score:
                    continue
                scored.append(ScoredItem(
                    item=item,
                    score=score,
                    overlap_score=overlap_similarity(source.text, item.text),
                ))

        return self._rank(scored, options)

    def _rank(
        self,
        scored: List[ScoredItem],
        options: SearchOptions,
    ) -> List[ScoredItem]:
        """Sort by score (stable on ties), dedupe if asked, truncate."""
        scored.sort(key=lambda r: r.score, reverse=True)

        if options.dedupe_results:
            scored = _dedupe(scored, options.effective_dedupe_threshold)

        return scored[:options.top_k]

    # ========== Statistics ==========

    def stats(self) -> MemoryStats:
        with self._lock:
            return MemoryStats(
                total_items=len(self._store),
                vocabulary_size=self._embedder.vocabulary_size,
            )


def _dedupe(results: List[ScoredItem], threshold: float) -> List[ScoredItem]:
    """Drop results whose overlap with a higher-ranked kept result exceeds threshold."""
    kept: List[ScoredItem] = []
    for result in results:
        if any(overlap_similarity(result.text, k.text) > threshold for k in kept):
            continue
        kept.append(result)
    return kept


def create_semantic_filter(
    documents: Sequence[Dict[str, Any]],
    query: str,
    options: Optional[SearchOptions] = None,
) -> List[ScoredItem]:
    """
    Filter a transient set of documents against a query.

    Builds a throwaway manager, stores every document, trains on them
    and runs a single search.

    Args:
        documents: Dicts with "id", "text" and optional "metadata"
        query: Query or context to match against
        options: Search options

    Returns:
        Filtered and ranked documents
    """
    manager = SemanticMemoryManager()

    for doc in documents:
        manager.insert(doc["id"], doc["text"], doc.get("metadata"))

    manager.train_on_memories()
    return manager.search(query, options)
