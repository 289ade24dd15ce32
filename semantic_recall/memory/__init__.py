"""
Semantic memory engine.

Stores short text items with TF-IDF embeddings trained on their own
corpus and answers ranked, filtered queries against them.

Key features:
- Corpus-trained TF-IDF embeddings, no external model
- Weighted (cosine) similarity for relevance
- Overlap (Jaccard) similarity to suppress restatements
- SQLite-based persistent storage with LRU eviction
- Export/import functionality
"""

from .types import (
    MemoryItem,
    MemoryRecord,
    MemoryStats,
    ScoredItem,
    SearchOptions,
    normalize_metadata,
)

from .tokenizer import (
    tokenize,
    term_set,
    term_frequencies,
)

from .similarity import (
    weighted_similarity,
    overlap_similarity,
)

from .embeddings import (
    EmbeddingProvider,
    TfidfEmbedding,
)

from .store import (
    MemoryStore,
)

from .storage import (
    MemoryStorage,
    SQLiteStorage,
)

from .manager import (
    SemanticMemoryManager,
    create_semantic_filter,
)


__all__ = [
    # Types
    "MemoryItem",
    "MemoryRecord",
    "MemoryStats",
    "ScoredItem",
    "SearchOptions",
    "normalize_metadata",
    # Tokenizer
    "tokenize",
    "term_set",
    "term_frequencies",
    # Similarity
    "weighted_similarity",
    "overlap_similarity",
    # Embeddings
    "EmbeddingProvider",
    "TfidfEmbedding",
    # Store
    "MemoryStore",
    # Storage
    "MemoryStorage",
    "SQLiteStorage",
    # Manager
    "SemanticMemoryManager",
    "create_semantic_filter",
]
