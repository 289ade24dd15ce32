"""
Semantic Recall - local, offline semantic retrieval and filtering.

Selects the stored notes, sections and history entries that are
relevant to a request without repeating the request or each other,
and packs them with the text around the cursor into a fixed
character budget for a downstream generation step.
"""

from .exceptions import (
    SemanticRecallError,
    DimensionMismatch,
    NotFound,
    PersistenceError,
    InvalidMetadata,
)
from .memory import (
    MemoryItem,
    MemoryRecord,
    MemoryStats,
    ScoredItem,
    SearchOptions,
    TfidfEmbedding,
    SemanticMemoryManager,
    SQLiteStorage,
    create_semantic_filter,
    overlap_similarity,
    weighted_similarity,
)
from .context import (
    ContextOptions,
    SemanticContext,
    assemble_semantic_context,
    build_prompt_context,
    format_semantic_context_for_prompt,
)
from .config import (
    SemanticRecallConfig,
    load_config,
)
from .memory.service import PersistentMemoryService

__version__ = "0.1.0"
__all__ = [
    "SemanticRecallError",
    "DimensionMismatch",
    "NotFound",
    "PersistenceError",
    "InvalidMetadata",
    "MemoryItem",
    "MemoryRecord",
    "MemoryStats",
    "ScoredItem",
    "SearchOptions",
    "TfidfEmbedding",
    "SemanticMemoryManager",
    "SQLiteStorage",
    "create_semantic_filter",
    "overlap_similarity",
    "weighted_similarity",
    "ContextOptions",
    "SemanticContext",
    "assemble_semantic_context",
    "build_prompt_context",
    "format_semantic_context_for_prompt",
    "SemanticRecallConfig",
    "load_config",
    "PersistentMemoryService",
]
