"""
Memory type definitions for the semantic recall engine.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..exceptions import InvalidMetadata


MetadataValue = Union[str, int, float, bool, List[str]]
Metadata = Dict[str, MetadataValue]


def now_millis() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def datetime_to_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds, treating naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def normalize_metadata(metadata: Optional[Dict[str, Any]]) -> Metadata:
    """
    Validate and normalize a metadata mapping.

    Allowed values are str, int, float, bool and lists of str. Datetimes
    are converted to epoch milliseconds and None values are dropped.

    Args:
        metadata: Raw metadata, may be None

    Returns:
        A new, validated metadata dict

    Raises:
        InvalidMetadata: If a key is not a string or a value has an
            unsupported type
    """
    if not metadata:
        return {}

    normalized: Metadata = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise InvalidMetadata(f"Metadata keys must be strings, got {key!r}")
        if value is None:
            continue
        if isinstance(value, datetime):
            normalized[key] = datetime_to_millis(value)
        elif isinstance(value, (str, int, float, bool)):
            normalized[key] = value
        elif isinstance(value, (list, tuple)):
            if not all(isinstance(v, str) for v in value):
                raise InvalidMetadata(
                    f"Metadata list '{key}' must contain only strings"
                )
            normalized[key] = list(value)
        else:
            raise InvalidMetadata(
                f"Unsupported metadata value for '{key}': {type(value).__name__}"
            )
    return normalized


@dataclass
class MemoryItem:
    """
    A single stored item.

    Attributes:
        id: Unique identifier
        text: Original text
        embedding: Unit-length TF-IDF vector (or the zero vector) whose
            length equals the vocabulary size of the embedder that made it
        metadata: Optional timestamp/source/tags and other simple values
    """

    id: str
    text: str
    embedding: List[float] = field(default_factory=list)
    metadata: Metadata = field(default_factory=dict)

    def copy(self) -> "MemoryItem":
        """Return an independent copy of this item."""
        return MemoryItem(
            id=self.id,
            text=self.text,
            embedding=list(self.embedding),
            metadata={
                k: list(v) if isinstance(v, list) else v
                for k, v in self.metadata.items()
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "text": self.text,
            "embedding": list(self.embedding),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryItem":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            text=data.get("text", ""),
            embedding=[float(x) for x in data.get("embedding") or []],
            metadata=normalize_metadata(data.get("metadata")),
        )


@dataclass
class ScoredItem:
    """
    A memory item returned by a query, with its scores.

    Attributes:
        item: The matched memory item
        score: Weighted similarity to the query
        overlap_score: Overlap similarity to the query, when computed
    """

    item: MemoryItem
    score: float = 0.0
    overlap_score: Optional[float] = None

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def text(self) -> str:
        return self.item.text

    @property
    def metadata(self) -> Metadata:
        return self.item.metadata

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.item.id,
            "text": self.item.text,
            "metadata": dict(self.item.metadata),
            "score": self.score,
            "overlap_score": self.overlap_score,
        }


@dataclass
class SearchOptions:
    """
    Options controlling a search.

    Attributes:
        top_k: Maximum number of results
        min_score: Drop items whose weighted similarity is below this
        max_overlap: Drop items whose overlap with the query exceeds this
        enable_overlap_filter: Whether to compute and apply query overlap
        dedupe_results: Also prune results that overlap each other
        dedupe_threshold: Pairwise overlap limit for dedupe_results;
            defaults to max_overlap
    """

    top_k: int = 10
    min_score: float = 0.0
    max_overlap: float = 0.8
    enable_overlap_filter: bool = True
    dedupe_results: bool = False
    dedupe_threshold: Optional[float] = None

    def __post_init__(self):
        if self.top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {self.top_k}")

    @property
    def effective_dedupe_threshold(self) -> float:
        if self.dedupe_threshold is None:
            return self.max_overlap
        return self.dedupe_threshold

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "top_k": self.top_k,
            "min_score": self.min_score,
            "max_overlap": self.max_overlap,
            "enable_overlap_filter": self.enable_overlap_filter,
            "dedupe_results": self.dedupe_results,
            "dedupe_threshold": self.dedupe_threshold,
        }


@dataclass
class MemoryStats:
    """Statistics about an engine instance."""

    total_items: int = 0
    vocabulary_size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_items": self.total_items,
            "vocabulary_size": self.vocabulary_size,
        }


@dataclass
class MemoryRecord:
    """
    Persistence record for one memory item.

    Attributes:
        item: The stored item
        created_at: Creation time, epoch milliseconds
        last_accessed: Last insert or retrieval, epoch milliseconds;
            drives least-recently-used eviction
        access_count: Number of retrievals (informational)
    """

    item: MemoryItem
    created_at: int = field(default_factory=now_millis)
    last_accessed: int = 0
    access_count: int = 0

    def __post_init__(self):
        if not self.last_accessed:
            self.last_accessed = self.created_at

    @property
    def id(self) -> str:
        return self.item.id

    def touch(self, at: Optional[int] = None):
        """Update access time and count."""
        self.access_count += 1
        self.last_accessed = at if at is not None else now_millis()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = self.item.to_dict()
        data.update({
            "created_at": self.created_at,
            "last_accessed": self.last_accessed,
            "access_count": self.access_count,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryRecord":
        """Create from dictionary."""
        created_at = int(data.get("created_at") or now_millis())
        return cls(
            item=MemoryItem.from_dict(data),
            created_at=created_at,
            last_accessed=int(data.get("last_accessed") or created_at),
            access_count=int(data.get("access_count", 0)),
        )
