"""
Exceptions raised by the semantic recall engine.
"""

from typing import Optional


class SemanticRecallError(Exception):
    """Base exception for semantic recall errors."""
    pass


class DimensionMismatch(SemanticRecallError, ValueError):
    """Raised when two vectors of different lengths are compared."""

    def __init__(self, left: int, right: int):
        super().__init__(
            f"Vectors must have the same length (got {left} and {right})"
        )
        self.left = left
        self.right = right


class NotFound(SemanticRecallError, KeyError):
    """Raised when a memory item id does not exist."""

    def __init__(self, item_id: str):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self) -> str:
        return f"Memory item not found: {self.item_id}"


class PersistenceError(SemanticRecallError):
    """Raised when the durable store cannot be read or written."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class InvalidMetadata(SemanticRecallError, TypeError):
    """Raised when metadata holds a value outside the supported types."""
    pass
