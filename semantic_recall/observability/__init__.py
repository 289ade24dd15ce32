"""
Observability for semantic recall - structured log output.
"""

from .logging import (
    LogLevel,
    LogRecord,
    StructuredFormatter,
    configure_logging,
)

__all__ = [
    "LogLevel",
    "LogRecord",
    "StructuredFormatter",
    "configure_logging",
]
