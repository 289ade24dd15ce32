"""
Structured log output for semantic recall.

Modules log through ``logging.getLogger(__name__)``; this module only
decides how records under the ``semantic_recall`` logger are rendered.
Fields passed with ``extra=`` (for example ``operation`` or
``failures``) are rendered as attributes, as is an explicit
``extra={"attributes": {...}}`` mapping.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, TextIO, Union


ROOT_LOGGER_NAME = "semantic_recall"

# Attributes every logging.LogRecord carries; anything else came from extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "attributes", "taskName"}

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class LogLevel(str, Enum):
    """Log levels matching Python logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        return getattr(logging, self.value)

    @classmethod
    def parse(cls, value: Union["LogLevel", str, int]) -> "LogLevel":
        """
        Parse a level name or logging constant.

        Names are case-insensitive and accept the ``warn`` and ``fatal``
        aliases.

        Raises:
            ValueError: If the value names no known level
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            name = logging.getLevelName(value)
        else:
            name = str(value).strip().upper()
        name = _LEVEL_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(level.value.lower() for level in cls)
            raise ValueError(f"Unknown log level {value!r}, expected one of: {valid}") from None


@dataclass
class LogRecord:
    """A rendered log line."""

    timestamp: datetime = field(default_factory=datetime.now)
    level: LogLevel = LogLevel.INFO
    message: str = ""
    logger_name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[str] = None

    @property
    def component(self) -> str:
        """Logger name relative to the package, e.g. ``memory.service``."""
        prefix = ROOT_LOGGER_NAME + "."
        if self.logger_name.startswith(prefix):
            return self.logger_name[len(prefix):]
        return self.logger_name

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "logger": self.logger_name,
            "message": self.message,
        }
        result.update(self.attributes)
        if self.exception:
            result["exception"] = self.exception
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def to_text(self) -> str:
        """Single-line form ``time LEVEL component: message key=value``."""
        text = (
            f"{self.timestamp.strftime('%H:%M:%S.%f')[:-3]} "
            f"{self.level.value:<7} {self.component}: {self.message}"
        )
        if self.attributes:
            text += " " + " ".join(f"{k}={v}" for k, v in sorted(self.attributes.items()))
        if self.exception:
            text += f"\n{self.exception}"
        return text


def record_attributes(record: logging.LogRecord) -> Dict[str, Any]:
    """Collect the extra fields attached to a standard log record."""
    attributes = {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }
    attributes.update(getattr(record, "attributes", None) or {})
    return attributes


class StructuredFormatter(logging.Formatter):
    """Formatter producing JSON objects or single-line text."""

    def __init__(self, json_output: bool = True):
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        try:
            level = LogLevel.parse(record.levelname)
        except ValueError:
            level = LogLevel.INFO

        log_record = LogRecord(
            timestamp=datetime.fromtimestamp(record.created),
            level=level,
            message=record.getMessage(),
            logger_name=record.name,
            attributes=record_attributes(record),
            exception=self.formatException(record.exc_info) if record.exc_info else None,
        )

        if self.json_output:
            return log_record.to_json()
        return log_record.to_text()


def configure_logging(
    level: Union[LogLevel, str, int] = LogLevel.INFO,
    json_output: bool = False,
    output: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Install a StructuredFormatter on the ``semantic_recall`` logger.

    Replaces handlers from earlier calls, so it can be called again to
    change level or format.

    Args:
        level: Minimum level to emit, as a LogLevel, name or constant
        json_output: Emit JSON objects instead of text lines
        output: Stream to write to, defaults to stderr

    Returns:
        The configured package logger
    """
    level = LogLevel.parse(level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.to_python_level())

    for handler in list(logger.handlers):
        if getattr(handler, "_semantic_recall", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(output or sys.stderr)
    handler.setFormatter(StructuredFormatter(json_output))
    handler._semantic_recall = True
    logger.addHandler(handler)
    logger.propagate = False
    return logger
