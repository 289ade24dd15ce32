"""
Configuration Module - Load and manage semantic recall configuration.

This module provides support for loading configuration from:
- YAML configuration files (.semantic-recall.yml)
- Environment variables
- Programmatic configuration

Configuration precedence (highest to lowest):
1. Programmatic configuration (keyword overrides)
2. Environment variables
3. Configuration file
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .context.semantic import ContextOptions
from .memory.types import SearchOptions
from .observability.logging import LogLevel


logger = logging.getLogger(__name__)


# Default configuration file names (in order of precedence)
CONFIG_FILE_NAMES = [
    ".semantic-recall.yml",
    ".semantic-recall.yaml",
    "semantic-recall.yml",
    "semantic-recall.yaml",
]

DEFAULT_DB_PATH = str(Path.home() / ".semantic_recall" / "memory.db")


@dataclass
class SearchConfig:
    """Default search options."""

    top_k: int = 10
    min_score: float = 0.0
    max_overlap: float = 0.8
    enable_overlap_filter: bool = True
    dedupe_results: bool = False

    def to_options(self) -> SearchOptions:
        return SearchOptions(
            top_k=self.top_k,
            min_score=self.min_score,
            max_overlap=self.max_overlap,
            enable_overlap_filter=self.enable_overlap_filter,
            dedupe_results=self.dedupe_results,
        )


@dataclass
class ContextConfig:
    """Character budgets for context assembly."""

    max_context_chars: int = 3000
    local_window_chars: int = 3000

    def to_options(self) -> ContextOptions:
        return ContextOptions(
            max_context_chars=self.max_context_chars,
            local_window_chars=self.local_window_chars,
        )


@dataclass
class PersistenceConfig:
    """Configuration for the durable store."""

    enabled: bool = True
    db_path: str = DEFAULT_DB_PATH
    capacity: int = 1000  # items kept before LRU eviction
    retrain_interval: int = 10  # inserts between automatic retrains

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        if self.retrain_interval < 1:
            raise ValueError(
                f"retrain_interval must be >= 1, got {self.retrain_interval}"
            )


@dataclass
class LoggingConfig:
    """Configuration for log output."""

    level: str = "INFO"
    json_output: bool = False

    def __post_init__(self):
        self.level = LogLevel.parse(self.level).value


@dataclass
class SemanticRecallConfig:
    """
    Complete configuration for semantic recall.

    Example YAML configuration:
        ```yaml
        search:
          top_k: 5
          min_score: 0.1
          max_overlap: 0.8

        context:
          max_context_chars: 3000
          local_window_chars: 3000

        persistence:
          db_path: "~/.semantic_recall/memory.db"
          capacity: 1000

        logging:
          level: "INFO"
          json_output: false
        ```
    """

    search: SearchConfig = field(default_factory=SearchConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "SemanticRecallConfig":
        """Create configuration from dictionary."""
        search_data = data.get("search", {}) or {}
        context_data = data.get("context", {}) or {}
        persistence_data = data.get("persistence", {}) or {}
        logging_data = data.get("logging", {}) or {}

        db_path = persistence_data.get("db_path") or DEFAULT_DB_PATH

        return cls(
            search=SearchConfig(
                top_k=int(search_data.get("top_k", 10)),
                min_score=float(search_data.get("min_score", 0.0)),
                max_overlap=float(search_data.get("max_overlap", 0.8)),
                enable_overlap_filter=bool(search_data.get("enable_overlap_filter", True)),
                dedupe_results=bool(search_data.get("dedupe_results", False)),
            ),
            context=ContextConfig(
                max_context_chars=int(context_data.get("max_context_chars", 3000)),
                local_window_chars=int(context_data.get("local_window_chars", 3000)),
            ),
            persistence=PersistenceConfig(
                enabled=bool(persistence_data.get("enabled", True)),
                db_path=os.path.expanduser(db_path),
                capacity=int(persistence_data.get("capacity", 1000)),
                retrain_interval=int(persistence_data.get("retrain_interval", 10)),
            ),
            logging=LoggingConfig(
                level=logging_data.get("level", "INFO"),
                json_output=bool(logging_data.get("json_output", False)),
            ),
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "search": {
                "top_k": self.search.top_k,
                "min_score": self.search.min_score,
                "max_overlap": self.search.max_overlap,
                "enable_overlap_filter": self.search.enable_overlap_filter,
                "dedupe_results": self.search.dedupe_results,
            },
            "context": {
                "max_context_chars": self.context.max_context_chars,
                "local_window_chars": self.context.local_window_chars,
            },
            "persistence": {
                "enabled": self.persistence.enabled,
                "db_path": self.persistence.db_path,
                "capacity": self.persistence.capacity,
                "retrain_interval": self.persistence.retrain_interval,
            },
            "logging": {
                "level": self.logging.level,
                "json_output": self.logging.json_output,
            },
        }


def find_config_file(start_path: Optional[str] = None) -> Optional[Path]:
    """
    Find the configuration file starting from the given path.

    Searches in the following order:
    1. The given start_path directory
    2. Current working directory
    3. Parent directories up to the root
    4. User home directory

    Args:
        start_path: Directory to start searching from.

    Returns:
        Path to configuration file if found, None otherwise.
    """
    search_dirs = []

    if start_path:
        search_dirs.append(Path(start_path))

    search_dirs.append(Path.cwd())

    current = Path.cwd()
    while current.parent != current:
        current = current.parent
        search_dirs.append(current)

    search_dirs.append(Path.home())

    for directory in search_dirs:
        for config_name in CONFIG_FILE_NAMES:
            config_path = directory / config_name
            if config_path.is_file():
                logger.debug(f"Found config file: {config_path}")
                return config_path

    return None


def load_yaml_file(file_path: Path) -> dict:
    """
    Load a YAML configuration file.

    Unreadable or malformed files are logged and treated as empty.

    Args:
        file_path: Path to the YAML file.

    Returns:
        Dictionary with configuration data.
    """
    try:
        with open(file_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading config file {file_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {file_path}: top level is not a mapping")
        return {}
    return data


def _parse_level(value: str) -> str:
    return LogLevel.parse(value).value


# Environment variable -> (section, key, parser)
_ENV_VARS = {
    "SEMANTIC_RECALL_TOP_K": ("search", "top_k", int),
    "SEMANTIC_RECALL_MIN_SCORE": ("search", "min_score", float),
    "SEMANTIC_RECALL_MAX_OVERLAP": ("search", "max_overlap", float),
    "SEMANTIC_RECALL_OVERLAP_FILTER": ("search", "enable_overlap_filter", None),
    "SEMANTIC_RECALL_MAX_CONTEXT_CHARS": ("context", "max_context_chars", int),
    "SEMANTIC_RECALL_LOCAL_WINDOW_CHARS": ("context", "local_window_chars", int),
    "SEMANTIC_RECALL_DB_PATH": ("persistence", "db_path", str),
    "SEMANTIC_RECALL_CAPACITY": ("persistence", "capacity", int),
    "SEMANTIC_RECALL_LOG_LEVEL": ("logging", "level", _parse_level),
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env() -> dict:
    """
    Load configuration from environment variables.

    Supported environment variables:
    - SEMANTIC_RECALL_TOP_K, SEMANTIC_RECALL_MIN_SCORE,
      SEMANTIC_RECALL_MAX_OVERLAP, SEMANTIC_RECALL_OVERLAP_FILTER
    - SEMANTIC_RECALL_MAX_CONTEXT_CHARS, SEMANTIC_RECALL_LOCAL_WINDOW_CHARS
    - SEMANTIC_RECALL_DB_PATH, SEMANTIC_RECALL_CAPACITY
    - SEMANTIC_RECALL_LOG_LEVEL

    Values that fail to parse are ignored.

    Returns:
        Dictionary with configuration from environment.
    """
    config: Dict[str, Dict[str, Any]] = {}

    for env_name, (section, key, parser) in _ENV_VARS.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            value = _parse_bool(raw) if parser is None else parser(raw)
        except ValueError:
            logger.debug(f"Ignoring unparseable {env_name}={raw!r}")
            continue
        config.setdefault(section, {})[key] = value

    return config


def load_config(
    config_path: Optional[str] = None,
    start_path: Optional[str] = None,
    **overrides: Any,
) -> SemanticRecallConfig:
    """
    Load configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Overrides passed as keyword arguments
    2. Environment variables
    3. Configuration file
    4. Default values

    Args:
        config_path: Optional explicit path to config file.
        start_path: Optional directory to search for a config file.
        **overrides: Flat overrides such as top_k=5 or db_path="x.db".

    Returns:
        Merged SemanticRecallConfig.
    """
    merged_config: dict = {}

    if config_path:
        file_path = Path(config_path)
        if file_path.exists():
            merged_config = _deep_merge(merged_config, load_yaml_file(file_path))
        else:
            logger.warning(f"Config file not found: {config_path}")
    else:
        config_file = find_config_file(start_path)
        if config_file:
            merged_config = _deep_merge(merged_config, load_yaml_file(config_file))

    merged_config = _deep_merge(merged_config, load_config_from_env())

    if overrides:
        override_config: Dict[str, Dict[str, Any]] = {}
        for key, value in overrides.items():
            section = _OVERRIDE_SECTIONS.get(key)
            if section is None:
                raise TypeError(f"Unknown configuration option: {key}")
            override_config.setdefault(section, {})[key] = value
        merged_config = _deep_merge(merged_config, override_config)

    return SemanticRecallConfig.from_dict(merged_config)


_OVERRIDE_SECTIONS = {
    "top_k": "search",
    "min_score": "search",
    "max_overlap": "search",
    "enable_overlap_filter": "search",
    "dedupe_results": "search",
    "max_context_chars": "context",
    "local_window_chars": "context",
    "enabled": "persistence",
    "db_path": "persistence",
    "capacity": "persistence",
    "retrain_interval": "persistence",
    "level": "logging",
    "json_output": "logging",
}


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary.
        override: Dictionary with override values.

    Returns:
        Merged dictionary.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        elif value is not None:
            result[key] = value

    return result
