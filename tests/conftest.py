"""
Pytest configuration and shared fixtures.
"""

import logging

import pytest

from semantic_recall.config import PersistenceConfig, _ENV_VARS
from semantic_recall.memory import SemanticMemoryManager, SQLiteStorage
from semantic_recall.memory.service import PersistentMemoryService


SAMPLE_ITEMS = {
    "1": "artificial intelligence machine learning",
    "2": "deep learning neural networks",
    "3": "cooking recipes food",
}


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging() so caplog sees package records."""
    yield
    logger = logging.getLogger("semantic_recall")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def clean_env(monkeypatch):
    """Remove SEMANTIC_RECALL_* variables from the environment."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def manager():
    """A trained manager holding the three sample items."""
    manager = SemanticMemoryManager()
    for item_id, text in SAMPLE_ITEMS.items():
        manager.insert(item_id, text)
    manager.train_on_memories()
    return manager


@pytest.fixture
def db_path(tmp_path):
    """Path for a temporary SQLite database."""
    return str(tmp_path / "memory.db")


@pytest.fixture
def storage(db_path):
    """SQLite storage in a temporary directory."""
    storage = SQLiteStorage(db_path=db_path)
    yield storage
    storage.close()


@pytest.fixture
def service(db_path):
    """Persistent memory service backed by a temporary database."""
    service = PersistentMemoryService(PersistenceConfig(db_path=db_path))
    yield service
    service.close()
