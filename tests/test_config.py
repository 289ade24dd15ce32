"""
Tests for configuration loading.
"""

import os

import pytest

from semantic_recall.config import (
    ContextConfig,
    LoggingConfig,
    PersistenceConfig,
    SearchConfig,
    SemanticRecallConfig,
    find_config_file,
    load_config,
    load_config_from_env,
    load_yaml_file,
)
from semantic_recall.context.semantic import ContextOptions
from semantic_recall.memory.types import SearchOptions


@pytest.fixture
def empty_config(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    return str(path)


class TestDataclasses:
    """Test configuration dataclasses."""

    def test_defaults(self):
        """Test default values."""
        config = SemanticRecallConfig()

        assert config.search.top_k == 10
        assert config.search.max_overlap == 0.8
        assert config.context.max_context_chars == 3000
        assert config.context.local_window_chars == 3000
        assert config.persistence.capacity == 1000
        assert config.persistence.db_path.endswith(os.path.join(".semantic_recall", "memory.db"))
        assert config.logging.level == "INFO"

    def test_search_to_options(self):
        """Test conversion to SearchOptions."""
        options = SearchConfig(top_k=4, min_score=0.2).to_options()

        assert isinstance(options, SearchOptions)
        assert options.top_k == 4
        assert options.min_score == 0.2

    def test_context_to_options(self):
        """Test conversion to ContextOptions."""
        options = ContextConfig(max_context_chars=500).to_options()

        assert isinstance(options, ContextOptions)
        assert options.max_context_chars == 500

    def test_invalid_capacity(self):
        """Test that capacity below one is rejected."""
        with pytest.raises(ValueError):
            PersistenceConfig(capacity=0)

    def test_logging_level_normalized(self):
        """Test that level names are parsed and upper-cased."""
        assert LoggingConfig(level="warn").level == "WARNING"

    def test_invalid_logging_level(self):
        """Test that an unknown level is rejected."""
        with pytest.raises(ValueError):
            LoggingConfig(level="loud")

    def test_dict_round_trip(self):
        """Test to_dict() and from_dict()."""
        config = SemanticRecallConfig.from_dict({
            "search": {"top_k": 3},
            "persistence": {"db_path": "/tmp/x.db", "capacity": 50},
            "logging": {"level": "debug"},
        })

        assert config.search.top_k == 3
        assert config.persistence.capacity == 50
        assert config.logging.level == "DEBUG"
        assert SemanticRecallConfig.from_dict(config.to_dict()) == config

    def test_home_expanded_in_db_path(self):
        """Test that ~ in db_path is expanded."""
        config = SemanticRecallConfig.from_dict({"persistence": {"db_path": "~/mem.db"}})

        assert not config.persistence.db_path.startswith("~")


class TestYamlLoading:
    """Test YAML file handling."""

    def test_load_yaml_file(self, tmp_path):
        """Test reading a YAML mapping."""
        path = tmp_path / "config.yml"
        path.write_text("search:\n  top_k: 5\n")

        assert load_yaml_file(path) == {"search": {"top_k": 5}}

    def test_malformed_yaml_is_empty(self, tmp_path):
        """Test that a malformed file is treated as empty."""
        path = tmp_path / "bad.yml"
        path.write_text("search: [unclosed\n")

        assert load_yaml_file(path) == {}

    def test_non_mapping_is_empty(self, tmp_path):
        """Test that a top-level list is ignored."""
        path = tmp_path / "list.yml"
        path.write_text("- one\n- two\n")

        assert load_yaml_file(path) == {}

    def test_find_config_file(self, tmp_path):
        """Test locating a config file in the start directory."""
        path = tmp_path / ".semantic-recall.yml"
        path.write_text("search:\n  top_k: 2\n")

        assert find_config_file(str(tmp_path)) == path


class TestLoadConfig:
    """Test merged configuration loading."""

    def test_file_values(self, tmp_path, clean_env):
        """Test loading from an explicit file."""
        path = tmp_path / "config.yml"
        path.write_text("search:\n  top_k: 5\ncontext:\n  max_context_chars: 1200\n")

        config = load_config(config_path=str(path))

        assert config.search.top_k == 5
        assert config.context.max_context_chars == 1200
        assert config.search.min_score == 0.0

    def test_env_overrides_file(self, tmp_path, clean_env):
        """Test that environment variables beat the file."""
        path = tmp_path / "config.yml"
        path.write_text("search:\n  top_k: 5\n")
        clean_env.setenv("SEMANTIC_RECALL_TOP_K", "7")
        clean_env.setenv("SEMANTIC_RECALL_OVERLAP_FILTER", "false")

        config = load_config(config_path=str(path))

        assert config.search.top_k == 7
        assert config.search.enable_overlap_filter is False

    def test_keyword_overrides_env(self, empty_config, clean_env):
        """Test that keyword overrides beat the environment."""
        clean_env.setenv("SEMANTIC_RECALL_CAPACITY", "10")

        config = load_config(config_path=empty_config, capacity=20, db_path="/tmp/m.db")

        assert config.persistence.capacity == 20
        assert config.persistence.db_path == "/tmp/m.db"

    def test_none_override_ignored(self, empty_config, clean_env):
        """Test that None overrides leave values unchanged."""
        config = load_config(config_path=empty_config, db_path=None)

        assert config.persistence.db_path == SemanticRecallConfig().persistence.db_path

    def test_unknown_override(self, empty_config, clean_env):
        """Test that unknown keyword overrides raise TypeError."""
        with pytest.raises(TypeError):
            load_config(config_path=empty_config, not_an_option=1)

    def test_unparseable_env_ignored(self, clean_env):
        """Test that bad numeric values are skipped."""
        clean_env.setenv("SEMANTIC_RECALL_TOP_K", "many")
        clean_env.setenv("SEMANTIC_RECALL_MIN_SCORE", "0.25")

        assert load_config_from_env() == {"search": {"min_score": 0.25}}

    def test_env_log_level_validated(self, clean_env):
        """Test that SEMANTIC_RECALL_LOG_LEVEL is parsed and bad names skipped."""
        clean_env.setenv("SEMANTIC_RECALL_LOG_LEVEL", "debug")
        assert load_config_from_env() == {"logging": {"level": "DEBUG"}}

        clean_env.setenv("SEMANTIC_RECALL_LOG_LEVEL", "loud")
        assert load_config_from_env() == {}

    def test_missing_file_uses_defaults(self, tmp_path, clean_env):
        """Test that a missing explicit file falls back to defaults."""
        config = load_config(config_path=str(tmp_path / "missing.yml"))

        assert config.search.top_k == 10
