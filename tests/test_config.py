"""Tests for TOML configuration loading and environment variable expansion."""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from gcrastore.config import (
    _auto_load_config,
    _expand_env_vars,
    _validate_config_structure,
    load_config,
)
from gcrastore.engines.memory import MemoryGCRAStore
from gcrastore.engines.redis import RedisGCRAStore
from gcrastore.exceptions import ConfigValidationError
from gcrastore.registry import get_store, list_stores


def _write(tmp_path: Path, content: str, name: str = "gcra-store.toml") -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


class TestExpandEnvVars:
    """Test ${VAR} and ${VAR:-default} expansion."""

    def test_expands_set_variable(self):
        """Test that a set variable is substituted."""
        with patch.dict(os.environ, {"TEST_REDIS_HOST": "cache.internal"}):
            assert _expand_env_vars("redis://${TEST_REDIS_HOST}:6379") == (
                "redis://cache.internal:6379"
            )

    def test_uses_default_when_unset(self):
        """Test that the default applies when the variable is missing."""
        os.environ.pop("TEST_REDIS_DB", None)

        assert _expand_env_vars("${TEST_REDIS_DB:-2}") == 2

    def test_numeric_conversion_of_expanded_values(self):
        """Test that expanded numbers become int or float."""
        with patch.dict(os.environ, {"TEST_TIMEOUT": "1.5", "TEST_DB": "4"}):
            assert _expand_env_vars("${TEST_TIMEOUT}") == 1.5
            assert _expand_env_vars("${TEST_DB}") == 4

    def test_literal_numeric_strings_stay_strings(self):
        """Test that strings without variables are not converted."""
        assert _expand_env_vars("123") == "123"

    def test_expands_keys_and_nested_values(self):
        """Test expansion inside dict keys and lists."""
        with patch.dict(os.environ, {"TEST_STORE_ID": "throttle"}):
            result = _expand_env_vars({"stores": {"${TEST_STORE_ID}": {"tags": ["${TEST_STORE_ID}"]}}})

        assert result == {"stores": {"throttle": {"tags": ["throttle"]}}}

    def test_non_string_values_untouched(self):
        """Test that ints, floats and bools pass through."""
        assert _expand_env_vars({"db": 1, "t": 2.0, "flag": True}) == {
            "db": 1,
            "t": 2.0,
            "flag": True,
        }


class TestValidateConfigStructure:
    """Test top-level structure validation."""

    def test_missing_stores_section_is_empty(self):
        """Test that a file without stores configures nothing."""
        assert _validate_config_structure({}) == {}

    def test_stores_must_be_table(self):
        """Test that a non-table stores section is rejected."""
        with pytest.raises(ConfigValidationError) as exc_info:
            _validate_config_structure({"stores": ["redis"]})

        assert exc_info.value.field == "stores"


class TestLoadConfig:
    """Test load_config end to end."""

    def test_loads_redis_and_memory_stores(self, tmp_path):
        """Test that every [stores.*] table is registered."""
        path = _write(
            tmp_path,
            """
[stores.throttle]
engine = "redis"
url = "redis://localhost:6379"
db = 2
key_prefix = "throttle:"

[stores.local]
engine = "memory"
""",
        )

        load_config(path)

        assert isinstance(get_store("throttle"), RedisGCRAStore)
        assert isinstance(get_store("local"), MemoryGCRAStore)
        assert get_store("throttle").db == 2
        assert get_store("throttle").key_prefix == "throttle:"

    def test_env_vars_expanded_in_file(self, tmp_path):
        """Test that values are expanded before validation."""
        path = _write(
            tmp_path,
            """
[stores.throttle]
engine = "redis"
url = "${TEST_CFG_REDIS_URL:-redis://fallback:6379}"
db = "${TEST_CFG_REDIS_DB:-5}"
""",
        )

        with patch.dict(os.environ, {"TEST_CFG_REDIS_URL": "redis://primary:6379"}):
            os.environ.pop("TEST_CFG_REDIS_DB", None)
            load_config(path)

        settings = list_stores()["throttle"]
        assert settings["url"] == "redis://primary:6379"
        assert settings["db"] == 5

    def test_missing_file_raises(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml_raises_validation_error(self, tmp_path):
        """Test that a TOML syntax error is reported as ConfigValidationError."""
        path = _write(tmp_path, "[stores.broken\nengine = ")

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        assert exc_info.value.field == "config_file"

    def test_missing_engine_raises(self, tmp_path):
        """Test that a store without engine is rejected."""
        path = _write(tmp_path, '[stores.x]\nurl = "redis://localhost"\n')

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        assert exc_info.value.field == "stores.x.engine"

    def test_unknown_engine_raises(self, tmp_path):
        """Test that an unsupported engine is rejected."""
        path = _write(tmp_path, '[stores.x]\nengine = "memcached"\n')

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        assert "memcached" in str(exc_info.value)

    def test_wrong_field_type_raises(self, tmp_path):
        """Test that a mistyped field is rejected."""
        path = _write(
            tmp_path,
            '[stores.x]\nengine = "redis"\nurl = "redis://localhost"\ndb = "two"\n',
        )

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        assert "db" in str(exc_info.value)


class TestAutoLoadConfig:
    """Test configuration auto-discovery."""

    def test_loads_from_env_var(self, tmp_path):
        """Test that GCRA_STORE_CONFIG is honoured."""
        path = _write(tmp_path, '[stores.auto]\nengine = "memory"\n', name="custom.toml")

        with patch.dict(os.environ, {"GCRA_STORE_CONFIG": str(path)}):
            _auto_load_config()

        assert "auto" in list_stores()

    def test_loads_from_working_directory(self, tmp_path, monkeypatch):
        """Test that ./gcra-store.toml is found."""
        _write(tmp_path, '[stores.cwd]\nengine = "memory"\n')
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GCRA_STORE_CONFIG", raising=False)

        _auto_load_config()

        assert "cwd" in list_stores()

    def test_invalid_file_logged_not_raised(self, tmp_path, monkeypatch, caplog):
        """Test that a broken file only produces a warning."""
        _write(tmp_path, '[stores.bad]\nengine = "nope"\n')
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("GCRA_STORE_CONFIG", raising=False)

        with caplog.at_level(logging.WARNING, logger="gcrastore.config"):
            _auto_load_config()

        assert "bad" not in list_stores()
        assert any("Failed to auto-load" in r.getMessage() for r in caplog.records)

    def test_missing_env_file_warns(self, tmp_path, monkeypatch, caplog):
        """Test that a dangling GCRA_STORE_CONFIG is reported."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("GCRA_STORE_CONFIG", str(tmp_path / "missing.toml"))

        with caplog.at_level(logging.WARNING, logger="gcrastore.config"):
            _auto_load_config()

        assert any("non-existent" in r.getMessage() for r in caplog.records)
