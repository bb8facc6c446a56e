"""Tests for configuration schemas and their validation."""

import pytest

from gcrastore.exceptions import ConfigValidationError
from gcrastore.schemas import ENGINE_SCHEMAS, MemoryStoreConfig, RedisStoreConfig
from gcrastore.validation import validate_store_config


class TestRedisStoreConfig:
    """Test RedisStoreConfig defaults and checks."""

    def test_defaults(self):
        """Test default values."""
        config = RedisStoreConfig(url="redis://localhost:6379")

        assert config.engine == "redis"
        assert config.db == 0
        assert config.password is None
        assert config.key_prefix == ""
        assert config.pool_max_size == 10
        assert config.socket_timeout == 5.0

    def test_negative_db_rejected(self):
        """Test that db must be non-negative."""
        with pytest.raises(ValueError):
            RedisStoreConfig(url="redis://localhost", db=-1)

    def test_zero_pool_rejected(self):
        """Test that the pool needs at least one connection."""
        with pytest.raises(ValueError):
            RedisStoreConfig(url="redis://localhost", pool_max_size=0)


class TestEngineSchemas:
    """Test the engine registry of schemas."""

    def test_known_engines(self):
        """Test that both engines are registered."""
        assert ENGINE_SCHEMAS == {"memory": MemoryStoreConfig, "redis": RedisStoreConfig}


class TestValidateStoreConfig:
    """Test validate_store_config."""

    def test_valid_redis_config(self):
        """Test that valid parameters produce a config instance."""
        config = validate_store_config(
            "redis", {"url": "redis://localhost", "db": 3, "socket_timeout": 2}
        )

        assert isinstance(config, RedisStoreConfig)
        assert config.db == 3
        assert config.socket_timeout == 2

    def test_valid_memory_config(self):
        """Test that the memory engine needs no parameters."""
        assert isinstance(validate_store_config("memory", {}), MemoryStoreConfig)

    def test_unknown_engine(self):
        """Test that unknown engines are rejected with the list of engines."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("etcd", {})

        assert exc_info.value.field == "engine"
        assert "redis" in exc_info.value.expected

    def test_missing_required_field(self):
        """Test that url is required for redis."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("redis", {})

        assert exc_info.value.field == "url"
        assert exc_info.value.received == "missing"

    def test_unknown_field(self):
        """Test that misspelled fields are rejected."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("redis", {"url": "redis://localhost", "prefix": "x"})

        assert exc_info.value.field == "prefix"

    @pytest.mark.parametrize(
        ("field", "value"),
        [("db", "1"), ("db", True), ("db", 1.5), ("socket_timeout", "fast"), ("url", 6379)],
    )
    def test_wrong_types(self, field, value):
        """Test that mistyped values are rejected."""
        params = {"url": "redis://localhost", field: value}

        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("redis", params)

        assert exc_info.value.field == field

    def test_optional_field_accepts_none(self):
        """Test that optional fields accept None."""
        config = validate_store_config("redis", {"url": "redis://localhost", "password": None})

        assert config.password is None

    def test_literal_engine_checked(self):
        """Test that the engine literal must match the schema."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("redis", {"url": "redis://localhost", "engine": "memory"})

        assert exc_info.value.field == "engine"

    def test_dataclass_checks_wrapped(self):
        """Test that __post_init__ errors surface as ConfigValidationError."""
        with pytest.raises(ConfigValidationError) as exc_info:
            validate_store_config("redis", {"url": "redis://localhost", "db": -2})

        assert exc_info.value.field == "config"
