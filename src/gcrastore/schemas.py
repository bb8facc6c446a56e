"""
Configuration schemas for counter stores.

This module defines the configuration structures using dataclasses for type safety
and clear documentation. Each engine (Redis, Memory) defines its own config schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass
class RedisStoreConfig:
    """Configuration for the Redis-backed counter store.

    Works against any server speaking the Redis protocol. Servers without
    EVAL support are detected at runtime and served through WATCH/MULTI/EXEC.

    Attributes:
        url: Redis connection URL (supports env var expansion via ${VAR})
             Format: redis://[:password@]host[:port][/database]
        engine: Engine identifier (always "redis")
        db: Logical database selected on every acquired connection (0 = default, no SELECT)
        password: Optional Redis password (can also be in URL)
        key_prefix: Prefix prepended to every key (may be empty)
        pool_max_size: Maximum number of connections in pool
        socket_timeout: Socket timeout in seconds for Redis operations
        socket_connect_timeout: Connection timeout in seconds
    """

    url: str
    engine: Literal["redis"] = "redis"
    db: int = 0
    password: str | None = None
    key_prefix: str = ""
    pool_max_size: int = 10
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0

    def __post_init__(self) -> None:
        """Validate numeric fields."""
        if self.db < 0:
            raise ValueError(f"db must be >= 0, got {self.db}")
        if self.pool_max_size <= 0:
            raise ValueError(f"pool_max_size must be > 0, got {self.pool_max_size}")


@dataclass
class MemoryStoreConfig:
    """Configuration for the in-memory (local) counter store.

    This engine keeps entries in process memory and doesn't coordinate across
    processes. Useful for development, testing, or single-process applications.

    Attributes:
        engine: Engine identifier (always "memory")
    """

    engine: Literal["memory"] = "memory"


ENGINE_SCHEMAS: dict[str, type] = {
    "memory": MemoryStoreConfig,
    "redis": RedisStoreConfig,
}
