"""gcra-store: TTL-aware, atomically updatable counter store for GCRA rate limiting.

This package provides the persistence backend a generic-cell-rate limiter
uses to share per-key state across processes and hosts.

Features:
- Abstract store interface with clock-synchronized reads, conditional create
  and compare-and-swap
- Redis engine: server TIME as the authoritative clock, Lua compare-and-swap
  with automatic fallback to WATCH/MULTI/EXEC on servers without scripting
- In-memory engine for development and tests
- Named stores configured programmatically or from TOML (env var expansion)
- Integrated metrics, optional Prometheus export

Basic example:
    >>> from gcrastore import configure_store, get_store, MISSING_VALUE
    >>>
    >>> configure_store("throttle", engine="redis", url="redis://localhost:6379", db=2)
    >>> store = get_store("throttle")
    >>>
    >>> value, now = await store.get_with_time("user:42")
    >>> if value == MISSING_VALUE:
    ...     created = await store.set_if_not_exists("user:42", new_tat, ttl=60)
    ... else:
    ...     swapped = await store.compare_and_swap("user:42", value, new_tat, ttl=60)
"""

from gcrastore.config import load_config
from gcrastore.core import MISSING_VALUE, GCRAStore, StoreMetrics, truncate_ttl
from gcrastore.engines.memory import MemoryGCRAStore
from gcrastore.engines.redis import RedisGCRAStore
from gcrastore.exceptions import (
    ConfigValidationError,
    GCRAStoreError,
    StoreAlreadyConfiguredError,
    StoreConnectionError,
    StoreNotFoundError,
)
from gcrastore.registry import (
    configure_store,
    disconnect_all,
    get_store,
    initialize_store,
    list_stores,
    remove_store,
)
from gcrastore.schemas import MemoryStoreConfig, RedisStoreConfig

# Testing utilities
from gcrastore import testing

__version__ = "1.0.0"

__all__ = [
    # Version
    "__version__",
    # Core abstractions
    "GCRAStore",
    "StoreMetrics",
    "MISSING_VALUE",
    "truncate_ttl",
    # Engine implementations
    "MemoryGCRAStore",
    "RedisGCRAStore",
    # Configuration
    "MemoryStoreConfig",
    "RedisStoreConfig",
    "load_config",
    "configure_store",
    # Store operations
    "get_store",
    "initialize_store",
    "list_stores",
    "remove_store",
    "disconnect_all",
    # Testing utilities
    "testing",
    # Exceptions
    "GCRAStoreError",
    "StoreConnectionError",
    "StoreAlreadyConfiguredError",
    "StoreNotFoundError",
    "ConfigValidationError",
]

# Auto-load configuration from gcra-store.toml if it exists
from gcrastore.config import _auto_load_config

_auto_load_config()
