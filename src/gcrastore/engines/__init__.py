"""Engine implementations for counter stores.

This module contains concrete implementations of the GCRAStore interface
using different backends.

Available engines:
- Memory: In-process store for local/development use
- Redis: Distributed store using Redis (Lua CAS with WATCH/MULTI/EXEC fallback)

The Redis module imports without redis installed; constructing a
RedisGCRAStore then raises ImportError with install instructions.
"""

from gcrastore.engines.memory import MemoryGCRAStore
from gcrastore.engines.redis import RedisGCRAStore

__all__ = ["MemoryGCRAStore", "RedisGCRAStore"]
