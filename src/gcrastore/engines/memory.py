"""
In-memory counter store using local asyncio primitives.

This store is useful for:
- Development and testing (no external dependencies)
- Single-process applications
- Applications that don't need distributed coordination

Note: This does NOT coordinate across multiple processes or containers.
"""

import asyncio
import heapq
import logging
import time
from typing import Callable

from gcrastore.contrib.prometheus import metrics as prom
from gcrastore.core import MISSING_VALUE, GCRAStore, StoreMetrics, truncate_ttl
from gcrastore.schemas import MemoryStoreConfig

logger = logging.getLogger(__name__)


class MemoryGCRAStore(GCRAStore):
    """In-memory store implementing the same contract as the Redis store.

    Entries are kept as (value, expires_at) pairs. An entry whose deadline
    has passed reads as absent. Every operation first purges all entries
    whose deadline has passed, so keys that are never read again do not
    accumulate. TTLs are truncated to whole seconds, like in Redis.

    Attributes:
        _entries: key -> (value, expires_at or None)
        _deadlines: Min-heap of (expires_at, key), may hold superseded deadlines
        _clock: Time source, defaults to time.time
        _lock: Asyncio lock serialising all operations
        _metrics: Observability metrics
    """

    def __init__(
        self,
        store_id: str = "memory",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize memory store.

        Args:
            store_id: Identifier used in logs and metrics
            clock: Function returning the current POSIX time in seconds.
                   Tests pass a fake clock to control expiry.
        """
        self._store_id = store_id
        self._clock = clock
        self._entries: dict[str, tuple[int, float | None]] = {}
        self._deadlines: list[tuple[float, str]] = []
        self._lock = asyncio.Lock()
        self._initialized = False
        self._metrics = StoreMetrics()

    @classmethod
    def from_config(cls, config: object, store_id: str = "memory") -> "MemoryGCRAStore":
        """Create memory store from configuration.

        Args:
            config: Memory store configuration (MemoryStoreConfig)
            store_id: Identifier used in logs and metrics

        Returns:
            Configured MemoryGCRAStore instance

        Raises:
            ValueError: If config is not MemoryStoreConfig
        """
        if not isinstance(config, MemoryStoreConfig):
            raise ValueError(f"Expected MemoryStoreConfig, got {type(config)}")

        return cls(store_id=store_id)

    async def initialize(self) -> None:
        """Mark the store ready. Idempotent."""
        if self._initialized:
            return
        self._initialized = True
        logger.info("Memory store '%s' initialized", self._store_id)

    def _get_live(self, key: str, now: float) -> int | None:
        """Return the value of a non-expired entry, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= now:
            del self._entries[key]
            return None
        return value

    def _put(self, key: str, value: int, ttl_seconds: int, now: float) -> None:
        expires_at = now + ttl_seconds if ttl_seconds > 0 else None
        self._entries[key] = (value, expires_at)
        if expires_at is not None:
            heapq.heappush(self._deadlines, (expires_at, key))

    def _sweep(self, now: float) -> None:
        """Drop every entry whose deadline has passed. Caller holds the lock."""
        while self._deadlines and self._deadlines[0][0] <= now:
            expires_at, key = heapq.heappop(self._deadlines)
            entry = self._entries.get(key)
            # Skip deadlines superseded by a later write to the same key
            if entry is not None and entry[1] == expires_at:
                del self._entries[key]

    async def get_with_time(self, key: str) -> tuple[int, float]:
        started = time.perf_counter()
        async with self._lock:
            now = self._clock()
            self._sweep(now)
            value = self._get_live(key, now)

        self._metrics.record_read()
        prom.record_operation(self._store_id, "get_with_time", "ok", time.perf_counter() - started)
        return (MISSING_VALUE if value is None else value), now

    async def set_if_not_exists(self, key: str, value: int, ttl: float = 0) -> bool:
        started = time.perf_counter()
        ttl_seconds = truncate_ttl(ttl)

        async with self._lock:
            now = self._clock()
            self._sweep(now)
            current = self._get_live(key, now)
            created = current is None
            if created:
                self._put(key, value, 0, now)
                current = value
            if ttl_seconds >= 1:
                # Refresh the TTL whether or not this call created the key
                self._put(key, current, ttl_seconds, now)

        self._metrics.record_create(created)
        prom.record_operation(
            self._store_id,
            "set_if_not_exists",
            "created" if created else "declined",
            time.perf_counter() - started,
        )
        return created

    async def compare_and_swap(self, key: str, old: int, new: int, ttl: float = 0) -> bool:
        started = time.perf_counter()
        ttl_seconds = truncate_ttl(ttl)

        async with self._lock:
            now = self._clock()
            self._sweep(now)
            current = self._get_live(key, now)
            swapped = current is not None and current == old
            if swapped:
                self._put(key, new, ttl_seconds, now)

        self._metrics.record_swap(swapped)
        prom.record_operation(
            self._store_id,
            "compare_and_swap",
            "swapped" if swapped else "declined",
            time.perf_counter() - started,
        )
        logger.debug("Store '%s': CAS %s %d -> %d: %s", self._store_id, key, old, new, swapped)
        return swapped

    async def reset(self) -> None:
        """Drop every entry (for testing)."""
        async with self._lock:
            self._entries.clear()
            self._deadlines.clear()
        logger.debug("Reset memory store '%s'", self._store_id)

    def get_metrics(self) -> StoreMetrics:
        """Return store observability metrics."""
        return self._metrics

    @property
    def store_id(self) -> str:
        """Return the store ID."""
        return self._store_id

    @property
    def engine(self) -> str:
        """Return the engine name."""
        return "memory"
