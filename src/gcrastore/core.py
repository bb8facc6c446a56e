"""Core abstractions and base types for GCRA counter stores.

This module defines the generic interface a generic-cell-rate limiter uses to
persist its per-key state, supporting different backends (Redis, in-memory).
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

# Sentinel returned by get_with_time() for keys that do not exist
MISSING_VALUE = -1


def truncate_ttl(ttl: float) -> int:
    """Truncate a TTL in seconds to the whole seconds the backend can represent.

    Negative values are treated as "no TTL".
    """
    if ttl <= 0:
        return 0
    return int(ttl)


@dataclass
class StoreMetrics:
    """Observability metrics for a store handle.

    Attributes:
        total_reads: Number of get_with_time() calls that completed
        total_creates: Number of set_if_not_exists() calls that created the key
        creates_declined: Number of set_if_not_exists() calls that found the key present
        total_swaps: Number of compare_and_swap() calls that swapped the value
        swaps_declined: Number of compare_and_swap() calls on a missing or mismatched key
        script_attempts: Times the scripted CAS path was executed
        watch_attempts: Times the WATCH/MULTI CAS path was executed
        scripting_downgrades: Times the backend was found not to support scripting
        last_operation_at: Timestamp of the last completed operation
    """

    total_reads: int = 0
    total_creates: int = 0
    creates_declined: int = 0
    total_swaps: int = 0
    swaps_declined: int = 0
    script_attempts: int = 0
    watch_attempts: int = 0
    scripting_downgrades: int = 0
    last_operation_at: float | None = None

    def record_read(self) -> None:
        """Record a completed clock-synchronized read."""
        self.total_reads += 1
        self.last_operation_at = time.time()

    def record_create(self, created: bool) -> None:
        """Record the outcome of a conditional create."""
        if created:
            self.total_creates += 1
        else:
            self.creates_declined += 1
        self.last_operation_at = time.time()

    def record_swap(self, swapped: bool) -> None:
        """Record the outcome of a compare-and-swap."""
        if swapped:
            self.total_swaps += 1
        else:
            self.swaps_declined += 1
        self.last_operation_at = time.time()

    def record_cas_path(self, path: str) -> None:
        """Record which CAS path ran ("script" or "watch")."""
        if path == "script":
            self.script_attempts += 1
        else:
            self.watch_attempts += 1

    def record_scripting_downgrade(self) -> None:
        """Record that scripting was found unsupported."""
        self.scripting_downgrades += 1


class GCRAStore(ABC):
    """Abstract interface for the persistence backend of a GCRA rate limiter.

    Entries are integer values with an optional TTL, owned entirely by the
    backend. Implementations hold no local cache of entry state between calls,
    so several limiter processes can share one backend.

    The limiter seeds its state with get_with_time() and commits updated state
    with set_if_not_exists() (first request for a key) or compare_and_swap().
    A declined create or swap is reported as False, never as an exception.
    Retrying a declined swap is the caller's responsibility.

    Example usage:
        >>> store = MemoryGCRAStore()
        >>> await store.initialize()
        >>> value, now = await store.get_with_time("user:42")
        >>> if value == MISSING_VALUE:
        ...     created = await store.set_if_not_exists("user:42", tat, ttl=60)
        ... else:
        ...     swapped = await store.compare_and_swap("user:42", value, tat, ttl=60)
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Verify the backend is reachable and prepare the store for use.

        Operations do not require it, but calling it at startup surfaces
        connection problems early. Must be idempotent.
        """

    @abstractmethod
    async def get_with_time(self, key: str) -> tuple[int, float]:
        """Return the value of key together with the backend's current time.

        Args:
            key: Entry key (the store prefix is applied by the implementation)

        Returns:
            Tuple of (value, now). value is MISSING_VALUE (-1) when the key
            does not exist. now is a POSIX timestamp in seconds taken from the
            backend clock.
        """

    @abstractmethod
    async def set_if_not_exists(self, key: str, value: int, ttl: float = 0) -> bool:
        """Set key to value only if it does not exist yet.

        Args:
            key: Entry key
            value: Integer value to store
            ttl: Time to live in seconds, truncated to whole seconds.
                 Applied when at least one second.

        Returns:
            True if this call created the key, False if it already existed.
        """

    @abstractmethod
    async def compare_and_swap(self, key: str, old: int, new: int, ttl: float = 0) -> bool:
        """Atomically replace the value of key with new if it currently equals old.

        Args:
            key: Entry key
            old: Expected current value
            new: Replacement value
            ttl: Time to live in seconds, truncated to whole seconds (0 = no TTL)

        Returns:
            True if the value was swapped, False if the key is missing or its
            value differs from old.
        """

    async def disconnect(self) -> None:
        """Release backend resources. Default implementation does nothing."""
        return None

    @abstractmethod
    def get_metrics(self) -> StoreMetrics:
        """Return store observability metrics.

        Returns:
            Current snapshot of collected metrics
        """

    @property
    @abstractmethod
    def store_id(self) -> str:
        """Identifier of this store handle (used in logs and metrics)."""

    @property
    @abstractmethod
    def engine(self) -> str:
        """Engine name ("redis", "memory")."""

    @property
    def supports_scripting(self) -> bool:
        """Whether the backend is believed to support atomic scripting.

        Stores without a scripting concept report True.
        """
        return True
