"""Redis-based counter store for distributed GCRA rate limiting.

This module persists rate limiter state in Redis so several limiter processes
share one view of every key. Updates go through a compare-and-swap that runs
as a Lua script when the server supports EVAL, and through WATCH/MULTI/EXEC
optimistic locking otherwise. The server clock (TIME) is the authoritative
"now" for every read.

Requirements:
    pip install gcra-store  or  pip install redis
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

# Lazy import: only fail if Redis store is actually used
try:
    from redis.asyncio import ConnectionPool
    from redis.exceptions import RedisError, ResponseError

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    ConnectionPool = None  # type: ignore

from gcrastore.contrib.prometheus import metrics as prom
from gcrastore.core import MISSING_VALUE, GCRAStore, StoreMetrics, truncate_ttl
from gcrastore.exceptions import StoreConnectionError
from gcrastore.schemas import RedisStoreConfig

if TYPE_CHECKING:
    from redis.asyncio.connection import AbstractConnection

logger = logging.getLogger(__name__)

# =============================================================================
# LUA SCRIPT
# =============================================================================

# Error text the script replies with when the key is absent
CAS_MISSING_KEY = "key does not exist"

# Compare-and-swap in one atomic server-side step.
# KEYS[1] = key, ARGV[1] = old, ARGV[2] = new, ARGV[3] = ttl in whole seconds (0 = none)
# Returns 1 if swapped, 0 on mismatch, error reply CAS_MISSING_KEY if absent.
CAS_SCRIPT = """
local v = redis.call('GET', KEYS[1])
if v == false then
    return redis.error_reply("key does not exist")
end
if v ~= ARGV[1] then
    return 0
end
if ARGV[3] ~= "0" then
    redis.call('SETEX', KEYS[1], ARGV[3], ARGV[2])
else
    redis.call('SET', KEYS[1], ARGV[2])
end
return 1
"""


def is_unknown_command_error(error: BaseException) -> bool:
    """Tell whether a server error means the command is not implemented.

    Redis-compatible servers without scripting reply to EVAL with
    "ERR unknown command 'EVAL'". redis-py exposes no structured code for
    this, so the error text is the only signal.

    Args:
        error: Exception raised while running the scripted path

    Returns:
        True if the server does not recognise the command.
    """
    return isinstance(error, ResponseError) and "unknown command" in str(error).lower()


def _as_text(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


# =============================================================================
# COMPARE-AND-SWAP STRATEGIES
# =============================================================================


class CASStrategy(Protocol):
    """One way of performing a compare-and-swap over an acquired connection."""

    name: str

    async def execute(
        self, conn: AbstractConnection, key: str, old: int, new: int, ttl_seconds: int
    ) -> bool:
        """Swap key from old to new, returning False for a missing or mismatched key."""
        ...


class ScriptCAS:
    """Compare-and-swap executed atomically by the server via EVAL."""

    name = "script"

    async def execute(
        self, conn: AbstractConnection, key: str, old: int, new: int, ttl_seconds: int
    ) -> bool:
        await conn.send_command("EVAL", CAS_SCRIPT, 1, key, old, new, ttl_seconds)
        try:
            result = await conn.read_response()
        except ResponseError as e:
            if CAS_MISSING_KEY in str(e):
                return False
            raise
        return int(result) == 1


class WatchCAS:
    """Compare-and-swap protected by WATCH and a MULTI/EXEC transaction.

    Needs one more round trip than ScriptCAS. A concurrent write between the
    read and EXEC aborts the transaction and is reported as a declined swap.
    """

    name = "watch"

    async def execute(
        self, conn: AbstractConnection, key: str, old: int, new: int, ttl_seconds: int
    ) -> bool:
        await conn.send_packed_command(conn.pack_commands([("WATCH", key), ("GET", key)]))
        await conn.read_response()
        raw = await conn.read_response()

        # Compare as strings, like the script, so non-integer values decline
        if raw is None or _as_text(raw) != str(old):
            # Connection goes back to the pool, so the watch must not outlive this call
            await conn.send_command("UNWATCH")
            await conn.read_response()
            return False

        if ttl_seconds > 0:
            write: tuple[Any, ...] = ("SETEX", key, ttl_seconds, new)
        else:
            write = ("SET", key, new)

        await conn.send_packed_command(conn.pack_commands([("MULTI",), write, ("EXEC",)]))
        await conn.read_response()  # OK
        await conn.read_response()  # QUEUED
        # Null reply when a watched key changed
        result = await conn.read_response()
        return result is not None


# =============================================================================
# STORE
# =============================================================================


class RedisGCRAStore(GCRAStore):
    """Redis-based store with atomic compare-and-swap.

    The handle keeps one piece of mutable state: whether the server supports
    scripting. It starts True and flips to False the first time EVAL is
    rejected as an unknown command, after which every compare-and-swap on
    this handle uses WATCH/MULTI/EXEC. The flag is never reset.

    Example:
        >>> from redis.asyncio import ConnectionPool
        >>> from gcrastore.engines.redis import RedisGCRAStore
        >>> pool = ConnectionPool.from_url("redis://localhost:6379/0")
        >>> store = RedisGCRAStore(pool, key_prefix="throttle:", db=2)
        >>> value, now = await store.get_with_time("user:42")
        >>> swapped = await store.compare_and_swap("user:42", value, value + 100, ttl=60)
    """

    def __init__(
        self,
        pool: ConnectionPool,
        key_prefix: str = "",
        db: int = 0,
        store_id: str = "redis",
    ) -> None:
        """Initialize Redis store.

        Args:
            pool: redis-py asyncio connection pool to take connections from
            key_prefix: Prefix prepended to every key (may be empty)
            db: Logical database selected on each acquired connection
                (0 = server default, no SELECT issued)
            store_id: Identifier used in logs and metrics

        Raises:
            ValueError: If db is negative
            ImportError: If redis is not installed
        """
        if not REDIS_AVAILABLE:
            raise ImportError(
                "\nRedis store requires redis to be installed.\n"
                "Install with one of these commands:\n"
                "  pip install gcra-store\n"
                "  pip install redis"
            )

        if db < 0:
            raise ValueError(f"db must be >= 0, got: {db}")

        self._pool = pool
        self._key_prefix = key_prefix
        self._db = db
        self._store_id = store_id
        self._owns_pool = False
        self._initialized = False
        self._metrics = StoreMetrics()

        self._supports_scripting = True
        self._script_cas: CASStrategy = ScriptCAS()
        self._watch_cas: CASStrategy = WatchCAS()

    @classmethod
    def from_config(cls, config: object, store_id: str = "redis") -> RedisGCRAStore:
        """Create a Redis store, and the connection pool it owns, from configuration.

        Args:
            config: Redis store configuration (RedisStoreConfig)
            store_id: Identifier used in logs and metrics

        Returns:
            Configured RedisGCRAStore instance. disconnect() closes its pool.

        Raises:
            ValueError: If config is not RedisStoreConfig

        Example:
            >>> config = RedisStoreConfig(url="redis://localhost:6379", db=3)
            >>> store = RedisGCRAStore.from_config(config, "throttle")
            >>> await store.initialize()
        """
        if not isinstance(config, RedisStoreConfig):
            raise ValueError(f"Expected RedisStoreConfig, got {type(config)}")

        if not REDIS_AVAILABLE:
            raise ImportError("redis is required for Redis store. Install it with: pip install redis")

        pool = ConnectionPool.from_url(
            config.url,
            password=config.password,
            max_connections=config.pool_max_size,
            socket_timeout=config.socket_timeout,
            socket_connect_timeout=config.socket_connect_timeout,
        )
        store = cls(pool, key_prefix=config.key_prefix, db=config.db, store_id=store_id)
        store._owns_pool = True

        logger.info(
            "Created Redis connection pool for store '%s' (max=%d, url=%s, db=%d)",
            store_id,
            config.pool_max_size,
            config.url,
            config.db,
        )
        return store

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AbstractConnection]:
        """Take a connection from the pool, selecting the configured database.

        The connection is always released. If the block raises, the reply
        stream may hold unread replies, so the connection is disconnected
        before it goes back to the pool.

        Raises:
            StoreConnectionError: If no connection could be obtained or SELECT failed
        """
        try:
            conn = await self._pool.get_connection()
        except (RedisError, OSError) as e:
            raise StoreConnectionError(
                f"Failed to get Redis connection for store '{self._store_id}': {e}",
                store_id=self._store_id,
            ) from e

        clean = False
        try:
            if self._db > 0:
                try:
                    await conn.send_command("SELECT", self._db)
                    await conn.read_response()
                except (RedisError, OSError) as e:
                    raise StoreConnectionError(
                        f"Failed to select database {self._db} for store '{self._store_id}': {e}",
                        store_id=self._store_id,
                        db=self._db,
                    ) from e
            yield conn
            clean = True
        finally:
            if not clean:
                await conn.disconnect()
            await self._pool.release(conn)

    async def initialize(self) -> None:
        """Check connectivity with PING (and SELECT when db > 0).

        This operation is idempotent - can be called multiple times.

        Raises:
            StoreConnectionError: If the server cannot be reached
        """
        if self._initialized:
            return

        async with self._session() as conn:
            await conn.send_command("PING")
            await conn.read_response()

        self._initialized = True
        logger.info(
            "Redis store '%s' initialized (db=%d, prefix=%r)",
            self._store_id,
            self._db,
            self._key_prefix,
        )

    async def get_with_time(self, key: str) -> tuple[int, float]:
        """Return the value of key and the Redis server time in one round trip.

        Args:
            key: Entry key (without prefix)

        Returns:
            (value, now) where value is -1 if the key does not exist and now
            is the server's TIME as a POSIX timestamp.
        """
        started = time.perf_counter()
        key = self._key_prefix + key

        try:
            async with self._session() as conn:
                await conn.send_packed_command(conn.pack_commands([("TIME",), ("GET", key)]))
                seconds, micros = await conn.read_response()
                raw = await conn.read_response()
        except Exception:
            self._record("get_with_time", "error", started)
            raise

        now = int(seconds) + int(micros) / 1_000_000
        value = MISSING_VALUE if raw is None else int(raw)

        self._metrics.record_read()
        self._record("get_with_time", "ok", started)
        return value, now

    async def set_if_not_exists(self, key: str, value: int, ttl: float = 0) -> bool:
        """Set key to value with SETNX, then apply the TTL if at least one second.

        The EXPIRE is sent whether or not this call created the key. If it
        fails the error is raised even though the create may have succeeded.

        Args:
            key: Entry key (without prefix)
            value: Integer value to store
            ttl: Time to live in seconds, truncated to whole seconds

        Returns:
            True if the key was created by this call
        """
        started = time.perf_counter()
        key = self._key_prefix + key
        ttl_seconds = truncate_ttl(ttl)

        try:
            async with self._session() as conn:
                await conn.send_command("SETNX", key, value)
                created = int(await conn.read_response()) == 1

                if ttl_seconds >= 1:
                    await conn.send_command("EXPIRE", key, ttl_seconds)
                    await conn.read_response()
        except Exception:
            self._record("set_if_not_exists", "error", started)
            raise

        self._metrics.record_create(created)
        self._record("set_if_not_exists", "created" if created else "declined", started)
        logger.debug(
            "Store '%s': SETNX %s -> %s (ttl=%ds)", self._store_id, key, created, ttl_seconds
        )
        return created

    async def compare_and_swap(self, key: str, old: int, new: int, ttl: float = 0) -> bool:
        """Atomically swap key from old to new.

        Uses the scripted path while the server is believed to support EVAL.
        If EVAL is rejected as an unknown command the handle downgrades for
        good and the same call is served by the WATCH path. Any other error
        is raised. A declined swap is never retried here.

        Args:
            key: Entry key (without prefix)
            old: Expected current value
            new: Replacement value
            ttl: Time to live in seconds, truncated to whole seconds (0 = no TTL)

        Returns:
            True if swapped, False if the key is missing, holds another value,
            or was modified concurrently (WATCH path).
        """
        started = time.perf_counter()
        key = self._key_prefix + key
        ttl_seconds = truncate_ttl(ttl)

        try:
            async with self._session() as conn:
                swapped = await self._compare_and_swap(conn, key, old, new, ttl_seconds)
        except Exception:
            self._record("compare_and_swap", "error", started)
            raise

        self._metrics.record_swap(swapped)
        self._record("compare_and_swap", "swapped" if swapped else "declined", started)
        logger.debug(
            "Store '%s': CAS %s %d -> %d: %s", self._store_id, key, old, new, swapped
        )
        return swapped

    async def _compare_and_swap(
        self, conn: AbstractConnection, key: str, old: int, new: int, ttl_seconds: int
    ) -> bool:
        if self._supports_scripting:
            self._note_path(self._script_cas)
            try:
                return await self._script_cas.execute(conn, key, old, new, ttl_seconds)
            except ResponseError as e:
                if not is_unknown_command_error(e):
                    raise
                self._downgrade(e)

        self._note_path(self._watch_cas)
        return await self._watch_cas.execute(conn, key, old, new, ttl_seconds)

    def _downgrade(self, error: ResponseError) -> None:
        """Stop using the scripted path for the lifetime of this handle."""
        if self._supports_scripting:
            logger.warning(
                "Store '%s': server does not support EVAL (%s), "
                "falling back to WATCH/MULTI/EXEC",
                self._store_id,
                error,
            )
        self._supports_scripting = False
        self._metrics.record_scripting_downgrade()
        prom.record_scripting_downgrade(self._store_id)

    def _note_path(self, strategy: CASStrategy) -> None:
        self._metrics.record_cas_path(strategy.name)
        prom.record_cas_path(self._store_id, strategy.name)

    def _record(self, operation: str, outcome: str, started: float) -> None:
        prom.record_operation(
            self._store_id, operation, outcome, time.perf_counter() - started
        )

    async def reset(self) -> None:
        """Delete every key under this store's prefix (for testing).

        Refuses to run with an empty prefix, which would match the whole
        database.
        """
        if not self._key_prefix:
            logger.warning(
                "Cannot reset store '%s': empty key prefix would match every key",
                self._store_id,
            )
            return

        pattern = f"{self._key_prefix}*"
        deleted_count = 0

        async with self._session() as conn:
            cursor = 0
            while True:
                await conn.send_command("SCAN", cursor, "MATCH", pattern, "COUNT", 1000)
                raw_cursor, keys = await conn.read_response()
                cursor = int(raw_cursor)

                if keys:
                    await conn.send_command("DEL", *keys)
                    deleted_count += int(await conn.read_response())

                if cursor == 0:
                    break

        logger.debug(
            "Reset store '%s' (deleted %d keys with pattern '%s')",
            self._store_id,
            deleted_count,
            pattern,
        )

    async def disconnect(self) -> None:
        """Close the connection pool if this store created it."""
        if not self._owns_pool or self._pool is None:
            return

        try:
            await self._pool.disconnect()
            logger.info("Closed Redis connection pool for store '%s'", self._store_id)
        except (OSError, ConnectionError, RuntimeError) as e:
            logger.warning(
                "Error closing Redis pool for store '%s': %s",
                self._store_id,
                e,
            )
        finally:
            self._initialized = False

    def get_metrics(self) -> StoreMetrics:
        """Return store observability metrics.

        Returns:
            Current snapshot of collected metrics
        """
        return self._metrics

    @property
    def store_id(self) -> str:
        """Return the store ID."""
        return self._store_id

    @property
    def engine(self) -> str:
        """Return the engine name."""
        return "redis"

    @property
    def key_prefix(self) -> str:
        """Return the key prefix."""
        return self._key_prefix

    @property
    def db(self) -> int:
        """Return the logical database index."""
        return self._db

    @property
    def supports_scripting(self) -> bool:
        """Return False once EVAL has been rejected by the server."""
        return self._supports_scripting
