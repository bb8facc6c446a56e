"""Tests for testing utilities.

Tests the reset_store and reset_all_stores functions.
"""

import pytest

from fakes import FakeConnectionPool, FakeRedisServer
from gcrastore import configure_store, get_store
from gcrastore.core import MISSING_VALUE
from gcrastore.engines.redis import RedisGCRAStore
from gcrastore.testing import reset_all_stores, reset_store

pytestmark = pytest.mark.asyncio


async def test_reset_store_clears_memory_state():
    """Test that reset_store empties a memory store."""
    configure_store("local", engine="memory")
    store = get_store("local")
    await store.set_if_not_exists("k", 5)

    await reset_store(store)

    value, _ = await store.get_with_time("k")
    assert value == MISSING_VALUE


async def test_reset_store_only_touches_prefix(server: FakeRedisServer, pool: FakeConnectionPool):
    """Test that a Redis reset deletes only keys under the store prefix."""
    server.set("other:k", 1)
    store = RedisGCRAStore(pool, key_prefix="mine:")
    await store.set_if_not_exists("a", 1)
    await store.set_if_not_exists("b", 2)

    await reset_store(store)

    assert server.keys() == [b"other:k"]


async def test_reset_store_refuses_empty_prefix(server: FakeRedisServer, pool: FakeConnectionPool):
    """Test that a Redis store without prefix is left untouched."""
    store = RedisGCRAStore(pool)
    await store.set_if_not_exists("k", 1)

    await reset_store(store)

    assert server.get("k") == b"1"


async def test_reset_all_stores():
    """Test that every live registry handle is reset."""
    configure_store("a", engine="memory")
    configure_store("b", engine="memory")
    configure_store("unused", engine="memory")
    first, second = get_store("a"), get_store("b")
    await first.set_if_not_exists("k", 1)
    await second.set_if_not_exists("k", 2)

    await reset_all_stores()

    assert (await first.get_with_time("k"))[0] == MISSING_VALUE
    assert (await second.get_with_time("k"))[0] == MISSING_VALUE


async def test_reset_all_stores_with_empty_registry():
    """Test that resetting with nothing configured is a no-op."""
    await reset_all_stores()
