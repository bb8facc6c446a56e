"""Global test configuration and fixtures for gcra-store.

This module provides common fixtures and pytest configuration used across
all test modules. It handles environment detection, URL configuration,
and the in-process Redis stand-ins used by unit tests.
"""

from __future__ import annotations

import os

import pytest

from fakes import FakeConnectionPool, FakeRedisServer
from gcrastore.registry import _registry


# =============================================================================
# ENVIRONMENT DETECTION
# =============================================================================


def is_redis_available() -> bool:
    """Check if Redis library is installed."""
    try:
        import redis.asyncio  # noqa: F401

        return True
    except ImportError:
        return False


REDIS_AVAILABLE = is_redis_available()


# =============================================================================
# URL FIXTURES
# =============================================================================


@pytest.fixture
def redis_url() -> str:
    """Redis URL for integration testing.

    Reads from REDIS_URL environment variable, with fallback to localhost.
    Supports REDIS_PASSWORD for authenticated connections.
    """
    url = os.environ.get("REDIS_URL", "")
    if url:
        return url

    password = os.getenv("REDIS_PASSWORD", "").strip()
    host = os.getenv("REDIS_HOST", "localhost")
    port = os.getenv("REDIS_PORT", "6379")

    if password:
        return f"redis://:{password}@{host}:{port}/0"
    return f"redis://{host}:{port}/0"


# =============================================================================
# FAKE REDIS FIXTURES
# =============================================================================


@pytest.fixture
def server() -> FakeRedisServer:
    """In-process Redis keyspace with a fixed clock."""
    return FakeRedisServer()


@pytest.fixture
def pool(server: FakeRedisServer) -> FakeConnectionPool:
    """Connection pool handing out fake connections to the shared server."""
    return FakeConnectionPool(server)


# =============================================================================
# REGISTRY ISOLATION
# =============================================================================


@pytest.fixture(autouse=True)
def clean_registry():
    """Give every test an empty global store registry."""
    _registry.clear()
    yield
    _registry.clear()
