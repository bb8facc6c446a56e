"""Testing utilities for gcra-store.

This module provides utilities to help test code that persists rate limiter
state in a store. All utilities are backend-agnostic.

Example:
    >>> from gcrastore import get_store
    >>> from gcrastore.testing import reset_store, reset_all_stores
    >>>
    >>> # Reset a single store
    >>> await reset_store(get_store("throttle"))
    >>>
    >>> # Reset every store created through the registry (useful in fixtures)
    >>> await reset_all_stores()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gcrastore.registry import _registry

if TYPE_CHECKING:
    from gcrastore.core import GCRAStore

logger = logging.getLogger(__name__)


async def reset_store(store: GCRAStore) -> None:
    """Delete every entry a store holds.

    Memory stores drop all entries. Redis stores delete the keys under their
    prefix and refuse to run with an empty prefix.

    Args:
        store: The store to reset.

    Example:
        >>> store = MemoryGCRAStore()
        >>> await store.set_if_not_exists("k", 5)
        >>> await reset_store(store)
        >>> value, _ = await store.get_with_time("k")
        >>> assert value == -1
    """
    if not hasattr(store, "reset"):
        logger.warning(
            "Store '%s' (type: %s) doesn't support reset(). State may persist.",
            store.store_id,
            store.__class__.__name__,
        )
        return

    await store.reset()
    logger.debug("Store '%s' reset successfully", store.store_id)


async def reset_all_stores() -> None:
    """Reset every store handle created through the global registry.

    Example:
        >>> import pytest
        >>> from gcrastore.testing import reset_all_stores
        >>>
        >>> @pytest.fixture(autouse=True)
        >>> async def clean_stores():
        ...     await reset_all_stores()
        ...     yield
    """
    stores = _registry.iter_stores()
    for store in stores:
        await reset_store(store)

    logger.debug("Reset %d stores", len(stores))
