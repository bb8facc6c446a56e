"""Global registry for managing named counter stores.

A store is configured once under an ID and its handle is created lazily on
first use. Every caller asking for the same ID gets the same handle, so the
scripting capability flag of a Redis store is shared process-wide.
"""

import logging
from typing import Any

from gcrastore.core import GCRAStore
from gcrastore.engines.memory import MemoryGCRAStore
from gcrastore.engines.redis import RedisGCRAStore
from gcrastore.exceptions import StoreAlreadyConfiguredError, StoreNotFoundError
from gcrastore.validation import validate_store_config

logger = logging.getLogger(__name__)

# Engine name to implementation class mapping
ENGINE_CLASSES: dict[str, type[GCRAStore]] = {
    "memory": MemoryGCRAStore,
    "redis": RedisGCRAStore,
}


class StoreRegistry:
    """Registry for managing named stores.

    The registry maintains, per store ID, the validated config dataclass and
    the store handle (None until first requested).

    Example:
        >>> registry = StoreRegistry()
        >>> registry.configure_store("throttle", engine="redis", url="redis://prod", db=2)
        >>> store = registry.get_store("throttle")
        >>> await store.initialize()
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        # store_id -> (config_dataclass, store or None)
        self._stores: dict[str, tuple[object, GCRAStore | None]] = {}

    def configure_store(self, store_id: str, engine: str, **kwargs: Any) -> None:
        """Configure a store with a specific engine.

        Reconfiguring an ID replaces its config as long as no handle has been
        created for it yet.

        Args:
            store_id: Unique identifier for this store (e.g., "throttle")
            engine: Engine name ("redis", "memory")
            **kwargs: Engine-specific configuration parameters

        Raises:
            ConfigValidationError: If engine unknown or parameters invalid
            StoreAlreadyConfiguredError: If the store already has a live handle
        """
        existing = self._stores.get(store_id)
        if existing is not None and existing[1] is not None:
            raise StoreAlreadyConfiguredError(store_id)

        config = validate_store_config(engine, kwargs)
        self._stores[store_id] = (config, None)

        logger.info("Store '%s' configured (engine=%s)", store_id, engine)

    def get_store(self, store_id: str) -> GCRAStore:
        """Return the handle for a store, creating it on first use.

        Args:
            store_id: ID of a configured store

        Returns:
            The store handle (same object on every call)

        Raises:
            StoreNotFoundError: If store_id was not configured
        """
        if store_id not in self._stores:
            raise StoreNotFoundError(store_id)

        config, store = self._stores[store_id]
        if store is None:
            engine = config.engine  # type: ignore[attr-defined]
            store = ENGINE_CLASSES[engine].from_config(config, store_id=store_id)  # type: ignore[attr-defined]
            self._stores[store_id] = (config, store)
            logger.debug("Created %s store handle '%s'", engine, store_id)

        return store

    async def initialize_store(self, store_id: str) -> GCRAStore:
        """Create (if needed) and initialize a store.

        Returns:
            The initialized store handle
        """
        store = self.get_store(store_id)
        await store.initialize()
        return store

    def has_store(self, store_id: str) -> bool:
        """Check if a store is configured."""
        return store_id in self._stores

    def list_stores(self) -> dict[str, dict[str, Any]]:
        """Return configured stores and their settings.

        Passwords are masked.

        Returns:
            store_id -> dict of config values plus "active" (handle created)
        """
        result: dict[str, dict[str, Any]] = {}
        for store_id, (config, store) in self._stores.items():
            values = dict(vars(config))
            if values.get("password"):
                values["password"] = "***"
            values["active"] = store is not None
            if store is not None:
                values["supports_scripting"] = store.supports_scripting
            result[store_id] = values
        return result

    def iter_stores(self) -> list[GCRAStore]:
        """Return every store handle created so far."""
        return [store for _, store in self._stores.values() if store is not None]

    async def remove_store(self, store_id: str) -> None:
        """Disconnect and forget a store.

        Raises:
            StoreNotFoundError: If store_id was not configured
        """
        if store_id not in self._stores:
            raise StoreNotFoundError(store_id)

        _, store = self._stores.pop(store_id)
        if store is not None:
            await store.disconnect()
        logger.info("Store '%s' removed", store_id)

    async def disconnect_all(self) -> None:
        """Disconnect every created store handle (configs are kept)."""
        for store_id, (config, store) in list(self._stores.items()):
            if store is None:
                continue
            await store.disconnect()
            self._stores[store_id] = (config, None)

    def clear(self) -> None:
        """Forget every store without disconnecting (for testing)."""
        self._stores.clear()


# Global registry instance
_registry = StoreRegistry()


def configure_store(store_id: str, engine: str, **kwargs: Any) -> None:
    """Configure a store in the global registry.

    Example:
        >>> configure_store("throttle", engine="redis", url="redis://localhost:6379")
        >>> configure_store("local", engine="memory")
    """
    _registry.configure_store(store_id, engine, **kwargs)


def get_store(store_id: str) -> GCRAStore:
    """Return the store handle configured under store_id."""
    return _registry.get_store(store_id)


async def initialize_store(store_id: str) -> GCRAStore:
    """Create and initialize the store configured under store_id."""
    return await _registry.initialize_store(store_id)


def list_stores() -> dict[str, dict[str, Any]]:
    """Return configured stores and their settings."""
    return _registry.list_stores()


async def remove_store(store_id: str) -> None:
    """Disconnect and forget a store."""
    await _registry.remove_store(store_id)


async def disconnect_all() -> None:
    """Disconnect every store handle in the global registry."""
    await _registry.disconnect_all()
