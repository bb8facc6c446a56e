"""Configuration file loader for counter stores.

This module provides functionality to load store configuration from TOML files,
with support for environment variable expansion.
"""

import logging
import os
import re
import tomllib
from pathlib import Path
from typing import Any

from gcrastore.exceptions import ConfigValidationError, GCRAStoreError
from gcrastore.registry import _registry

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "GCRA_STORE_CONFIG"
CONFIG_FILENAME = "gcra-store.toml"


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration keys and values.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax (bash-like default values).
    Automatically converts numeric strings to appropriate types (int/float).

    Args:
        obj: Configuration object (dict, list, str, or other)

    Returns:
        Object with environment variables expanded and types converted

    Example:
        >>> _expand_env_vars("redis://${REDIS_HOST}:6379")
        "redis://localhost:6379"  # If REDIS_HOST=localhost
        >>> _expand_env_vars("${REDIS_DB:-2}")
        2  # Converted to int
    """
    if isinstance(obj, dict):
        expanded_dict = {}
        for key, value in obj.items():
            # Expand key if it's a string (enables dynamic section names in TOML)
            expanded_key = _expand_env_vars(key) if isinstance(key, str) else key
            expanded_dict[expanded_key] = _expand_env_vars(value)
        return expanded_dict

    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]

    if isinstance(obj, str):

        def replace_with_default(match):
            var_name = match.group(1)
            default_value = match.group(2)
            return os.environ.get(var_name, default_value)

        # Pattern: ${VAR_NAME:-default_value}
        result = re.sub(r"\$\{([^}:]+):-([^}]*)\}", replace_with_default, obj)

        # Then expand remaining ${VAR} and $VAR using standard expandvars
        result = os.path.expandvars(result)

        # Only values that changed get numeric conversion; literal strings stay strings
        if result == obj:
            return result

        try:
            if "." in result or "e" in result.lower():
                return float(result)
            return int(result)
        except ValueError:
            return result

    return obj


def _validate_config_structure(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration structure and extract the stores section.

    Args:
        config: Configuration dictionary loaded from TOML

    Returns:
        Dictionary of store configurations

    Raises:
        ConfigValidationError: If configuration structure is invalid
    """
    if not isinstance(config, dict):
        raise ConfigValidationError(
            "Configuration must be a dictionary",
            field="config",
            expected="dict",
            received=type(config).__name__,
        )

    stores = config.get("stores", {})

    if not isinstance(stores, dict):
        raise ConfigValidationError(
            "stores section must be a dictionary",
            field="stores",
            expected="dict",
            received=type(stores).__name__,
        )

    return stores


def _load_stores(stores: dict[str, Any], config_path: Path) -> None:
    """Load and configure all stores from configuration.

    Args:
        stores: Dictionary of store configurations
        config_path: Path to configuration file (for logging)

    Raises:
        ConfigValidationError: If store configuration is invalid
    """
    logger.info("Loading %d stores from config file %s", len(stores), config_path)

    for store_id, store_config in stores.items():
        if not isinstance(store_config, dict):
            raise ConfigValidationError(
                f"Store '{store_id}' configuration must be a dictionary",
                field=f"stores.{store_id}",
                expected="dict",
                received=type(store_config).__name__,
            )

        engine = store_config.get("engine")
        if not engine:
            raise ConfigValidationError(
                f"Store '{store_id}' missing required field 'engine'",
                field=f"stores.{store_id}.engine",
                expected="engine name",
                received="missing",
            )

        store_kwargs = {k: v for k, v in store_config.items() if k != "engine"}
        try:
            _registry.configure_store(store_id, engine, **store_kwargs)
        except ConfigValidationError as e:
            raise ConfigValidationError(
                f"Failed to configure store '{store_id}': {e}",
                field=f"stores.{store_id}",
                expected="valid store config",
                received=str(store_config),
            ) from e
        logger.info("Store '%s' configured from file (engine=%s)", store_id, engine)


def load_config(config_path: str | Path) -> None:
    """Load store configuration from a TOML file.

    Example TOML:
        [stores.throttle]
        engine = "redis"
        url = "${REDIS_URL:-redis://localhost:6379}"
        db = 2
        key_prefix = "throttle:"

        [stores.local]
        engine = "memory"

    Args:
        config_path: Path to TOML configuration file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If configuration is invalid

    Example:
        >>> load_config("gcra-store.toml")
        >>> store = get_store("throttle")
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigValidationError(
            f"Failed to parse TOML file: {e}",
            field="config_file",
            expected="valid TOML",
            received=str(config_path),
        ) from e

    config = _expand_env_vars(config)
    stores = _validate_config_structure(config)
    _load_stores(stores, config_path)

    logger.info("Configuration loaded successfully: %d stores", len(stores))


def _auto_load_config() -> None:
    """Automatically load configuration from standard locations.

    Searches for gcra-store.toml in the following order:
    1. Environment variable GCRA_STORE_CONFIG
    2. ./gcra-store.toml (current directory)
    3. ./config/gcra-store.toml (config subdirectory)

    If found, loads the configuration. Errors are logged, never raised.

    This function is called automatically when gcrastore is imported.
    """
    env_config = os.getenv(CONFIG_ENV_VAR)
    if env_config:
        config_path = Path(env_config)
        if config_path.exists():
            try:
                load_config(config_path)
                logger.debug("Configuration auto-loaded from %s: %s", CONFIG_ENV_VAR, config_path)
                return
            except (GCRAStoreError, OSError) as e:
                logger.warning(
                    "Failed to load config from %s (%s): %s",
                    CONFIG_ENV_VAR,
                    config_path,
                    e,
                )
        else:
            logger.warning("%s points to non-existent file: %s", CONFIG_ENV_VAR, config_path)

    search_paths = [
        Path.cwd() / CONFIG_FILENAME,
        Path.cwd() / "config" / CONFIG_FILENAME,
    ]

    for config_path in search_paths:
        if config_path.exists():
            try:
                load_config(config_path)
                logger.debug("Configuration auto-loaded from: %s", config_path)
            except (GCRAStoreError, OSError) as e:
                logger.warning(
                    "Failed to auto-load config from %s: %s",
                    config_path,
                    e,
                )
            # Don't try other paths if we found a file
            return

    logger.debug(
        "No %s found in standard locations. Using programmatic configuration.", CONFIG_FILENAME
    )
