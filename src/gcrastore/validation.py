"""
Centralized validation for store configurations.

This module provides validation functions that use dataclass schemas to validate
configuration parameters for store engines.
"""

from dataclasses import MISSING, fields, is_dataclass
from typing import Any, Literal, get_args, get_origin, get_type_hints

from gcrastore.exceptions import ConfigValidationError
from gcrastore.schemas import ENGINE_SCHEMAS


def _get_type_name(type_hint: Any) -> str:
    """Get a human-readable name for a type hint."""
    origin = get_origin(type_hint)

    if origin is None:
        # Simple type like str, int, float
        if hasattr(type_hint, "__name__"):
            return type_hint.__name__
        return str(type_hint)

    if origin is Literal:
        return f"Literal{get_args(type_hint)}"

    # Union types (e.g., str | None)
    args = get_args(type_hint)
    type_names = [_get_type_name(arg) for arg in args if arg is not type(None)]
    if type(None) in args:
        return " | ".join(type_names) + " | None"
    return " | ".join(type_names)


def _matches(value: Any, expected_type: type) -> bool:
    """Check a value against a plain type, accepting ints where floats are expected."""
    # bool is a subclass of int but never a valid number here
    if isinstance(value, bool) and expected_type is not bool:
        return False
    if expected_type is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected_type)


def _validate_type(value: Any, expected_type: Any, field_name: str) -> None:
    """Validate that a value matches the expected type."""
    origin = get_origin(expected_type)
    args = get_args(expected_type)

    # Handle None values
    if value is None:
        if type(None) in args:
            return
        raise ConfigValidationError(
            f"Field '{field_name}' cannot be None",
            field=field_name,
            expected=_get_type_name(expected_type),
            received="None",
        )

    # Special handling for Literal types (check BEFORE Union handling)
    if origin is Literal:
        if value not in args:
            raise ConfigValidationError(
                f"Field '{field_name}' must be one of {args}",
                field=field_name,
                expected=f"Literal{args}",
                received=repr(value),
            )
        return

    # Union types (e.g., str | None)
    candidates = [arg for arg in args if arg is not type(None)] if args else [expected_type]

    for candidate in candidates:
        if get_origin(candidate) is Literal:
            if value in get_args(candidate):
                return
            continue
        if isinstance(candidate, type) and _matches(value, candidate):
            return

    raise ConfigValidationError(
        f"Field '{field_name}' has incorrect type",
        field=field_name,
        expected=_get_type_name(expected_type),
        received=type(value).__name__,
    )


def validate_store_config(engine: str, params: dict[str, Any]) -> Any:
    """Validate store configuration parameters and return config dataclass instance.

    Args:
        engine: Engine name (e.g., "redis", "memory")
        params: Configuration parameters as a dictionary (without "engine")

    Returns:
        Config dataclass instance for the engine

    Raises:
        ConfigValidationError: If engine is unknown or parameters are invalid
    """
    if engine not in ENGINE_SCHEMAS:
        available = ", ".join(ENGINE_SCHEMAS.keys())
        raise ConfigValidationError(
            f"Unknown engine '{engine}'. Available engines: {available}",
            field="engine",
            expected=available,
            received=engine,
        )

    config_class = ENGINE_SCHEMAS[engine]

    if not is_dataclass(config_class):
        raise ConfigValidationError(
            f"Engine config class for '{engine}' is not a dataclass",
            field="engine",
            expected="dataclass",
            received=str(type(config_class)),
        )

    # Dataclass annotations are strings under postponed evaluation
    hints = get_type_hints(config_class)
    config_fields = {f.name: f for f in fields(config_class)}

    # Check for required fields (fields without defaults)
    for field_name, field_obj in config_fields.items():
        has_default = field_obj.default is not MISSING or field_obj.default_factory is not MISSING

        if not has_default and field_name not in params:
            raise ConfigValidationError(
                f"Missing required field '{field_name}' for engine '{engine}'",
                field=field_name,
                expected="required",
                received="missing",
            )

    for field_name, value in params.items():
        if field_name not in config_fields:
            raise ConfigValidationError(
                f"Unknown field '{field_name}' for engine '{engine}'",
                field=field_name,
                expected=", ".join(config_fields),
                received=field_name,
            )
        _validate_type(value, hints[field_name], field_name)

    try:
        return config_class(**params)
    except (TypeError, ValueError) as e:
        raise ConfigValidationError(
            f"Failed to create config for engine '{engine}': {e}",
            field="config",
            expected="valid parameters",
            received=str(params),
        ) from e

