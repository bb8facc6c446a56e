"""Prometheus metrics definitions for gcra-store.

This module defines all Prometheus metrics used by gcra-store and provides
functions to record metric values. Metrics are lazily initialized to avoid
import errors when prometheus-client is not installed.

Metrics:
    gcrastore_operations_total: Counter of store operations by outcome
    gcrastore_operation_duration_seconds: Histogram of store operation latencies
    gcrastore_cas_path_total: Counter of compare-and-swap executions per path
    gcrastore_scripting_downgrades_total: Counter of scripting capability downgrades
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Try to import prometheus_client classes at module level
try:
    from prometheus_client import Counter as _Counter
    from prometheus_client import Histogram as _Histogram

    _PROMETHEUS_CLASSES: dict[str, Any] | None = {
        "Counter": _Counter,
        "Histogram": _Histogram,
    }
except ImportError:
    _PROMETHEUS_CLASSES = None


NAMESPACE = "gcrastore"

# Store operations are single round trips (typically < 100ms)
OPERATION_LATENCY_BUCKETS = (
    0.0005,
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    1.0,
)


class _MetricsState:
    """Encapsulates metrics state to avoid global variables."""

    def __init__(self) -> None:
        self.initialized: bool = False
        self.operations_total: Counter | None = None
        self.operation_duration: Histogram | None = None
        self.cas_path_total: Counter | None = None
        self.scripting_downgrades: Counter | None = None


_state = _MetricsState()


def is_enabled() -> bool:
    """Check if Prometheus metrics are enabled.

    Returns:
        True if metrics have been initialized and are being recorded.
    """
    return _state.initialized


def _init_metrics() -> None:
    """Initialize Prometheus metrics (lazy).

    This function is idempotent - calling it multiple times has no effect
    after the first successful initialization.
    """
    if _state.initialized:
        return

    if _PROMETHEUS_CLASSES is None:
        logger.debug("prometheus-client not installed, metrics disabled")
        return

    counter_cls = _PROMETHEUS_CLASSES["Counter"]
    histogram_cls = _PROMETHEUS_CLASSES["Histogram"]

    _state.operations_total = counter_cls(
        f"{NAMESPACE}_operations_total",
        "Total number of store operations",
        ["store_id", "operation", "outcome"],
    )

    _state.operation_duration = histogram_cls(
        f"{NAMESPACE}_operation_duration_seconds",
        "Store operation latency",
        ["store_id", "operation"],
        buckets=OPERATION_LATENCY_BUCKETS,
    )

    _state.cas_path_total = counter_cls(
        f"{NAMESPACE}_cas_path_total",
        "Compare-and-swap executions per implementation path",
        ["store_id", "path"],
    )

    _state.scripting_downgrades = counter_cls(
        f"{NAMESPACE}_scripting_downgrades_total",
        "Number of times a backend was found not to support scripting",
        ["store_id"],
    )

    _state.initialized = True
    logger.info("Prometheus metrics initialized for gcra-store")


def record_operation(
    store_id: str, operation: str, outcome: str, duration_seconds: float
) -> None:
    """Record a completed store operation.

    Args:
        store_id: The store handle identifier
        operation: "get_with_time", "set_if_not_exists" or "compare_and_swap"
        outcome: "ok", "created", "declined", "swapped" or "error"
        duration_seconds: Operation duration in seconds
    """
    if not _state.initialized:
        return
    if _state.operations_total is not None:
        _state.operations_total.labels(
            store_id=store_id, operation=operation, outcome=outcome
        ).inc()
    if _state.operation_duration is not None:
        _state.operation_duration.labels(store_id=store_id, operation=operation).observe(
            duration_seconds
        )


def record_cas_path(store_id: str, path: str) -> None:
    """Record which compare-and-swap path ran.

    Args:
        store_id: The store handle identifier
        path: "script" or "watch"
    """
    if not _state.initialized:
        return
    if _state.cas_path_total is not None:
        _state.cas_path_total.labels(store_id=store_id, path=path).inc()


def record_scripting_downgrade(store_id: str) -> None:
    """Record that a store stopped using the scripted path.

    Args:
        store_id: The store handle identifier
    """
    if not _state.initialized:
        return
    if _state.scripting_downgrades is not None:
        _state.scripting_downgrades.labels(store_id=store_id).inc()
