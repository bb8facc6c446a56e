"""Prometheus metrics integration for gcra-store.

This module provides Prometheus metrics collection for store operations.
Requires the `prometheus-client` package to be installed.

Installation:
    pip install 'gcra-store[prometheus]'

Usage:
    from gcrastore.contrib.prometheus import enable_metrics

    # Enable metrics collection (call once at startup)
    enable_metrics()

    # Metrics are automatically recorded by every store handle
    # They appear in the default Prometheus registry
"""

from gcrastore.contrib.prometheus.metrics import _init_metrics, is_enabled

# Check if prometheus-client is available
try:
    import prometheus_client  # noqa: F401

    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False


def enable_metrics() -> bool:
    """Enable Prometheus metrics collection.

    This function initializes the Prometheus metrics. It should be called
    once at application startup. If prometheus-client is not installed,
    this function returns False and metrics collection is disabled.

    Returns:
        True if metrics were enabled, False if prometheus-client not installed.

    Example:
        >>> from gcrastore.contrib.prometheus import enable_metrics
        >>> if enable_metrics():
        ...     print("Prometheus metrics enabled")
    """
    if not PROMETHEUS_AVAILABLE:
        return False
    _init_metrics()
    return True


__all__ = ["enable_metrics", "is_enabled", "PROMETHEUS_AVAILABLE"]
