"""Prometheus metrics for kvbase backends."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)

from kvbase.infrastructure.tracing import operation_span


class MetricsRegistry:
    """Registry of all kvbase metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        self.operations_total = Counter(
            "kvbase_operations_total",
            "Total number of backend operations",
            ["backend", "operation", "status"],  # status: success, error
            registry=self._registry,
        )

        self.operation_latency_seconds = Histogram(
            "kvbase_operation_latency_seconds",
            "Backend operation latency in seconds",
            ["backend", "operation"],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
            registry=self._registry,
        )

        self.value_bytes_written_total = Counter(
            "kvbase_value_bytes_written_total",
            "Total serialized value bytes written",
            ["backend"],
            registry=self._registry,
        )

        self.open_connections = Gauge(
            "kvbase_open_connections",
            "Number of open backend connections",
            ["backend"],
            registry=self._registry,
        )

        self.info = Info(
            "kvbase",
            "kvbase library information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int | None = None, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up the global metrics registry.

    Args:
        port: Port for the Prometheus HTTP server (None skips the server)
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    # Collectors register once per registry; reuse the global one if it exists
    if _metrics is None or registry is not None:
        _metrics = MetricsRegistry(registry)

    from kvbase import __version__
    _metrics.info.info({
        "version": __version__,
    })

    if port is not None:
        start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics


@contextmanager
def instrument(
    backend: str,
    operation: str,
    bucket: str | None = None,
    metrics: MetricsRegistry | None = None,
) -> Generator[None, None, None]:
    """
    Trace and time one backend operation.

    The operation is counted as an error when the block raises; the
    exception propagates unchanged.

    Args:
        backend: Backend name ("sqlite", "rocksdb")
        operation: Operation name ("create", "read", ...)
        bucket: Bucket the operation targets, if any
        metrics: Registry to record into (default: global registry)
    """
    registry = metrics or get_metrics()
    start = time.perf_counter()
    status = "error"
    try:
        with operation_span(backend, operation, bucket):
            yield
        status = "success"
    finally:
        registry.operation_latency_seconds.labels(backend, operation).observe(
            time.perf_counter() - start
        )
        registry.operations_total.labels(backend, operation, status).inc()
