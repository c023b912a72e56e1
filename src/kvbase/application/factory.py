"""Backend selection and wiring.

A caller picks one backend when it starts and uses it through the Backend
port for the life of the process:

    from kvbase.application import open_backend

    with open_backend("rocksdb", "var/kv") as db:
        db.create("users", "u1", {"name": "Ann"})

Or from environment configuration (KVBASE_STORAGE__BACKEND=rocksdb, ...):

    db = open_backend_from_config()
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from kvbase.adapters.outbound import RocksDBBackend, SQLiteBackend
from kvbase.infrastructure.config import Config, get_config
from kvbase.infrastructure.container import Container
from kvbase.infrastructure.logging import get_logger, setup_logging
from kvbase.infrastructure.metrics import MetricsRegistry, get_metrics, setup_metrics
from kvbase.infrastructure.tracing import setup_tracing
from kvbase.ports import Backend

BACKENDS: dict[str, Callable[..., Backend]] = {
    SQLiteBackend.name: SQLiteBackend,
    RocksDBBackend.name: RocksDBBackend,
}


def open_backend(
    name: str,
    source: str | Path = "",
    *,
    metrics: MetricsRegistry | None = None,
    open_timeout: float | None = None,
) -> Backend:
    """Open a backend by name.

    Args:
        name: "sqlite" or "rocksdb".
        source: File (sqlite) or directory (rocksdb). Empty uses the backend default.
        metrics: Metrics registry (default: global registry).
        open_timeout: Lock wait on open; only the sqlite backend uses it.

    Returns:
        The opened backend.

    Raises:
        ValueError: If the name is unknown.
        EngineError: If the engine cannot open the source.
    """
    try:
        factory = BACKENDS[name.lower()]
    except KeyError:
        known = ", ".join(sorted(BACKENDS))
        raise ValueError(f"Unknown backend {name!r} (expected one of: {known})") from None

    if factory is SQLiteBackend:
        return SQLiteBackend(source, open_timeout=open_timeout, metrics=metrics)
    return factory(source, metrics=metrics)


def open_backend_from_config(
    config: Config | None = None,
    metrics: MetricsRegistry | None = None,
) -> Backend:
    """Open the backend selected by configuration."""
    config = config or get_config()
    storage = config.storage
    return open_backend(
        storage.backend,
        storage.source_for(),
        metrics=metrics,
        open_timeout=storage.open_timeout_seconds,
    )


def configure_observability(config: Config | None = None) -> MetricsRegistry:
    """Set up logging, tracing and metrics from configuration.

    Returns:
        The global metrics registry.
    """
    config = config or get_config()
    obs = config.observability

    setup_logging(level=obs.log_level, log_format=obs.log_format)
    setup_tracing(service_name=obs.otel_service_name, otlp_endpoint=obs.otel_endpoint)
    metrics = setup_metrics(port=obs.metrics_port)

    get_logger(__name__).info(
        "kvbase_configured",
        backend=config.storage.backend,
        source=str(config.storage.source_for()),
    )
    return metrics


def build_container(
    config: Config | None = None,
    metrics: MetricsRegistry | None = None,
) -> Container:
    """Register Config, MetricsRegistry and a lazily opened Backend.

    The backend opens on the first ``resolve(Backend)``; later resolves
    return the same instance.
    """
    container = Container()
    container.register_singleton(Config, config or get_config())
    container.register_singleton(MetricsRegistry, metrics or get_metrics())
    container.register_factory(
        Backend,
        lambda c: open_backend_from_config(c.resolve(Config), c.resolve(MetricsRegistry)),
    )
    return container
