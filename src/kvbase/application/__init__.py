"""Application layer for kvbase.

Exports:
    - open_backend: Open a backend by name
    - open_backend_from_config: Open the backend named in configuration
    - configure_observability: Logging, tracing and metrics from configuration
    - build_container: DI container with a lazily opened Backend
"""

from kvbase.application.factory import (
    BACKENDS,
    build_container,
    configure_observability,
    open_backend,
    open_backend_from_config,
)

__all__ = [
    "BACKENDS",
    "open_backend",
    "open_backend_from_config",
    "configure_observability",
    "build_container",
]
