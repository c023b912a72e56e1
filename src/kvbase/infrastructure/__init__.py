"""Infrastructure layer - cross-cutting concerns."""

from kvbase.infrastructure.config import Config, get_config
from kvbase.infrastructure.logging import setup_logging, get_logger
from kvbase.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from kvbase.infrastructure.tracing import setup_tracing, get_tracer, operation_span

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "operation_span",
]
