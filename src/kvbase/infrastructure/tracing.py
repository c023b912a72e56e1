"""OpenTelemetry spans for backend operations.

Every backend call runs inside one ``kvbase.<operation>`` span carrying
``kvbase.backend`` and, when known, ``kvbase.bucket``. A failed call marks
its span ERROR and records the exception class as ``kvbase.error``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.trace import Status, StatusCode

TRACER_NAME = "kvbase"

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "kvbase",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
    exporter: SpanExporter | None = None,
) -> trace.Tracer:
    """
    Route kvbase spans to the configured exporters.

    The tracer is taken from the new provider directly, so calling this
    again replaces where kvbase spans go even though OpenTelemetry only
    accepts the first global provider.

    Args:
        service_name: ``service.name`` resource attribute
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Whether to also print spans to stdout
        exporter: Extra exporter fed synchronously, e.g. an in-memory one

    Returns:
        The kvbase tracer
    """
    global _tracer

    from kvbase import __version__

    provider = TracerProvider(
        resource=Resource.create({"service.name": service_name, "service.version": __version__})
    )

    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    if exporter is not None:
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _tracer = provider.get_tracer(TRACER_NAME, __version__)
    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the kvbase tracer (a no-op one until tracing is set up)."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


@contextmanager
def operation_span(
    backend: str,
    operation: str,
    bucket: str | None = None,
) -> Generator[trace.Span, None, None]:
    """
    Span one backend operation.

    Args:
        backend: Backend name ("sqlite", "rocksdb")
        operation: Operation name ("create", "read", ...)
        bucket: Bucket the operation targets, if any

    Yields:
        The active span
    """
    with get_tracer().start_as_current_span(
        f"kvbase.{operation}",
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span.set_attribute("kvbase.backend", backend)
        if bucket is not None:
            span.set_attribute("kvbase.bucket", bucket)
        try:
            yield span
        except Exception as exc:
            span.set_attribute("kvbase.error", type(exc).__name__)
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
