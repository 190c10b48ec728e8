"""
OpenTelemetry tracing setup.

Until setup_tracing() runs, the global tracer provider is the no-op default
and job_span() costs next to nothing.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span, Tracer

from queuectl import __version__
from queuectl.config import Settings, get_settings

logger = logging.getLogger(__name__)

TRACER_NAME = "queuectl"


def setup_tracing(
    settings: Settings | None = None,
    enable_console_export: bool = False,
) -> Tracer:
    """
    Install a tracer provider that exports spans over OTLP/gRPC.

    Args:
        settings: Settings with the exporter endpoint and service name.
        enable_console_export: Also print spans to stdout.

    Returns:
        Tracer: The queuectl tracer.
    """
    settings = settings or get_settings()

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
    )

    try:
        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
    except Exception:
        logger.warning(
            "OTLP exporter unavailable, spans will not be exported",
            extra={"endpoint": settings.otel_exporter_otlp_endpoint},
        )

    if enable_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    logger.info("Tracing enabled", extra={"endpoint": settings.otel_exporter_otlp_endpoint})
    return get_tracer()


def instrument_fastapi(app: Any) -> None:
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace every statement run on an async engine (through its sync core)."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer() -> Tracer:
    return trace.get_tracer(TRACER_NAME, __version__)


@contextmanager
def job_span(name: str, job_id: str, **attributes: Any) -> Iterator[Span]:
    """
    Span around one step of processing a job.

    Args:
        name: Span name, one of the SPAN_* constants.
        job_id: Recorded as the queuectl.job_id attribute.
        **attributes: Extra attributes, prefixed with "queuectl."; None values
            are skipped.
    """
    with get_tracer().start_as_current_span(name) as span:
        span.set_attribute("queuectl.job_id", job_id)
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"queuectl.{key}", value)
        yield span
