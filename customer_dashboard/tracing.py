"""
OpenTelemetry instrumentation for the dashboard.

Traces incoming dashboard requests and the outgoing httpx calls to the
customer backend. Disabled unless ``ENABLE_TRACING`` is set.
"""

import os
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.trace import Span
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_OTLP_ENDPOINT = "localhost:4317"
TRACER_NAME = "customer_dashboard"


def configure_opentelemetry(
    service_name: str,
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    enable_tracing: bool = False,
) -> bool:
    """
    Configure the global tracer provider and httpx instrumentation.

    Args:
        service_name: Name reported on every span
        service_version: Version reported on every span
        otlp_endpoint: OTLP gRPC endpoint (falls back to
            ``OTEL_EXPORTER_OTLP_ENDPOINT``, then localhost)
        enable_tracing: Whether to set tracing up at all

    Returns:
        True if tracing was configured
    """
    if not enable_tracing:
        return False

    endpoint = otlp_endpoint or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT)

    resource = Resource.create(
        {
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("ENVIRONMENT", "production"),
        }
    )

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    )
    trace.set_tracer_provider(tracer_provider)

    HTTPXClientInstrumentor().instrument()

    logger.info(
        "OpenTelemetry tracing enabled",
        extra={"extra_fields": {"otlp_endpoint": endpoint}},
    )
    return True


def instrument_fastapi(app: FastAPI, excluded_urls: Optional[str] = None) -> None:
    """
    Instrument the FastAPI application.

    Args:
        app: FastAPI application instance
        excluded_urls: Comma-separated URL patterns not to trace
    """
    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=excluded_urls or "/health,/metrics",
        tracer_provider=trace.get_tracer_provider(),
    )


def get_tracer() -> trace.Tracer:
    """Tracer for dashboard spans (a no-op until tracing is configured)."""
    return trace.get_tracer(TRACER_NAME)


@contextmanager
def list_fetch_span(sequence: int, params: Dict[str, str]) -> Iterator[Span]:
    """
    Span around one customer list fetch.

    The fetch sequence number and query parameters are recorded up front;
    the caller adds the outcome with ``record_fetch_outcome``.
    """
    with get_tracer().start_as_current_span("customers.list_fetch") as span:
        span.set_attribute("dashboard.fetch.sequence", sequence)
        for key, value in params.items():
            span.set_attribute(f"dashboard.query.{key}", value)
        yield span


def record_fetch_outcome(span: Span, outcome: str) -> None:
    span.set_attribute("dashboard.fetch.outcome", outcome)
