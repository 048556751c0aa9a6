"""
OpenTelemetry Distributed Tracing

Configures the process-wide tracer provider and Django auto-instrumentation.
Services create their own spans through ``get_tracer``; when tracing is
disabled those calls fall through to OpenTelemetry's no-op tracer.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.instrumentation.django import DjangoInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)

_initialized = False


def setup_tracing(
    service_name: str = "liggeey-marketplace",
    enable: bool = True,
    console_export: bool = False,
) -> None:
    """
    Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        enable: Enable/disable tracing
        console_export: Print finished spans to stdout (local debugging)

    Example:
        setup_tracing(service_name="liggeey-marketplace", console_export=True)
    """
    global _initialized

    if _initialized:
        logger.warning("Tracing already initialized. Skipping.")
        return

    if not enable:
        logger.info("Tracing disabled via configuration")
        return

    try:
        resource = Resource(attributes={SERVICE_NAME: service_name})
        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)

        if console_export:
            tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            logger.info("Console span exporter configured")

        # Auto-instrument Django (traces all HTTP requests)
        DjangoInstrumentor().instrument()
        logger.info("Django auto-instrumentation enabled")

        _initialized = True
        logger.info(f"OpenTelemetry tracing initialized for service: {service_name}")

    except Exception as e:
        logger.error(f"Failed to initialize tracing: {e}")


def get_tracer(name: Optional[str] = None) -> trace.Tracer:
    """
    Get tracer instance for creating custom spans.

    Args:
        name: Tracer name (usually __name__ of module)

    Returns:
        Tracer instance

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("order.create"):
            ...
    """
    return trace.get_tracer(name or __name__)


def add_span_attributes(span: trace.Span, **attributes) -> None:
    """
    Add custom attributes to a span, stringifying values.

    Example:
        with tracer.start_as_current_span("order.create") as span:
            add_span_attributes(span, listing_id=listing_id, delivery_method="meetup")
    """
    for key, value in attributes.items():
        span.set_attribute(key, str(value))
