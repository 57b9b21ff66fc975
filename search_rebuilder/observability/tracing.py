"""Centralized OpenTelemetry tracing configuration and helpers.

This module provides:
- Unified tracer setup for the API and CLI
- Span category constants for filtering in Grafana/Tempo
- A decorator for consistent pipeline stage spans
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from functools import wraps
from typing import Any, Callable, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.aiohttp_client import AioHttpClientInstrumentor
from opentelemetry.instrumentation.asyncio import AsyncioInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class SpanCategory(str, Enum):
    """Span categories for filtering traces.

    Use TraceQL like: {span.rebuild.category = "stage"}
    """

    STAGE = "stage"
    STORAGE = "storage"
    SEARCH = "search"
    HTTP = "http"


ATTR_CATEGORY = "rebuild.category"
ATTR_STAGE = "rebuild.stage"


def setup_tracing(
    service_name: str,
    service_version: str = "0.1.0",
) -> bool:
    """Initialize OpenTelemetry tracing if OTLP endpoint is configured.

    Returns True if tracing was enabled, False otherwise.
    """
    otlp_endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        logger.info(
            f"OpenTelemetry tracing disabled for {service_name} (no OTEL_EXPORTER_OTLP_ENDPOINT)"
        )
        return False

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": service_version,
        }
    )
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=otlp_endpoint,
        headers=os.environ.get("OTEL_EXPORTER_OTLP_HEADERS"),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    # Source fetches go through aiohttp, search calls through httpx
    HTTPXClientInstrumentor().instrument()
    AioHttpClientInstrumentor().instrument()
    AsyncioInstrumentor().instrument()

    logger.info(f"OpenTelemetry tracing initialized for {service_name}")
    return True


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for creating spans."""
    return trace.get_tracer(name)


def trace_stage(stage: str):
    """Decorator to trace a pipeline stage with standard attributes."""

    def decorator(fn: F) -> F:
        tracer = get_tracer(fn.__module__)

        @wraps(fn)
        async def wrapper(*args, **kwargs):
            with tracer.start_as_current_span(
                f"rebuild.{stage}",
                attributes={
                    ATTR_CATEGORY: SpanCategory.STAGE.value,
                    ATTR_STAGE: stage,
                },
            ):
                return await fn(*args, **kwargs)

        return wrapper  # type: ignore

    return decorator


def add_span_attributes(attrs: dict[str, Any]) -> None:
    """Add attributes to the current span if recording."""
    span = trace.get_current_span()
    if span and span.is_recording():
        for key, value in attrs.items():
            try:
                span.set_attribute(key, value)
            except Exception:
                pass  # Ignore invalid attribute values
