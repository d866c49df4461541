"""
unichat - OpenTelemetry Tracing

Spans around every vendor call.

Features:
- One CLIENT span per adapter call (provider, model, api version,
  endpoint family, stop reason)
- Console exporter for debugging, OTLP-compatible provider setup
- Trace ids available for log correlation

Usage:
    from unichat.observability.tracing import setup_tracing, trace_provider_call

    setup_tracing(service_name="my-app")

    with trace_provider_call("anthropic", "claude-sonnet-4", "chat") as span:
        span.set_attribute("unichat.stop_reason", "end")

Without setup_tracing() the global OpenTelemetry tracer is used, which is
a no-op unless the host application configured one.
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor, SpanExporter
from opentelemetry.trace import Span, SpanKind, Status, StatusCode


TRACER_NAME = "unichat"


@dataclass
class TraceContext:
    """Trace/span ids of the active span."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: Span) -> "TraceContext":
        ctx = span.get_span_context()
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """Generate W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


class TracingManager:
    """Owns the TracerProvider created by setup_tracing()."""

    def __init__(
        self,
        service_name: str = "unichat",
        service_version: str = "0.1.0",
        console_export: bool = False,
        exporter: Optional[SpanExporter] = None,
        set_global: bool = True,
    ):
        """
        Args:
            service_name: Name of the service
            service_version: Version of the service
            console_export: Whether to export spans to console (for debugging)
            exporter: Extra span exporter (tests pass an in-memory one)
            set_global: Install the provider as the global tracer provider
        """
        resource = Resource.create({
            SERVICE_NAME: service_name,
            SERVICE_VERSION: service_version,
            "deployment.environment": os.getenv("MODE", "local"),
        })

        self.provider = TracerProvider(resource=resource)

        if console_export:
            self.provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
        if exporter is not None:
            self.provider.add_span_processor(SimpleSpanProcessor(exporter))

        if set_global:
            trace.set_tracer_provider(self.provider)

        self.tracer = self.provider.get_tracer(TRACER_NAME, service_version)

    def shutdown(self):
        self.provider.shutdown()


_tracing_instance: Optional[TracingManager] = None


def setup_tracing(
    service_name: str = "unichat",
    service_version: str = "0.1.0",
    console_export: bool = False,
    exporter: Optional[SpanExporter] = None,
    set_global: bool = True,
) -> TracingManager:
    """
    Setup tracing. OTEL_CONSOLE_EXPORT=true forces console export.

    Returns:
        TracingManager instance
    """
    global _tracing_instance

    if os.getenv("OTEL_CONSOLE_EXPORT", "").lower() == "true":
        console_export = True

    _tracing_instance = TracingManager(
        service_name=service_name,
        service_version=service_version,
        console_export=console_export,
        exporter=exporter,
        set_global=set_global,
    )
    return _tracing_instance


def reset_tracing():
    """Forget the configured manager (for testing)."""
    global _tracing_instance
    _tracing_instance = None


def get_tracer() -> trace.Tracer:
    """Tracer from setup_tracing(), or the global one."""
    if _tracing_instance is not None:
        return _tracing_instance.tracer
    return trace.get_tracer(TRACER_NAME)


def current_trace_context() -> Optional[TraceContext]:
    """Trace context of the active span, for log correlation."""
    span = trace.get_current_span()
    if span.get_span_context().is_valid:
        return TraceContext.from_span(span)
    return None


def set_span_attributes(span: Span, attributes: Dict[str, Any]):
    """Set attributes, skipping None values."""
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


@contextmanager
def trace_provider_call(
    provider: str,
    model: str,
    operation: str = "chat"
) -> Iterator[Span]:
    """
    Context manager for tracing provider API calls.

    Exceptions are recorded on the span and re-raised.

    Usage:
        with trace_provider_call("openai", "gpt-4o", "chat") as span:
            completion = await adapter.chat_once(body)
            span.set_attribute("unichat.stop_reason", completion.stop_reason.value)
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(
        f"{provider}.{operation}",
        kind=SpanKind.CLIENT,
        attributes={
            "ai.provider": provider,
            "ai.model": model,
            "ai.operation": operation,
        },
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise
