"""
unichat - Observability Module

- Prometheus metrics (completions, frames, fallbacks)
- OpenTelemetry spans around vendor calls
- Structured JSON logging with context injection

Usage:
    from unichat.observability import get_logger, get_metrics, get_tracer

    logger = get_logger(__name__)
    metrics = get_metrics()
    tracer = get_tracer()
"""

from .metrics import (
    MetricsCollector,
    get_metrics,
    setup_metrics,
    render_metrics,
)
from .tracing import (
    TracingManager,
    TraceContext,
    get_tracer,
    setup_tracing,
    trace_provider_call,
)
from .logging import (
    JSONFormatter,
    StructuredLogger,
    LogContext,
    get_logger,
    setup_logging,
    summarize_payload,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "setup_metrics",
    "render_metrics",
    # Tracing
    "TracingManager",
    "TraceContext",
    "get_tracer",
    "setup_tracing",
    "trace_provider_call",
    # Logging
    "JSONFormatter",
    "StructuredLogger",
    "LogContext",
    "get_logger",
    "setup_logging",
    "summarize_payload",
]
