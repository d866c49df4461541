"""
unichat - Prometheus Metrics

Metrics collection with the Prometheus client library.

Metrics exposed:
- unichat_completions_total: Counter of finished completions by provider, dialect, stop reason
- unichat_completion_duration_seconds: Histogram of call latency (connect to final block)
- unichat_time_to_first_text_seconds: Histogram of time until the first text fragment
- unichat_frames_total: Counter of frames consumed per dialect
- unichat_malformed_frames_total: Counter of frames dropped as malformed
- unichat_tool_argument_errors_total: Counter of tool calls with unparseable arguments
- unichat_version_fallbacks_total: Counter of API version retries
- unichat_upstream_errors_total: Counter of vendor/transport failures by error code

Usage:
    from unichat.observability.metrics import get_metrics, setup_metrics, render_metrics

    setup_metrics()

    metrics = get_metrics()
    metrics.record_completion(provider="openai", dialect="openai_chat",
                              stop_reason="end", streaming=True, duration_seconds=1.2)

    body, content_type = render_metrics()
"""

from typing import Optional, Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


class MetricsCollector:
    """
    Central metrics collector using Prometheus client.

    One collector per registry; the module keeps a default instance.
    """

    _instance: Optional["MetricsCollector"] = None

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry

        self.completions_total = Counter(
            "unichat_completions_total",
            "Total number of completions produced",
            labelnames=["provider", "dialect", "stop_reason", "streaming"],
            registry=registry,
        )

        # Chat calls range from sub-second to minutes for long generations
        self.completion_duration = Histogram(
            "unichat_completion_duration_seconds",
            "Completion duration in seconds",
            labelnames=["provider", "dialect", "streaming"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 50.0, 100.0, float("inf")),
            registry=registry,
        )

        self.time_to_first_text = Histogram(
            "unichat_time_to_first_text_seconds",
            "Time to first text fragment in streaming responses",
            labelnames=["dialect"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, float("inf")),
            registry=registry,
        )

        self.frames_total = Counter(
            "unichat_frames_total",
            "Total frames consumed",
            labelnames=["dialect"],
            registry=registry,
        )

        self.malformed_frames_total = Counter(
            "unichat_malformed_frames_total",
            "Frames dropped because they could not be decoded",
            labelnames=["dialect", "reason"],
            registry=registry,
        )

        self.tool_argument_errors_total = Counter(
            "unichat_tool_argument_errors_total",
            "Tool calls whose reassembled arguments were not a JSON object",
            labelnames=["dialect"],
            registry=registry,
        )

        self.version_fallbacks_total = Counter(
            "unichat_version_fallbacks_total",
            "API version retries",
            labelnames=["provider", "from_version", "to_version", "outcome"],
            registry=registry,
        )

        self.upstream_errors_total = Counter(
            "unichat_upstream_errors_total",
            "Vendor and transport failures",
            labelnames=["provider", "code"],
            registry=registry,
        )

    @classmethod
    def get_instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def record_completion(
        self,
        provider: str,
        dialect: str,
        stop_reason: str,
        streaming: bool,
        duration_seconds: float,
    ):
        """Record a finished completion."""
        streaming_label = "true" if streaming else "false"

        self.completions_total.labels(
            provider=provider,
            dialect=dialect,
            stop_reason=stop_reason,
            streaming=streaming_label,
        ).inc()

        self.completion_duration.labels(
            provider=provider,
            dialect=dialect,
            streaming=streaming_label,
        ).observe(duration_seconds)

    def record_time_to_first_text(self, dialect: str, seconds: float):
        """Record time to first text fragment for streaming calls."""
        self.time_to_first_text.labels(dialect=dialect).observe(seconds)

    def record_frame(self, dialect: str):
        self.frames_total.labels(dialect=dialect).inc()

    def record_malformed_frame(self, dialect: str, reason: str):
        self.malformed_frames_total.labels(dialect=dialect, reason=reason).inc()

    def record_tool_argument_error(self, dialect: str):
        self.tool_argument_errors_total.labels(dialect=dialect or "unknown").inc()

    def record_version_fallback(
        self,
        provider: str,
        from_version: str,
        to_version: str,
        outcome: str,
    ):
        """Record an API version retry and whether it succeeded."""
        self.version_fallbacks_total.labels(
            provider=provider,
            from_version=from_version,
            to_version=to_version,
            outcome=outcome,
        ).inc()

    def record_upstream_error(self, provider: str, code: str):
        self.upstream_errors_total.labels(provider=provider, code=code).inc()


# Module-level functions for convenience
_metrics_instance: Optional[MetricsCollector] = None


def setup_metrics(registry: CollectorRegistry = REGISTRY) -> MetricsCollector:
    """
    Setup metrics collection.

    Safe to call multiple times - returns the existing instance when the
    registry is the same. Tests pass a fresh CollectorRegistry.
    """
    global _metrics_instance

    if _metrics_instance is not None and _metrics_instance.registry is registry:
        return _metrics_instance

    _metrics_instance = MetricsCollector(registry)
    MetricsCollector._instance = _metrics_instance
    return _metrics_instance


def get_metrics() -> MetricsCollector:
    """Get the metrics collector instance, creating the default one if needed."""
    global _metrics_instance
    if _metrics_instance is None:
        _metrics_instance = MetricsCollector.get_instance()
    return _metrics_instance


def render_metrics(registry: Optional[CollectorRegistry] = None) -> Tuple[bytes, str]:
    """
    Render the exposition text for a scrape endpoint.

    Returns:
        (body, content_type)
    """
    if registry is None:
        registry = get_metrics().registry
    return generate_latest(registry), CONTENT_TYPE_LATEST
