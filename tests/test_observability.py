"""
unichat - Observability Tests

Verifies:
- Prometheus counters and exposition output
- JSON log formatting with context injection and redaction
- Payload summaries never carry secrets or transcripts
- Provider call spans, including error status
"""

import json
import logging

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode
from prometheus_client import CollectorRegistry

from unichat.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredLogger,
    summarize_payload,
)
from unichat.observability.metrics import MetricsCollector, render_metrics
from unichat.observability.tracing import (
    TraceContext,
    reset_tracing,
    setup_tracing,
    trace_provider_call,
)


# ============================================================
# Metrics
# ============================================================

class TestMetrics:
    """Prometheus collectors."""

    def test_record_completion(self):
        """Completions are counted by provider, dialect and stop reason."""
        collector = MetricsCollector(CollectorRegistry())

        collector.record_completion("anthropic", "anthropic", "tool_use", True, 1.5)

        assert collector.registry.get_sample_value(
            "unichat_completions_total",
            {"provider": "anthropic", "dialect": "anthropic",
             "stop_reason": "tool_use", "streaming": "true"},
        ) == 1.0
        assert collector.registry.get_sample_value(
            "unichat_completion_duration_seconds_count",
            {"provider": "anthropic", "dialect": "anthropic", "streaming": "true"},
        ) == 1.0

    def test_tool_argument_error_without_dialect(self):
        """An empty dialect label is recorded as unknown."""
        collector = MetricsCollector(CollectorRegistry())

        collector.record_tool_argument_error("")

        assert collector.registry.get_sample_value(
            "unichat_tool_argument_errors_total", {"dialect": "unknown"}
        ) == 1.0

    def test_render_metrics(self):
        """The exposition text includes the recorded series."""
        collector = MetricsCollector(CollectorRegistry())
        collector.record_malformed_frame("openai_chat", "invalid_json")

        body, content_type = render_metrics(collector.registry)

        assert b"unichat_malformed_frames_total" in body
        assert b'reason="invalid_json"' in body
        assert content_type.startswith("text/plain")


# ============================================================
# Logging
# ============================================================

def make_record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="unichat.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Structured log output."""

    def test_basic_fields(self):
        """Level, logger and message are always present."""
        output = json.loads(JSONFormatter().format(make_record("hello")))

        assert output["level"] == "INFO"
        assert output["logger"] == "unichat.test"
        assert output["message"] == "hello"
        assert "timestamp" in output

    def test_context_injected(self):
        """Fields from the active LogContext are added."""
        token = LogContext.set_current(
            LogContext(request_id="req_1", provider="google", api_version="v1beta")
        )
        try:
            output = json.loads(JSONFormatter().format(make_record("call")))
        finally:
            LogContext.reset(token)

        assert output["request_id"] == "req_1"
        assert output["provider"] == "google"
        assert output["api_version"] == "v1beta"
        assert "model" not in output

    def test_sensitive_extra_redacted(self):
        """Extra fields that look like secrets are redacted."""
        record = make_record("auth", api_key="sk-secret", frames=3)

        output = json.loads(JSONFormatter().format(record))

        assert output["api_key"] == "[REDACTED]"
        assert output["frames"] == 3

    def test_redaction_can_be_disabled(self):
        """redact_sensitive=False keeps values."""
        record = make_record("auth", api_key="sk-secret")

        output = json.loads(JSONFormatter(redact_sensitive=False).format(record))

        assert output["api_key"] == "sk-secret"


class TestStructuredLogger:
    """Keyword arguments become extra fields."""

    def test_kwargs_become_extra(self, caplog):
        """Structured fields reach the log record."""
        logger = StructuredLogger(logging.getLogger("unichat.test.structured"))

        with caplog.at_level(logging.INFO, logger="unichat.test.structured"):
            logger.info("frames read", frames=7)

        record = caplog.records[-1]
        assert record.getMessage() == "frames read"
        assert record.frames == 7


class TestSummarizePayload:
    """Request body summaries."""

    def test_messages_and_secrets(self):
        """Transcripts are counted and secrets hidden."""
        summary = summarize_payload({
            "model": "gpt-4o",
            "messages": [{"role": "user", "content": "private"}] * 3,
            "tools": [{"type": "function"}],
            "api_key": "sk-secret",
        })

        assert "'model': 'gpt-4o'" in summary
        assert "[3 items]" in summary
        assert "[1 tools]" in summary
        assert "sk-secret" not in summary
        assert "private" not in summary

    def test_long_strings_truncated(self):
        """Long string values are shortened."""
        summary = summarize_payload({"input": "x" * 500})

        assert "(500 chars)" in summary


# ============================================================
# Tracing
# ============================================================

@pytest.fixture
def exporter():
    exporter = InMemorySpanExporter()
    setup_tracing(service_name="unichat-test", exporter=exporter, set_global=False)
    yield exporter
    reset_tracing()


class TestTracing:
    """Spans around provider calls."""

    def test_span_attributes(self, exporter):
        """One client span per call with provider and model attributes."""
        with trace_provider_call("anthropic", "claude-sonnet-4", "chat") as span:
            span.set_attribute("unichat.stop_reason", "end")

        spans = exporter.get_finished_spans()
        assert len(spans) == 1
        assert spans[0].name == "anthropic.chat"
        assert spans[0].kind == SpanKind.CLIENT
        assert spans[0].attributes["ai.model"] == "claude-sonnet-4"
        assert spans[0].attributes["unichat.stop_reason"] == "end"

    def test_error_status(self, exporter):
        """Exceptions mark the span as failed and propagate."""
        with pytest.raises(RuntimeError):
            with trace_provider_call("google", "gemini-1.5-pro"):
                raise RuntimeError("boom")

        span = exporter.get_finished_spans()[0]
        assert span.status.status_code == StatusCode.ERROR
        assert span.events[0].name == "exception"

    def test_traceparent(self, exporter):
        """The W3C traceparent is built from the span ids."""
        with trace_provider_call("openai", "gpt-4o") as span:
            context = TraceContext.from_span(span)
            span_context = span.get_span_context()

        assert context.to_traceparent() == (
            f"00-{span_context.trace_id:032x}-{span_context.span_id:016x}"
            f"-{span_context.trace_flags:02x}"
        )
        assert span_context.trace_flags.sampled
        assert len(context.trace_id) == 32
