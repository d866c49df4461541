"""
unichat - Pytest Configuration

Configures:
- A fresh Prometheus registry per test
- Byte-stream builders for dialect tests
- Logging for tests
"""

import logging
from typing import AsyncIterator, Callable, List

import pytest
from prometheus_client import CollectorRegistry

from unichat.observability.metrics import MetricsCollector, setup_metrics


# ============================================================
# Metrics
# ============================================================

@pytest.fixture(autouse=True)
def metrics() -> MetricsCollector:
    """Every test records into its own registry."""
    return setup_metrics(CollectorRegistry())


# ============================================================
# SSE builders
# ============================================================

@pytest.fixture
def byte_stream() -> Callable[..., AsyncIterator[bytes]]:
    """
    Build an async byte iterator from chunks.

    Usage:
        chunks = byte_stream(b"data: ", b"{}\\n\\n")
    """
    def make(*chunks: bytes) -> AsyncIterator[bytes]:
        async def gen():
            for chunk in chunks:
                yield chunk
        return gen()
    return make


@pytest.fixture
def partials() -> List[str]:
    """Collects on_partial fragments (pass `partials.append`)."""
    return []


# ============================================================
# Logging Configuration
# ============================================================

@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
