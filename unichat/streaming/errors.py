"""
unichat - Streaming Diagnostics

Frame-level problems that do not abort a stream.

A malformed frame (bad JSON, unexpected shape) is dropped and reported
through a diagnostic hook; the stream keeps going. Fatal conditions are
raised as exceptions from unichat.core.errors instead.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger(__name__)


class DiagnosticReason(str, Enum):
    """Why a frame was dropped."""
    INVALID_JSON = "invalid_json"
    UNEXPECTED_SHAPE = "unexpected_shape"


@dataclass
class FrameDiagnostic:
    """A dropped frame, as handed to the diagnostic hook."""
    dialect: str
    reason: DiagnosticReason
    raw: str
    event: Optional[str] = None
    detail: str = ""

    @property
    def preview(self) -> str:
        """First 200 characters of the raw payload."""
        return self.raw[:200]


DiagnosticHook = Callable[[FrameDiagnostic], None]


def log_diagnostic(diagnostic: FrameDiagnostic) -> None:
    """Default hook: warn and count."""
    logger.warning(
        f"Dropped {diagnostic.reason.value} frame from {diagnostic.dialect}: "
        f"{diagnostic.detail}",
        event_type=diagnostic.event or "",
        raw_preview=diagnostic.preview,
    )


def report_diagnostic(
    diagnostic: FrameDiagnostic,
    hook: Optional[DiagnosticHook] = None
) -> None:
    """
    Route a diagnostic to the caller's hook, or to the default logger.

    The malformed-frame metric is recorded either way. A hook that raises
    is logged and ignored.
    """
    get_metrics().record_malformed_frame(diagnostic.dialect, diagnostic.reason.value)

    if hook is None:
        log_diagnostic(diagnostic)
        return

    try:
        hook(diagnostic)
    except Exception:
        logger.exception("Diagnostic hook raised; continuing stream")
