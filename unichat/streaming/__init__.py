"""
unichat - Streaming Module

Response normalization engine:
- Frame reader for SSE byte streams
- Text accumulation with cumulative-text dedup
- Tool call assembly from argument fragments
- One dialect per vendor wire format
- Finalization into a ToolChatCompletion
"""

from .frames import (
    DONE_SENTINEL,
    Frame,
    FrameMode,
    FrameReader,
    read_frames,
)
from .text import (
    TextDeliveryLedger,
    append_text,
    flatten,
)
from .tool_calls import (
    PendingToolCall,
    ToolCallAssembler,
    parse_tool_arguments,
)
from .errors import (
    DiagnosticReason,
    FrameDiagnostic,
    report_diagnostic,
)
from .dialects import (
    AnthropicDialect,
    Dialect,
    GoogleDialect,
    OpenAIChatDialect,
    OpenAIResponsesDialect,
    StreamState,
    get_dialect,
)
from .normalizer import (
    finalize,
    normalize_document,
    normalize_stream,
)

__all__ = [
    # Frames
    "DONE_SENTINEL",
    "Frame",
    "FrameMode",
    "FrameReader",
    "read_frames",
    # Text
    "TextDeliveryLedger",
    "append_text",
    "flatten",
    # Tool calls
    "PendingToolCall",
    "ToolCallAssembler",
    "parse_tool_arguments",
    # Diagnostics
    "DiagnosticReason",
    "FrameDiagnostic",
    "report_diagnostic",
    # Dialects
    "AnthropicDialect",
    "Dialect",
    "GoogleDialect",
    "OpenAIChatDialect",
    "OpenAIResponsesDialect",
    "StreamState",
    "get_dialect",
    # Normalizer
    "finalize",
    "normalize_document",
    "normalize_stream",
]
