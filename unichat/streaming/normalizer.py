"""
unichat - Stream Normalizer

Drives a dialect over a byte stream (or a whole JSON document) and
finalizes the result into a ToolChatCompletion.

Usage:
    completion = await normalize_stream(
        response.aiter_bytes(),
        "anthropic",
        on_partial=lambda text: print(text, end=""),
    )

    completion = normalize_document(response.json(), "openai_chat")

Both entry points return the same canonical shape.
"""

import time
from typing import Any, AsyncIterator, Dict, Optional, Union

from ..core.conversation import ConversationState
from ..core.models import DialectName, ToolChatCompletion
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics
from .dialects import Dialect, PartialCallback, StreamState, get_dialect
from .errors import DiagnosticHook
from .frames import read_frames


logger = get_logger(__name__)

DialectLike = Union[str, DialectName, Dialect]


def finalize(state: StreamState) -> ToolChatCompletion:
    """
    Close the call and build the completion.

    Open tool calls are force-finished. Text and already-resolved results
    come first in arrival order, followed by tool calls in ascending key
    order.
    """
    state.assembler.finish_all()
    blocks = list(state.blocks) + list(state.assembler.finished_blocks())
    return ToolChatCompletion.from_blocks(blocks)


def new_state(
    dialect: Dialect,
    on_partial: Optional[PartialCallback] = None,
    on_diagnostic: Optional[DiagnosticHook] = None,
    conversation: Optional[ConversationState] = None,
    provider: str = "",
    request_id: str = ""
) -> StreamState:
    return StreamState(
        dialect=dialect.name.value,
        provider=provider,
        request_id=request_id,
        on_partial=on_partial,
        on_diagnostic=on_diagnostic,
        conversation=conversation if conversation is not None else ConversationState(),
    )


async def normalize_stream(
    chunks: AsyncIterator[bytes],
    dialect: DialectLike,
    on_partial: Optional[PartialCallback] = None,
    on_diagnostic: Optional[DiagnosticHook] = None,
    conversation: Optional[ConversationState] = None,
    provider: str = "",
    request_id: str = ""
) -> ToolChatCompletion:
    """
    Consume a streamed response body.

    Frames are decoded and reduced strictly in arrival order. on_partial
    receives each new text fragment as it arrives.

    Raises:
        InvalidToolArgumentsError: A tool call's arguments are not a JSON object
        StreamInterruptedError: The vendor sent an error frame
    """
    dialect = get_dialect(dialect)
    state = new_state(dialect, on_partial, on_diagnostic, conversation, provider, request_id)
    metrics = get_metrics()
    dialect_name = dialect.name.value

    started = time.perf_counter()
    first_text_seen = False
    frames = 0

    async for frame in read_frames(chunks, dialect.frame_mode):
        frames += 1
        metrics.record_frame(dialect_name)

        event = dialect.decode(frame, state)
        if event is None:
            continue
        dialect.reduce(state, event)

        if not first_text_seen and state.text_fragments:
            first_text_seen = True
            metrics.record_time_to_first_text(dialect_name, time.perf_counter() - started)

    dialect.end_of_stream(state)
    completion = finalize(state)

    logger.debug(
        f"Normalized {dialect_name} stream: {frames} frames, "
        f"{len(completion.blocks)} blocks, stop_reason={completion.stop_reason.value}",
        frames=frames,
    )
    return completion


def normalize_document(
    document: Dict[str, Any],
    dialect: DialectLike,
    conversation: Optional[ConversationState] = None,
    on_diagnostic: Optional[DiagnosticHook] = None,
    provider: str = "",
    request_id: str = ""
) -> ToolChatCompletion:
    """
    Parse a complete (non-streaming) response document.

    Raises:
        InvalidToolArgumentsError: A tool call's arguments are not a JSON object
        StreamInterruptedError: The document is a vendor error envelope
    """
    dialect = get_dialect(dialect)
    state = new_state(dialect, None, on_diagnostic, conversation, provider, request_id)
    dialect.parse_one_shot(document, state)
    return finalize(state)
