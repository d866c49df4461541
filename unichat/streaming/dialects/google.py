"""
unichat - Google Dialect

Candidate-part streams from the Gemini generateContent API (`alt=sse`).

Each frame holds zero or more candidates, each with zero or more parts.
A part is text, a functionCall (arguments arrive whole, never
fragmented) or a functionResponse. The vendor issues no call ids, so one
is synthesized per call and recorded in the conversation state.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ...core.models import DialectName, ToolResultBlock
from ...observability.logging import get_logger
from ..frames import Frame, FrameMode
from .base import Dialect, StreamState, error_message


logger = get_logger(__name__)


def generate_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:8]}"


# ============================================================
# Event variants
# ============================================================

@dataclass
class TextPart:
    text: str


@dataclass
class FunctionCallPart:
    name: str
    args: Any = field(default_factory=dict)


@dataclass
class FunctionResponsePart:
    name: str
    response: Any = None


@dataclass
class CandidateParts:
    """All parts carried by one frame, in order."""
    parts: List[Any] = field(default_factory=list)
    finish_reason: Optional[str] = None


def _decode_part(part: Dict[str, Any]) -> List[Any]:
    """A single part may carry text alongside a call or a response."""
    if part.get("thought"):
        return []

    decoded: List[Any] = []

    text = part.get("text")
    if isinstance(text, str) and text:
        decoded.append(TextPart(text))

    function_call = part.get("functionCall") or part.get("function_call")
    if function_call:
        decoded.append(
            FunctionCallPart(function_call.get("name") or "", function_call.get("args") or {})
        )

    function_response = part.get("functionResponse") or part.get("function_response")
    if function_response:
        decoded.append(FunctionResponsePart(
            function_response.get("name") or "",
            function_response.get("response")
        ))

    return decoded


class GoogleDialect(Dialect):
    """Gemini streaming and one-shot parsing."""

    name = DialectName.GOOGLE
    frame_mode = FrameMode.DATA

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self.id_factory = id_factory or generate_call_id
        super().__init__()

    def reducers(self):
        return {
            CandidateParts: self._reduce_candidates,
            TextPart: self._reduce_text,
            FunctionCallPart: self._reduce_function_call,
            FunctionResponsePart: self._reduce_function_response,
        }

    def decode_payload(
        self,
        payload: Dict[str, Any],
        frame: Frame,
        state: StreamState
    ) -> Optional[Any]:
        return self._decode_document(payload)

    def _decode_document(self, payload: Dict[str, Any]) -> Optional[Any]:
        if payload.get("error"):
            return error_message(payload)

        parts: List[Any] = []
        finish_reason = None
        for candidate in payload.get("candidates") or []:
            content = candidate.get("content") or {}
            for part in content.get("parts") or []:
                parts.extend(_decode_part(part))
            finish_reason = candidate.get("finishReason") or finish_reason

        if not parts and not finish_reason:
            return None
        return CandidateParts(parts, finish_reason)

    # ============================================================
    # Reducers
    # ============================================================

    def _reduce_candidates(self, state: StreamState, event: CandidateParts):
        for part in event.parts:
            self.reduce(state, part)
        if event.finish_reason:
            logger.debug(f"Gemini finishReason={event.finish_reason}")

    def _reduce_text(self, state: StreamState, event: TextPart):
        state.emit_text(event.text)

    def _reduce_function_call(self, state: StreamState, event: FunctionCallPart):
        call_id = self.id_factory()
        key = state.assembler.call_count()

        state.assembler.start(key, call_id, event.name)
        state.assembler.append_args(key, json.dumps(event.args, ensure_ascii=False))
        state.assembler.finish(key)

        state.conversation.record_call(call_id, event.name)

    def _reduce_function_response(self, state: StreamState, event: FunctionResponsePart):
        state.add_block(ToolResultBlock(
            tool_use_id=state.conversation.resolve_tool_use_id(event.name),
            content=json.dumps(event.response, ensure_ascii=False)
        ))

    # ============================================================
    # One-shot
    # ============================================================

    def parse_one_shot(self, document: Dict[str, Any], state: StreamState):
        """Parse a generateContent response; same shape as one stream frame."""
        event = self._decode_document(document)
        if event is not None:
            self.reduce(state, event)
