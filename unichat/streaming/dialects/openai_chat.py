"""
unichat - OpenAI Chat Completions Dialect

Used by OpenAI and by every server that speaks the same wire format
(Kimi, Z.ai, OpenRouter, local OpenAI-compatible servers).

Stream shape (one JSON object per `data:` line):
    {"choices": [{"delta": {"content": "Hel"}}]}
    {"choices": [{"delta": {"tool_calls": [
        {"index": 0, "id": "call_1", "function": {"name": "f", "arguments": "{\\"a"}}
    ]}}]}
    [DONE]

There is no per-call completion signal: open calls are finished when the
stream ends.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ...core.models import DialectName, ToolUseBlock
from ...observability.logging import get_logger
from ..errors import DiagnosticReason
from ..frames import Frame, FrameMode
from ..tool_calls import parse_tool_arguments
from .base import Dialect, StreamState, error_message


logger = get_logger(__name__)


@dataclass
class ToolCallDelta:
    """One entry of `delta.tool_calls`."""
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


@dataclass
class ChatDelta:
    """The first choice's delta from one chunk."""
    content: str = ""
    tool_calls: List[ToolCallDelta] = field(default_factory=list)
    finish_reason: Optional[str] = None


class OpenAIChatDialect(Dialect):
    """Chat Completions streaming and one-shot parsing."""

    name = DialectName.OPENAI_CHAT
    frame_mode = FrameMode.DATA

    def reducers(self):
        return {ChatDelta: self._reduce_delta}

    def decode_payload(
        self,
        payload: Dict[str, Any],
        frame: Frame,
        state: StreamState
    ) -> Optional[Any]:
        if payload.get("error"):
            return error_message(payload)

        choices = payload.get("choices")
        if not choices:
            # Usage trailers and keep-alives
            return None

        choice = choices[0]
        if not isinstance(choice, dict):
            state.diagnose(DiagnosticReason.UNEXPECTED_SHAPE, frame, "choice is not an object")
            return None

        delta = choice.get("delta") or {}
        tool_calls = []
        for raw in delta.get("tool_calls") or []:
            function = raw.get("function") or {}
            tool_calls.append(ToolCallDelta(
                index=raw.get("index", 0),
                id=raw.get("id"),
                name=function.get("name"),
                arguments=function.get("arguments") or ""
            ))

        return ChatDelta(
            content=delta.get("content") or "",
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason")
        )

    def _reduce_delta(self, state: StreamState, event: ChatDelta):
        state.emit_text(event.content)

        assembler = state.assembler
        for tc in event.tool_calls:
            if assembler.is_open(tc.index):
                assembler.update_identity(tc.index, tc.id, tc.name)
            else:
                assembler.start(tc.index, tc.id or "", tc.name or "")
            assembler.append_args(tc.index, tc.arguments)

        if event.finish_reason:
            logger.debug(f"Chat stream finish_reason={event.finish_reason}")

    def end_of_stream(self, state: StreamState):
        open_keys = state.assembler.open_keys()
        if open_keys:
            logger.debug(f"Closing {len(open_keys)} tool call(s) at end of stream")
        state.assembler.finish_all()

    def parse_one_shot(self, document: Dict[str, Any], state: StreamState):
        """
        Parse a `chat.completion` document.

        Both message content and tool_calls are kept; some servers send
        a preamble text alongside the calls.
        """
        if document.get("error"):
            self.reduce(state, error_message(document))

        choices = document.get("choices") or []
        if not choices:
            return

        message = choices[0].get("message") or {}
        content = message.get("content")
        if isinstance(content, str):
            state.emit_text(content)

        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function") or {}
            call_id = call.get("id") or ""
            arguments = function.get("arguments")
            if isinstance(arguments, dict):
                parsed = arguments
            else:
                parsed = parse_tool_arguments(call_id, arguments or "")
            state.assembler.add_finished(
                index,
                ToolUseBlock(id=call_id, name=function.get("name") or "", input=parsed)
            )
