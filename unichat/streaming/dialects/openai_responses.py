"""
unichat - OpenAI Responses Dialect

Event-mode SSE (`event:` + `data:` pairs) from the Responses API.

Text arrives as deltas and is then repeated in full by "done" events;
the delivery ledger makes sure only text that was never delivered is
emitted from the cumulative events. Function calls are keyed by their
output_index.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ...core.models import DialectName, ToolUseBlock
from ...observability.logging import get_logger
from ..frames import Frame, FrameMode
from ..tool_calls import parse_tool_arguments
from .base import Dialect, StreamState, error_message


logger = get_logger(__name__)


# ============================================================
# Event variants
# ============================================================

@dataclass
class OutputItemAdded:
    output_index: int
    item: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OutputItemDone:
    output_index: int
    item: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentPartAdded:
    item_id: str
    content_index: int
    text: str = ""


@dataclass
class TextDelta:
    item_id: str
    content_index: int
    text: str = ""


@dataclass
class TextDone:
    """Cumulative text for one content part."""
    item_id: str
    content_index: int
    text: str = ""


@dataclass
class ArgumentsDelta:
    output_index: Optional[int]
    item_id: str
    delta: str = ""


@dataclass
class ArgumentsDone:
    output_index: Optional[int]
    item_id: str
    arguments: str = ""


@dataclass
class ResponseCompleted:
    response_id: str = ""


@dataclass
class ReasoningEvent:
    event: str


def _text_of(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        text = value.get("text")
        return text if isinstance(text, str) else ""
    return ""


def _call_id(item: Dict[str, Any]) -> str:
    return item.get("call_id") or item.get("id") or ""


class OpenAIResponsesDialect(Dialect):
    """Responses API streaming and one-shot parsing."""

    name = DialectName.OPENAI_RESPONSES
    frame_mode = FrameMode.EVENT

    def reducers(self):
        return {
            OutputItemAdded: self._reduce_item_added,
            OutputItemDone: self._reduce_item_done,
            ContentPartAdded: self._reduce_part_added,
            TextDelta: self._reduce_text_delta,
            TextDone: self._reduce_text_done,
            ArgumentsDelta: self._reduce_arguments_delta,
            ArgumentsDone: self._reduce_arguments_done,
            ResponseCompleted: self._reduce_completed,
            ReasoningEvent: self._reduce_reasoning,
        }

    # ============================================================
    # Decoding
    # ============================================================

    def decode_payload(
        self,
        payload: Dict[str, Any],
        frame: Frame,
        state: StreamState
    ) -> Optional[Any]:
        event = frame.event or payload.get("type") or ""

        item_id = payload.get("item_id") or ""
        content_index = payload.get("content_index", 0)
        output_index = payload.get("output_index")

        if event == "response.output_item.added":
            return OutputItemAdded(output_index or 0, payload.get("item") or {})

        if event == "response.output_item.done":
            return OutputItemDone(output_index or 0, payload.get("item") or {})

        if event == "response.content_part.added":
            part = payload.get("part") or {}
            text = part.get("text") if part.get("type") == "output_text" else ""
            return ContentPartAdded(item_id, content_index, text or "")

        if event in ("response.output_text.delta", "response.content_part.delta"):
            return TextDelta(item_id, content_index, _text_of(payload.get("delta")))

        if event == "response.output_text.done":
            return TextDone(item_id, content_index, _text_of(payload.get("text")))

        if event == "response.content_part.done":
            part = payload.get("part") or {}
            text = part.get("text") if part.get("type") == "output_text" else ""
            return TextDone(item_id, content_index, text or "")

        if event == "response.function_call_arguments.delta":
            return ArgumentsDelta(output_index, item_id, payload.get("delta") or "")

        if event == "response.function_call_arguments.done":
            return ArgumentsDone(output_index, item_id, payload.get("arguments") or "")

        if event == "response.completed":
            response = payload.get("response") or {}
            return ResponseCompleted(response.get("id") or "")

        if event.startswith("response.reasoning"):
            return ReasoningEvent(event)

        if event == "error":
            return error_message({"error": payload.get("error") or payload})

        if event == "response.failed":
            response = payload.get("response") or {}
            return error_message({"error": response.get("error") or "response failed"})

        logger.debug(f"Ignoring Responses event {event!r}")
        return None

    # ============================================================
    # Text
    # ============================================================

    def _deliver(self, state: StreamState, key, text: str):
        if text:
            state.ledger.record(key, text)
            state.emit_text(text)

    def _deliver_cumulative(self, state: StreamState, key, text: str):
        state.emit_text(state.ledger.missing_suffix(key, text))

    def _reduce_part_added(self, state: StreamState, event: ContentPartAdded):
        self._deliver(state, (event.item_id, event.content_index), event.text)

    def _reduce_text_delta(self, state: StreamState, event: TextDelta):
        self._deliver(state, (event.item_id, event.content_index), event.text)

    def _reduce_text_done(self, state: StreamState, event: TextDone):
        self._deliver_cumulative(state, (event.item_id, event.content_index), event.text)

    # ============================================================
    # Items
    # ============================================================

    def _message_texts(self, item: Dict[str, Any]):
        for index, content in enumerate(item.get("content") or []):
            if content.get("type") == "output_text" and content.get("text"):
                yield (item.get("id") or "", index), content["text"]

    def _reduce_item_added(self, state: StreamState, event: OutputItemAdded):
        item = event.item
        item_type = item.get("type")

        if item_type == "message":
            for key, text in self._message_texts(item):
                self._deliver(state, key, text)
            return

        if item_type == "function_call":
            key = event.output_index
            if item.get("id"):
                state.item_keys[item["id"]] = key
            state.assembler.start(key, _call_id(item), item.get("name") or "")

            # Some servers send the whole call in one item
            arguments = item.get("arguments") or ""
            if arguments:
                state.assembler.append_args(key, arguments)
                state.assembler.finish(key)
            return

        logger.debug(f"Ignoring Responses output item of type {item_type!r}")

    def _reduce_item_done(self, state: StreamState, event: OutputItemDone):
        item = event.item
        item_type = item.get("type")

        if item_type == "message":
            for key, text in self._message_texts(item):
                self._deliver_cumulative(state, key, text)
            return

        if item_type == "function_call":
            key = event.output_index
            assembler = state.assembler
            if assembler.is_finished(key):
                return
            if not assembler.is_open(key):
                assembler.start(key, _call_id(item), item.get("name") or "")
            else:
                assembler.update_identity(key, _call_id(item), item.get("name"))
            self._close_call(state, key, item.get("arguments") or "")

    def _resolve_key(
        self,
        state: StreamState,
        output_index: Optional[int],
        item_id: str
    ) -> Optional[int]:
        if output_index is not None:
            return output_index
        return state.item_keys.get(item_id)

    def _close_call(self, state: StreamState, key: int, arguments: str):
        pending = state.assembler.pending(key)
        if pending is None:
            return
        # Complete arguments only stand in when no fragments arrived
        if not pending.args_buffer and arguments:
            state.assembler.append_args(key, arguments)
        state.assembler.finish(key)

    def _reduce_arguments_delta(self, state: StreamState, event: ArgumentsDelta):
        key = self._resolve_key(state, event.output_index, event.item_id)
        if key is None:
            logger.debug(f"Arguments delta for unknown item {event.item_id!r}")
            return
        state.assembler.append_args(key, event.delta)

    def _reduce_arguments_done(self, state: StreamState, event: ArgumentsDone):
        key = self._resolve_key(state, event.output_index, event.item_id)
        if key is None or not state.assembler.is_open(key):
            return
        self._close_call(state, key, event.arguments)

    # ============================================================
    # Advisory
    # ============================================================

    def _reduce_completed(self, state: StreamState, event: ResponseCompleted):
        state.completed = True
        logger.debug(f"Responses stream completed (response={event.response_id})")

    def _reduce_reasoning(self, state: StreamState, event: ReasoningEvent):
        logger.debug(f"Skipping reasoning event {event.event}")

    # ============================================================
    # One-shot
    # ============================================================

    def parse_one_shot(self, document: Dict[str, Any], state: StreamState):
        """Parse a `response` object's output array."""
        if document.get("error"):
            self.reduce(state, error_message(document))

        for index, item in enumerate(document.get("output") or []):
            item_type = item.get("type")

            if item_type == "message":
                for _, text in self._message_texts(item):
                    state.emit_text(text)

            elif item_type == "function_call":
                call_id = _call_id(item)
                state.assembler.add_finished(
                    index,
                    ToolUseBlock(
                        id=call_id,
                        name=item.get("name") or "",
                        input=parse_tool_arguments(call_id, item.get("arguments") or "")
                    )
                )


