"""
unichat - Anthropic Dialect

Content-block streams from the Messages API.

Each block is opened by content_block_start, fed by content_block_delta
(text_delta or input_json_delta) and closed by content_block_stop. Tool
calls are keyed by block index. Results that the vendor already resolved
(tool_result, mcp_tool_result) skip the assembler.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ...core.models import (
    DialectName,
    McpToolResultBlock,
    McpToolUseBlock,
    ToolResultBlock,
    ToolUseBlock,
)
from ...observability.logging import get_logger
from ..frames import Frame, FrameMode
from ..tool_calls import parse_tool_arguments
from .base import Dialect, StreamState, error_message


logger = get_logger(__name__)


# ============================================================
# Event variants
# ============================================================

@dataclass
class BlockStart:
    index: int
    block: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TextFragment:
    index: int
    text: str


@dataclass
class ArgumentsFragment:
    index: int
    partial_json: str


@dataclass
class BlockStop:
    index: int


@dataclass
class MessageEvent:
    """message_start / message_delta / message_stop / ping."""
    type: str
    stop_reason: Optional[str] = None


def result_content_to_text(content: Any) -> str:
    """Flatten a tool_result content field to a string."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            c.get("text", "") for c in content
            if isinstance(c, dict) and c.get("type") == "text"
        ]
        if len(texts) == len(content):
            return "".join(texts)
    return json.dumps(content, ensure_ascii=False)


def _input_of(block: Dict[str, Any]) -> Dict[str, Any]:
    value = block.get("input")
    if isinstance(value, str):
        return parse_tool_arguments(block.get("id") or "", value)
    return value or {}


class AnthropicDialect(Dialect):
    """Messages API streaming and one-shot parsing."""

    name = DialectName.ANTHROPIC
    frame_mode = FrameMode.DATA

    def reducers(self):
        return {
            BlockStart: self._reduce_block_start,
            TextFragment: self._reduce_text,
            ArgumentsFragment: self._reduce_arguments,
            BlockStop: self._reduce_block_stop,
            MessageEvent: self._reduce_message_event,
        }

    def decode_payload(
        self,
        payload: Dict[str, Any],
        frame: Frame,
        state: StreamState
    ) -> Optional[Any]:
        event_type = payload.get("type") or frame.event or ""
        index = payload.get("index", 0)

        if event_type == "content_block_start":
            return BlockStart(index, payload.get("content_block") or {})

        if event_type == "content_block_delta":
            delta = payload.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return TextFragment(index, delta.get("text") or "")
            if delta_type == "input_json_delta":
                return ArgumentsFragment(index, delta.get("partial_json") or "")
            logger.debug(f"Skipping {delta_type} delta on block {index}")
            return None

        if event_type == "content_block_stop":
            return BlockStop(index)

        if event_type in ("message_start", "message_delta", "message_stop", "ping"):
            delta = payload.get("delta") or {}
            return MessageEvent(event_type, delta.get("stop_reason"))

        if event_type == "error":
            return error_message(payload)

        logger.debug(f"Ignoring Anthropic event {event_type!r}")
        return None

    # ============================================================
    # Reducers
    # ============================================================

    def _reduce_block_start(self, state: StreamState, event: BlockStart):
        block = event.block
        block_type = block.get("type")

        if block_type == "text":
            state.emit_text(block.get("text") or "")

        elif block_type == "tool_use":
            state.assembler.start(event.index, block.get("id") or "", block.get("name") or "")

        elif block_type == "mcp_tool_use":
            state.assembler.start(
                event.index,
                block.get("id") or "",
                block.get("name") or "",
                provenance=block.get("server_name") or ""
            )

        elif block_type == "tool_result":
            state.add_block(ToolResultBlock(
                tool_use_id=block.get("tool_use_id") or "",
                content=result_content_to_text(block.get("content"))
            ))

        elif block_type == "mcp_tool_result":
            state.add_block(McpToolResultBlock(
                tool_use_id=block.get("tool_use_id") or "",
                content=block.get("content") or [],
                is_error=bool(block.get("is_error", False))
            ))

        else:
            logger.debug(f"Skipping {block_type} block at index {event.index}")

    def _reduce_text(self, state: StreamState, event: TextFragment):
        state.emit_text(event.text)

    def _reduce_arguments(self, state: StreamState, event: ArgumentsFragment):
        state.assembler.append_args(event.index, event.partial_json)

    def _reduce_block_stop(self, state: StreamState, event: BlockStop):
        if state.assembler.is_open(event.index):
            state.assembler.finish(event.index)

    def _reduce_message_event(self, state: StreamState, event: MessageEvent):
        if event.type == "message_stop":
            state.completed = True
        if event.stop_reason:
            logger.debug(f"Anthropic stop_reason={event.stop_reason}")

    # ============================================================
    # One-shot
    # ============================================================

    def parse_one_shot(self, document: Dict[str, Any], state: StreamState):
        """Parse a `message` object's content array."""
        if document.get("type") == "error" or document.get("error"):
            self.reduce(state, error_message(document))

        for index, block in enumerate(document.get("content") or []):
            block_type = block.get("type")

            if block_type == "text":
                state.emit_text(block.get("text") or "")

            elif block_type == "tool_use":
                state.assembler.add_finished(index, ToolUseBlock(
                    id=block.get("id") or "",
                    name=block.get("name") or "",
                    input=_input_of(block)
                ))

            elif block_type == "mcp_tool_use":
                state.assembler.add_finished(index, McpToolUseBlock(
                    id=block.get("id") or "",
                    name=block.get("name") or "",
                    server_name=block.get("server_name") or "",
                    input=_input_of(block)
                ))

            elif block_type in ("tool_result", "mcp_tool_result"):
                self._reduce_block_start(state, BlockStart(index, block))
