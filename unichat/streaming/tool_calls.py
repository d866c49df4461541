"""
unichat - Tool Call Assembly

Reconstructs tool calls whose arguments arrive as fragments.

Tool calls come in pieces:
1. A start signal with the call id and function name
2. Any number of argument fragments (partial JSON strings)
3. A finish signal, or the end of the stream

Fragments are concatenated in arrival order and parsed exactly once,
at finish time. Every call is keyed by a stream-local integer (the
vendor's index, block index or output index).
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from ..core.errors import InvalidToolArgumentsError
from ..core.models import McpToolUseBlock, ToolUseBlock
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger(__name__)

AssembledBlock = Union[ToolUseBlock, McpToolUseBlock]


@dataclass
class PendingToolCall:
    """A tool call whose arguments are still arriving."""
    key: int
    id: str
    name: str
    args_buffer: str = ""
    provenance: Optional[str] = None


def parse_tool_arguments(call_id: str, raw: str) -> Dict[str, Any]:
    """
    Parse a complete argument string.

    Empty input means no arguments. Anything else must be a JSON object;
    otherwise InvalidToolArgumentsError names the call.
    """
    if not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidToolArgumentsError(call_id, raw) from e

    if not isinstance(parsed, dict):
        raise InvalidToolArgumentsError(call_id, raw)

    return parsed


class ToolCallAssembler:
    """
    Per-call arena of in-flight tool calls.

    Slots are created by start(), grown by append_args() and removed by
    finish(). Finished blocks are kept by key so they can be returned in
    ascending key order regardless of completion order.
    """

    def __init__(self, dialect: str = ""):
        self.dialect = dialect
        self._pending: Dict[int, PendingToolCall] = {}
        self._finished: Dict[int, AssembledBlock] = {}

    def start(
        self,
        key: int,
        id: str,
        name: str,
        provenance: Optional[str] = None
    ):
        """Open a slot. Vendors are trusted not to restart a key."""
        self._pending[key] = PendingToolCall(
            key=key,
            id=id or "",
            name=name or "",
            provenance=provenance
        )

    def append_args(self, key: int, fragment: str):
        """Concatenate an argument fragment. Unknown keys are ignored."""
        call = self._pending.get(key)
        if call is None:
            logger.debug(f"Ignoring argument fragment for unknown tool call key {key}")
            return
        if fragment:
            call.args_buffer += fragment

    def update_identity(
        self,
        key: int,
        id: Optional[str] = None,
        name: Optional[str] = None
    ):
        """Fill in id/name that arrived after the start signal."""
        call = self._pending.get(key)
        if call is None:
            return
        if id:
            call.id = id
        if name:
            call.name = name

    def is_open(self, key: int) -> bool:
        return key in self._pending

    def is_finished(self, key: int) -> bool:
        return key in self._finished

    def open_keys(self) -> List[int]:
        return sorted(self._pending)

    def pending(self, key: int) -> Optional[PendingToolCall]:
        return self._pending.get(key)

    def finish(self, key: int) -> AssembledBlock:
        """
        Close a slot and parse its buffer.

        Raises:
            KeyError: If no call is open under `key`
            InvalidToolArgumentsError: If the buffer is not a JSON object
        """
        call = self._pending.pop(key)

        try:
            arguments = parse_tool_arguments(call.id, call.args_buffer)
        except InvalidToolArgumentsError:
            get_metrics().record_tool_argument_error(self.dialect)
            logger.error(
                f"Tool call {call.id} ({call.name}) finished with invalid arguments",
                tool_call_id=call.id,
            )
            raise

        block: AssembledBlock
        if call.provenance is not None:
            block = McpToolUseBlock(
                id=call.id,
                name=call.name,
                server_name=call.provenance,
                input=arguments
            )
        else:
            block = ToolUseBlock(id=call.id, name=call.name, input=arguments)

        self._finished[key] = block
        return block

    def finish_all(self) -> List[AssembledBlock]:
        """Force-finish every open call, lowest key first."""
        return [self.finish(key) for key in self.open_keys()]

    def add_finished(self, key: int, block: AssembledBlock):
        """Record a call that arrived complete."""
        self._finished[key] = block

    def finished_blocks(self) -> List[AssembledBlock]:
        """Finished calls in ascending key order."""
        return [self._finished[key] for key in sorted(self._finished)]

    def has_calls(self) -> bool:
        return bool(self._pending or self._finished)

    def call_count(self) -> int:
        return len(self._pending) + len(self._finished)
