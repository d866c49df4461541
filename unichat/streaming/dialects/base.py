"""
unichat - Dialect Base

Shared state and dispatch for the per-vendor dialects.

A dialect turns frames into tagged event variants (decode) and folds each
variant into a StreamState (reduce). Dispatch is a lookup on the variant's
type, so a variant nobody registered fails loudly instead of being
silently skipped.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from ...core.conversation import ConversationState
from ...core.errors import StreamInterruptedError
from ...core.models import Block, DialectName
from ...observability.logging import get_logger
from ..errors import DiagnosticHook, DiagnosticReason, FrameDiagnostic, report_diagnostic
from ..frames import Frame, FrameMode
from ..text import TextDeliveryLedger, append_text, flatten
from ..tool_calls import ToolCallAssembler


logger = get_logger(__name__)

PartialCallback = Callable[[str], None]


# ============================================================
# Stream state
# ============================================================

@dataclass
class StreamState:
    """
    Everything one call accumulates while its response is consumed.

    Owned by exactly one call; never shared.
    """
    dialect: str
    provider: str = ""
    request_id: str = ""
    on_partial: Optional[PartialCallback] = None
    on_diagnostic: Optional[DiagnosticHook] = None
    conversation: ConversationState = field(default_factory=ConversationState)

    # Text and already-resolved results, in arrival order
    blocks: List[Block] = field(default_factory=list)
    assembler: Optional[ToolCallAssembler] = None
    ledger: TextDeliveryLedger = field(default_factory=TextDeliveryLedger)

    # Vendor item id -> assembler key, for events that omit the index
    item_keys: Dict[str, int] = field(default_factory=dict)

    completed: bool = False
    text_fragments: int = 0

    def __post_init__(self):
        if self.assembler is None:
            self.assembler = ToolCallAssembler(self.dialect)

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return flatten(self.blocks)

    def emit_text(self, text: str):
        """Append text and hand the new fragment to the partial callback."""
        if not text:
            return

        append_text(self.blocks, text)
        self.text_fragments += 1

        if self.on_partial is None:
            return
        try:
            self.on_partial(text)
        except Exception:
            logger.exception(
                f"Partial-text callback raised for {self.dialect}; continuing stream"
            )

    def add_block(self, block: Block):
        """Append an already-resolved block."""
        self.blocks.append(block)

    def diagnose(
        self,
        reason: DiagnosticReason,
        frame: Frame,
        detail: str = ""
    ):
        report_diagnostic(
            FrameDiagnostic(
                dialect=self.dialect,
                reason=reason,
                raw=frame.data,
                event=frame.event,
                detail=detail,
            ),
            self.on_diagnostic,
        )


# ============================================================
# Shared variants
# ============================================================

@dataclass
class VendorError:
    """An error frame sent in-band by the vendor."""
    message: str
    code: str = ""


# ============================================================
# Dialect base
# ============================================================

Reducer = Callable[[StreamState, Any], None]


class Dialect:
    """
    Base class for one wire format family.

    Subclasses set `name` and `frame_mode`, implement decode_payload(),
    register one reducer per variant in reducers(), and implement
    parse_one_shot().
    """

    name: DialectName
    frame_mode: FrameMode = FrameMode.DATA

    def __init__(self):
        self._reducers: Dict[Type, Reducer] = {VendorError: self._reduce_vendor_error}
        self._reducers.update(self.reducers())

    def reducers(self) -> Dict[Type, Reducer]:
        raise NotImplementedError

    # ------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------

    def decode(self, frame: Frame, state: StreamState) -> Optional[Any]:
        """
        Decode one frame into an event variant.

        Returns None for frames that carry nothing of interest, including
        malformed ones (which are reported to the diagnostic hook).
        """
        try:
            payload = json.loads(frame.data)
        except json.JSONDecodeError as e:
            state.diagnose(DiagnosticReason.INVALID_JSON, frame, str(e))
            return None

        if not isinstance(payload, dict):
            state.diagnose(
                DiagnosticReason.UNEXPECTED_SHAPE, frame,
                f"expected object, got {type(payload).__name__}"
            )
            return None

        return self.decode_payload(payload, frame, state)

    def decode_payload(
        self,
        payload: Dict[str, Any],
        frame: Frame,
        state: StreamState
    ) -> Optional[Any]:
        raise NotImplementedError

    def reduce(self, state: StreamState, event: Any):
        """Fold one event variant into the state."""
        handler = self._reducers.get(type(event))
        if handler is None:
            raise TypeError(
                f"{self.name.value} dialect has no reducer for {type(event).__name__}"
            )
        handler(state, event)

    def end_of_stream(self, state: StreamState):
        """Hook for dialects whose calls only close when the stream ends."""
        pass

    # ------------------------------------------------------------
    # One-shot
    # ------------------------------------------------------------

    def parse_one_shot(self, document: Dict[str, Any], state: StreamState):
        """Fold a complete non-streaming response document into the state."""
        raise NotImplementedError

    # ------------------------------------------------------------
    # Shared reducers
    # ------------------------------------------------------------

    def _reduce_vendor_error(self, state: StreamState, event: VendorError):
        logger.error(
            f"{self.name.value} stream reported an error: {event.message}",
            error_code=event.code,
        )
        raise StreamInterruptedError(
            provider=state.provider or self.name.value,
            partial_content=state.text,
            message=f"{self.name.value} stream error: {event.message}",
            request_id=state.request_id,
        )


def error_message(payload: Dict[str, Any]) -> VendorError:
    """Build a VendorError from `{"error": ...}` shaped payloads."""
    error = payload.get("error")
    if isinstance(error, dict):
        return VendorError(
            message=str(error.get("message") or error),
            code=str(error.get("code") or error.get("type") or error.get("status") or ""),
        )
    return VendorError(message=str(error or payload))
