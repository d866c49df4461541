"""
unichat - Dialects

One module per wire format family.
"""

from typing import Union

from ...core.models import DialectName
from .anthropic import AnthropicDialect
from .base import Dialect, PartialCallback, StreamState, VendorError
from .google import GoogleDialect, generate_call_id
from .openai_chat import OpenAIChatDialect
from .openai_responses import OpenAIResponsesDialect


DIALECTS = {
    DialectName.OPENAI_CHAT: OpenAIChatDialect,
    DialectName.OPENAI_RESPONSES: OpenAIResponsesDialect,
    DialectName.ANTHROPIC: AnthropicDialect,
    DialectName.GOOGLE: GoogleDialect,
}


def get_dialect(dialect: Union[str, DialectName, Dialect]) -> Dialect:
    """Resolve a dialect name (or pass an instance through)."""
    if isinstance(dialect, Dialect):
        return dialect

    try:
        dialect_cls = DIALECTS[DialectName(dialect)]
    except ValueError:
        raise ValueError(f"Unknown dialect: {dialect}") from None

    return dialect_cls()


__all__ = [
    "Dialect",
    "StreamState",
    "PartialCallback",
    "VendorError",
    "OpenAIChatDialect",
    "OpenAIResponsesDialect",
    "AnthropicDialect",
    "GoogleDialect",
    "generate_call_id",
    "DIALECTS",
    "get_dialect",
]
