"""
unichat - Streaming Response Normalization

One call surface over multiple chat-completion APIs (OpenAI, Anthropic,
Google and OpenAI-compatible servers). Streamed or one-shot responses are
normalized into the same ToolChatCompletion of text and tool-call blocks.
"""

__version__ = "0.1.0"
__author__ = "unichat"

from .adapters import get_adapter
from .config import AdapterConfig, load_adapter_config
from .core import (
    ConversationState,
    TextBlock,
    ToolChatCompletion,
    ToolResultBlock,
    ToolUseBlock,
    UnichatException,
)
from .streaming import normalize_document, normalize_stream

__all__ = [
    "get_adapter",
    "AdapterConfig",
    "load_adapter_config",
    "ConversationState",
    "TextBlock",
    "ToolChatCompletion",
    "ToolResultBlock",
    "ToolUseBlock",
    "UnichatException",
    "normalize_document",
    "normalize_stream",
]
