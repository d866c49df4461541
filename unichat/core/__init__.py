"""
unichat Core Module

Canonical completion model, error taxonomy and per-conversation state.
"""

from .models import (
    # Enums
    Provider,
    DialectName,
    StopReason,
    BlockType,

    # Blocks
    Block,
    TextBlock,
    ToolUseBlock,
    ToolResultBlock,
    McpToolUseBlock,
    McpToolResultBlock,
    block_from_dict,
    is_tool_use,
    compute_stop_reason,

    # Completion
    ToolChatCompletion,
    MCPServerConfig,
)

from .errors import (
    # Error types
    ErrorType,
    ErrorDetails,
    UnichatException,

    # Infra errors
    InfraError,
    ConnectionTimeoutError,
    ReadTimeoutError,
    UpstreamError,
    RateLimitedError,
    StreamInterruptedError,

    # Semantic errors
    SemanticError,
    ProviderAuthError,
    InvalidRequestError,
    ModelNotFoundError,
    VersionMismatchError,
    InvalidToolArgumentsError,
    InvalidConfigurationError,
    UnexpectedToolUseError,

    # Mapping
    error_from_response,
    error_from_exception,
)

from .conversation import ConversationState

__all__ = [
    # Enums
    "Provider",
    "DialectName",
    "StopReason",
    "BlockType",

    # Blocks
    "Block",
    "TextBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "McpToolUseBlock",
    "McpToolResultBlock",
    "block_from_dict",
    "is_tool_use",
    "compute_stop_reason",

    # Completion
    "ToolChatCompletion",
    "MCPServerConfig",

    # Errors
    "ErrorType",
    "ErrorDetails",
    "UnichatException",
    "InfraError",
    "ConnectionTimeoutError",
    "ReadTimeoutError",
    "UpstreamError",
    "RateLimitedError",
    "StreamInterruptedError",
    "SemanticError",
    "ProviderAuthError",
    "InvalidRequestError",
    "ModelNotFoundError",
    "VersionMismatchError",
    "InvalidToolArgumentsError",
    "InvalidConfigurationError",
    "UnexpectedToolUseError",
    "error_from_response",
    "error_from_exception",

    # Conversation
    "ConversationState",
]
