"""
unichat - Core Data Models

Canonical, vendor-agnostic completion structures.

Every dialect (OpenAI Chat Completions, OpenAI Responses, Anthropic,
Google) is normalized into the same ToolChatCompletion shape, whether the
response was streamed or delivered in one JSON document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union


# ============================================================
# Enums
# ============================================================

class Provider(str, Enum):
    """Supported vendors."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OPENAI_COMPATIBLE = "openai_compatible"


class DialectName(str, Enum):
    """Wire format families understood by the engine."""
    OPENAI_CHAT = "openai_chat"
    OPENAI_RESPONSES = "openai_responses"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class StopReason(str, Enum):
    """Terminal classification of a completion."""
    END = "end"
    TOOL_USE = "tool_use"


class BlockType(str, Enum):
    """Canonical block kinds."""
    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"
    MCP_TOOL_USE = "mcp_tool_use"
    MCP_TOOL_RESULT = "mcp_tool_result"


# ============================================================
# Blocks
# ============================================================

@dataclass
class TextBlock:
    """Emitted text."""
    text: str
    type: Literal["text"] = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ToolUseBlock:
    """A fully resolved tool invocation."""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "input": self.input,
        }


@dataclass
class ToolResultBlock:
    """A tool result echoed back by a vendor."""
    tool_use_id: str
    content: str = ""
    type: Literal["tool_result"] = "tool_result"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }


@dataclass
class McpToolUseBlock:
    """Tool invocation routed to a remote tool server."""
    id: str
    name: str
    server_name: str
    input: Dict[str, Any] = field(default_factory=dict)
    type: Literal["mcp_tool_use"] = "mcp_tool_use"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "name": self.name,
            "server_name": self.server_name,
            "input": self.input,
        }


@dataclass
class McpToolResultBlock:
    """Result produced by a remote tool server."""
    tool_use_id: str
    content: List[Any] = field(default_factory=list)
    is_error: bool = False
    type: Literal["mcp_tool_result"] = "mcp_tool_result"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "is_error": self.is_error,
            "content": self.content,
        }


Block = Union[
    TextBlock,
    ToolUseBlock,
    ToolResultBlock,
    McpToolUseBlock,
    McpToolResultBlock,
]

TOOL_USE_BLOCK_TYPES = (ToolUseBlock, McpToolUseBlock)
STANDARD_BLOCK_TYPES = (TextBlock, ToolUseBlock, ToolResultBlock)


def is_tool_use(block: Block) -> bool:
    """True for every tool-use kind, including vendor extensions."""
    return isinstance(block, TOOL_USE_BLOCK_TYPES)


def block_from_dict(data: Dict[str, Any]) -> Block:
    """Rebuild a block from its dict form."""
    block_type = data.get("type")

    if block_type == BlockType.TEXT.value:
        return TextBlock(text=data.get("text", ""))
    if block_type == BlockType.TOOL_USE.value:
        return ToolUseBlock(
            id=data["id"],
            name=data["name"],
            input=data.get("input") or {},
        )
    if block_type == BlockType.TOOL_RESULT.value:
        return ToolResultBlock(
            tool_use_id=data["tool_use_id"],
            content=data.get("content", ""),
        )
    if block_type == BlockType.MCP_TOOL_USE.value:
        return McpToolUseBlock(
            id=data["id"],
            name=data["name"],
            server_name=data.get("server_name", ""),
            input=data.get("input") or {},
        )
    if block_type == BlockType.MCP_TOOL_RESULT.value:
        return McpToolResultBlock(
            tool_use_id=data["tool_use_id"],
            content=data.get("content") or [],
            is_error=bool(data.get("is_error", False)),
        )

    raise ValueError(f"Unknown block type: {block_type!r}")


# ============================================================
# Completion
# ============================================================

def compute_stop_reason(blocks: List[Block]) -> StopReason:
    """tool_use iff at least one tool-use kind block is present."""
    if any(is_tool_use(block) for block in blocks):
        return StopReason.TOOL_USE
    return StopReason.END


@dataclass
class ToolChatCompletion:
    """
    The single terminal result of one engine call.

    Identical in shape whether produced from a stream or from a
    one-shot JSON document.
    """
    blocks: List[Block] = field(default_factory=list)
    stop_reason: StopReason = StopReason.END

    @classmethod
    def from_blocks(cls, blocks: List[Block]) -> "ToolChatCompletion":
        return cls(blocks=list(blocks), stop_reason=compute_stop_reason(blocks))

    @property
    def text(self) -> str:
        """All text blocks concatenated in order."""
        return "".join(b.text for b in self.blocks if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> List[Union[ToolUseBlock, McpToolUseBlock]]:
        return [b for b in self.blocks if is_tool_use(b)]

    def to_standard(self) -> "ToolChatCompletion":
        """Drop vendor-extension blocks for callers that only know the core kinds."""
        standard = [b for b in self.blocks if isinstance(b, STANDARD_BLOCK_TYPES)]
        return ToolChatCompletion.from_blocks(standard)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "stop_reason": self.stop_reason.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolChatCompletion":
        blocks = [block_from_dict(b) for b in data.get("blocks", [])]
        return cls.from_blocks(blocks)


# ============================================================
# Remote tool servers
# ============================================================

@dataclass
class MCPServerConfig:
    """Out-of-band tool server attached to a request."""
    url: str
    name: str
    type: Literal["url"] = "url"
    require_approval: Optional[Literal["always", "never"]] = None
    allowed_tools: Optional[List[str]] = None
    authorization_token: Optional[str] = None

    def to_anthropic(self) -> Dict[str, Any]:
        """Entry for the Messages API `mcp_servers` list."""
        result: Dict[str, Any] = {"type": self.type, "url": self.url, "name": self.name}
        if self.require_approval:
            result["require_approval"] = self.require_approval
        if self.allowed_tools is not None:
            result["tool_configuration"] = {
                "enabled": True,
                "allowed_tools": self.allowed_tools,
            }
        if self.authorization_token:
            result["authorization_token"] = self.authorization_token
        return result

    def to_responses_tool(self) -> Dict[str, Any]:
        """Entry for the Responses API `tools` list."""
        result: Dict[str, Any] = {
            "type": "mcp",
            "server_label": self.name,
            "server_url": self.url,
            "require_approval": self.require_approval or "never",
        }
        if self.allowed_tools is not None:
            result["allowed_tools"] = self.allowed_tools
        if self.authorization_token:
            result["headers"] = {"Authorization": f"Bearer {self.authorization_token}"}
        return result
