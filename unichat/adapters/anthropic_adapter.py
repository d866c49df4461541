"""
unichat - Anthropic Provider Adapter

Adapter for Anthropic's Messages API (content-block streaming).
"""

from typing import Any, Dict, List, Optional

import httpx

from .base import BaseAdapter
from ..config import DEFAULT_ENDPOINTS, AdapterConfig
from ..core.http_client import RequestContext
from ..core.models import DialectName, MCPServerConfig, Provider


class AnthropicAdapter(BaseAdapter):
    """
    Adapter for Anthropic Claude API.

    Supports:
    - Streaming content blocks (text, tool_use, input_json_delta)
    - Remote MCP servers via the mcp-client beta

    Note: MCP tool calls and their results come back as McpToolUseBlock
    and McpToolResultBlock.
    """

    provider = Provider.ANTHROPIC
    provider_name = "anthropic"
    API_VERSION = "2023-06-01"
    MCP_BETA = "mcp-client-2025-04-04"

    def __init__(
        self,
        config: AdapterConfig,
        mcp_servers: Optional[List[MCPServerConfig]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.mcp_servers = list(mcp_servers or [])
        super().__init__(config, transport=transport)
        self.url = config.base_url or DEFAULT_ENDPOINTS["anthropic"]

    @property
    def dialect(self) -> DialectName:
        return DialectName.ANTHROPIC

    def _default_headers(self) -> Dict[str, str]:
        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }
        if self.mcp_servers:
            headers["anthropic-beta"] = self.MCP_BETA
        return headers

    def _build_payload(self, body: Dict[str, Any], stream: bool) -> Dict[str, Any]:
        payload = {**body, "stream": stream}
        if self.mcp_servers:
            payload["mcp_servers"] = [server.to_anthropic() for server in self.mcp_servers]
        return payload

    async def _open(
        self,
        body: Dict[str, Any],
        stream: bool,
        ctx: RequestContext
    ) -> httpx.Response:
        ctx.step_name = "anthropic.messages"
        return await self.http.open_stream(self.url, self._build_payload(body, stream), ctx)
