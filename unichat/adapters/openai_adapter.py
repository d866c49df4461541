"""
unichat - OpenAI Provider Adapter

Adapter for OpenAI's Chat Completions and Responses endpoints.

The endpoint family is chosen once, when the adapter is built: remote
tool servers (MCP) are only available on the Responses endpoint.
"""

from typing import Any, Dict, List, Optional

import httpx

from .base import BaseAdapter
from ..config import DEFAULT_ENDPOINTS, AdapterConfig
from ..core.http_client import RequestContext
from ..core.models import DialectName, MCPServerConfig, Provider
from ..observability.logging import get_logger
from ..routing.negotiator import EndpointFamily, select_endpoint_family


logger = get_logger(__name__)


class OpenAIAdapter(BaseAdapter):
    """
    Adapter for OpenAI API.

    Supports:
    - Chat Completions (streamed `data:` lines, tool call deltas by index)
    - Responses (typed `event:` frames, remote MCP tools)
    """

    provider = Provider.OPENAI
    provider_name = "openai"

    def __init__(
        self,
        config: AdapterConfig,
        endpoint_family: Optional[EndpointFamily] = None,
        mcp_servers: Optional[List[MCPServerConfig]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.mcp_servers = list(mcp_servers or [])
        self.endpoint_family = select_endpoint_family(endpoint_family, self.mcp_servers)
        super().__init__(config, transport=transport)
        self.url = self._resolve_url(config.base_url)
        logger.debug(
            f"{self.provider_name} adapter using {self.endpoint_family.value} at {self.url}",
            mcp_servers=len(self.mcp_servers),
        )

    def _resolve_url(self, base_url: str) -> str:
        if self.endpoint_family == EndpointFamily.RESPONSES:
            if base_url and base_url.endswith("/chat/completions"):
                return base_url[: -len("/chat/completions")] + "/responses"
            return base_url or DEFAULT_ENDPOINTS["openai_responses"]
        return base_url or DEFAULT_ENDPOINTS["openai"]

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    @property
    def dialect(self) -> DialectName:
        if self.endpoint_family == EndpointFamily.RESPONSES:
            return DialectName.OPENAI_RESPONSES
        return DialectName.OPENAI_CHAT

    def _span_attributes(self) -> Dict[str, Any]:
        return {
            "unichat.dialect": self.dialect.value,
            "unichat.endpoint_family": self.endpoint_family.value,
        }

    def _build_payload(self, body: Dict[str, Any], stream: bool) -> Dict[str, Any]:
        payload = {**body, "stream": stream}
        if self.endpoint_family == EndpointFamily.RESPONSES and self.mcp_servers:
            payload["tools"] = list(payload.get("tools") or []) + [
                server.to_responses_tool() for server in self.mcp_servers
            ]
        return payload

    async def _open(
        self,
        body: Dict[str, Any],
        stream: bool,
        ctx: RequestContext
    ) -> httpx.Response:
        ctx.step_name = f"{self.provider_name}.{self.endpoint_family.value}"
        return await self.http.open_stream(self.url, self._build_payload(body, stream), ctx)
