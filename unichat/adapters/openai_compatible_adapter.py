"""
unichat - OpenAI-Compatible Provider Adapter

Servers that speak the Chat Completions wire format: Kimi (Moonshot),
Z.ai, OpenRouter, or any self-hosted endpoint given by base_url.
"""

from typing import Dict, Optional

import httpx

from .openai_adapter import OpenAIAdapter
from ..config import DEFAULT_ENDPOINTS, AdapterConfig
from ..core.errors import InvalidConfigurationError
from ..core.models import Provider
from ..routing.negotiator import EndpointFamily


# Preset name -> default chat completions URL
PRESETS: Dict[str, str] = {
    "kimi": DEFAULT_ENDPOINTS["kimi"],
    "zai": DEFAULT_ENDPOINTS["zai"],
    "openrouter": DEFAULT_ENDPOINTS["openrouter"],
}


class OpenAICompatibleAdapter(OpenAIAdapter):
    """
    Adapter for Chat Completions compatible servers.

    Usage:
        adapter = OpenAICompatibleAdapter(config, preset="kimi")
        adapter = OpenAICompatibleAdapter(AdapterConfig(api_key, base_url="http://localhost:8000/v1/chat/completions"))
    """

    provider = Provider.OPENAI_COMPATIBLE

    def __init__(
        self,
        config: AdapterConfig,
        preset: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if preset is not None and preset not in PRESETS:
            raise InvalidConfigurationError(
                f"Unknown OpenAI-compatible preset '{preset}'. "
                f"Known: {', '.join(sorted(PRESETS))}",
                param="preset"
            )
        if preset is None and not config.base_url:
            raise InvalidConfigurationError(
                "base_url is required for an OpenAI-compatible server without a preset",
                param="base_url"
            )

        self.preset = preset
        self.provider_name = preset or Provider.OPENAI_COMPATIBLE.value
        super().__init__(
            config,
            endpoint_family=EndpointFamily.CHAT_COMPLETIONS,
            transport=transport,
        )

    def _resolve_url(self, base_url: str) -> str:
        if base_url:
            return base_url
        return PRESETS[self.preset]
