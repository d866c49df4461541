"""
unichat Adapters Module

Provider-specific adapters that send a vendor request and normalize the
vendor's response into a ToolChatCompletion.
"""

from typing import Any

from .base import BaseAdapter
from .openai_adapter import OpenAIAdapter
from .openai_compatible_adapter import PRESETS, OpenAICompatibleAdapter
from .anthropic_adapter import AnthropicAdapter
from .google_adapter import GoogleAdapter
from ..config import AdapterConfig

__all__ = [
    "BaseAdapter",
    "AdapterConfig",
    "OpenAIAdapter",
    "OpenAICompatibleAdapter",
    "AnthropicAdapter",
    "GoogleAdapter",
    "get_adapter",
]


def get_adapter(provider: str, config: AdapterConfig, **kwargs: Any) -> BaseAdapter:
    """
    Factory function to get the appropriate adapter for a provider.

    Args:
        provider: "openai", "anthropic", "google", "openai_compatible", or
                  an OpenAI-compatible preset ("kimi", "zai", "openrouter")
        config: Adapter configuration with API key
        **kwargs: Passed to the adapter (mcp_servers, endpoint_family, transport)

    Returns:
        Configured adapter instance

    Raises:
        ValueError: If provider is not supported
    """
    name = provider.lower()

    if name in PRESETS:
        return OpenAICompatibleAdapter(config, preset=name, **kwargs)

    adapters = {
        "openai": OpenAIAdapter,
        "anthropic": AnthropicAdapter,
        "google": GoogleAdapter,
        "openai_compatible": OpenAICompatibleAdapter,
    }

    adapter_class = adapters.get(name)
    if not adapter_class:
        raise ValueError(f"Unsupported provider: {provider}")

    return adapter_class(config, **kwargs)
