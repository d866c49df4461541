"""
unichat - Adapter Configuration

Provider credentials, endpoints and transport settings from the environment.

Environment:
    <PROVIDER>_API_KEY     API key (OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY,
                           KIMI_API_KEY, ZAI_API_KEY, OPENROUTER_API_KEY)
    <PROVIDER>_BASE_URL    Endpoint override
    UNICHAT_HTTP_TIMEOUT   Transport timeout in seconds (default 60)
    GOOGLE_API_VERSION     Force a Google API version (disables negotiation)
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from .core.errors import InvalidConfigurationError


DEFAULT_HTTP_TIMEOUT = 60.0

# Full request URLs, except Google which is a base the version and model are appended to
DEFAULT_ENDPOINTS: Dict[str, str] = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "openai_responses": "https://api.openai.com/v1/responses",
    "anthropic": "https://api.anthropic.com/v1/messages",
    "google": "https://generativelanguage.googleapis.com",
    "kimi": "https://api.moonshot.ai/v1/chat/completions",
    "zai": "https://api.z.ai/api/paas/v4/chat/completions",
    "openrouter": "https://openrouter.ai/api/v1/chat/completions",
}

KNOWN_PROVIDERS = ("openai", "anthropic", "google", "kimi", "zai", "openrouter")


@dataclass
class AdapterConfig:
    """Settings for one provider adapter."""
    api_key: str
    base_url: str = ""
    timeout: float = DEFAULT_HTTP_TIMEOUT
    api_version: Optional[str] = None


def get_http_timeout() -> float:
    """Parse UNICHAT_HTTP_TIMEOUT; invalid or non-positive values are rejected."""
    raw = os.getenv("UNICHAT_HTTP_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_HTTP_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        raise InvalidConfigurationError(
            f"UNICHAT_HTTP_TIMEOUT must be a number, got {raw!r}",
            param="UNICHAT_HTTP_TIMEOUT"
        )
    if timeout <= 0:
        raise InvalidConfigurationError(
            "UNICHAT_HTTP_TIMEOUT must be positive",
            param="UNICHAT_HTTP_TIMEOUT"
        )
    return timeout


def load_adapter_config(provider: str) -> AdapterConfig:
    """
    Build an AdapterConfig for a provider from the environment.

    Raises:
        InvalidConfigurationError: Unknown provider or missing API key
    """
    name = provider.lower().strip()
    if name not in KNOWN_PROVIDERS:
        raise InvalidConfigurationError(
            f"Unknown provider '{provider}'. Known: {', '.join(KNOWN_PROVIDERS)}",
            param="provider"
        )

    prefix = name.upper()
    api_key = os.getenv(f"{prefix}_API_KEY", "").strip()
    if not api_key:
        raise InvalidConfigurationError(
            f"{prefix}_API_KEY is not set",
            param=f"{prefix}_API_KEY"
        )

    api_version = None
    if name == "google":
        api_version = os.getenv("GOOGLE_API_VERSION", "").strip() or None

    return AdapterConfig(
        api_key=api_key,
        base_url=os.getenv(f"{prefix}_BASE_URL", "").strip() or DEFAULT_ENDPOINTS[name],
        timeout=get_http_timeout(),
        api_version=api_version,
    )
