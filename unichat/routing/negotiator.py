"""
unichat - Endpoint/Version Negotiator

Picks the endpoint family and API version for a call, and retries once
against the alternate version when the first one does not understand the
request.

RULE: The retry happens only before any response body has been consumed.
      A version mismatch is detected from the HTTP status alone, so no
      partial output can ever be duplicated.

Retry is ONLY allowed:
- When the model is not pinned to a version
- When the failure is a VersionMismatchError (404, or 400 about unknown fields)
- Exactly once

Auth, rate-limit, 5xx and transport failures propagate immediately.
"""

import re
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..core.errors import InvalidConfigurationError, UnichatException, VersionMismatchError
from ..core.models import MCPServerConfig
from ..observability.logging import get_logger
from ..observability.metrics import get_metrics


logger = get_logger(__name__)

T = TypeVar("T")


class ApiVersion(str, Enum):
    """Google Generative Language API versions."""
    V1 = "v1"
    V1BETA = "v1beta"


class EndpointFamily(str, Enum):
    """OpenAI endpoint families."""
    CHAT_COMPLETIONS = "chat_completions"
    RESPONSES = "responses"


class NegotiationPhase(str, Enum):
    """
    Negotiation phases.

    SELECTING: Version not chosen yet
    SENT: Request in flight on the current version
    RETRYING: First version rejected the request, switching to the alternate
    SUCCEEDED: A version accepted the request
    TERMINAL: Failed; no further attempts
    """
    SELECTING = "selecting"
    SENT = "sent"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    TERMINAL = "terminal"


# Models only served by v1beta
V1BETA_ONLY_PATTERNS = [
    re.compile(r"flash[-_]lite"),
    re.compile(r"gemini-2\.5"),
    re.compile(r"^gemini-3(?:\.[0-9]+)?-.*preview"),
]

# v1 camelCase request keys and their v1beta spellings
V1BETA_KEY_MAP = {
    "toolConfig": "tool_config",
    "functionCallingConfig": "function_calling_config",
    "functionDeclarations": "function_declarations",
    "functionCall": "function_call",
    "functionResponse": "function_response",
}


def requires_v1beta(model: str) -> bool:
    """Check if a model is pinned to v1beta."""
    name = model.lower()
    if name.startswith("models/"):
        name = name[len("models/"):]
    return any(pattern.search(name) for pattern in V1BETA_ONLY_PATTERNS)


def adapt_keys_for_v1beta(body: Any) -> Any:
    """
    Re-key a v1 request body for v1beta.

    Walks dicts and lists recursively and returns a new structure; the
    input is not modified. Values under unmapped keys are kept as-is.
    """
    if isinstance(body, dict):
        return {
            V1BETA_KEY_MAP.get(key, key): adapt_keys_for_v1beta(value)
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [adapt_keys_for_v1beta(item) for item in body]
    return body


def select_endpoint_family(
    requested: Optional[EndpointFamily] = None,
    mcp_servers: Optional[List[MCPServerConfig]] = None
) -> EndpointFamily:
    """
    Choose the OpenAI endpoint family.

    Remote tool servers are only supported by the Responses endpoint.

    Raises:
        InvalidConfigurationError: Chat Completions requested together with MCP servers
    """
    if mcp_servers:
        if requested == EndpointFamily.CHAT_COMPLETIONS:
            raise InvalidConfigurationError(
                "MCP servers require the Responses endpoint",
                param="endpoint_family"
            )
        return EndpointFamily.RESPONSES
    return requested or EndpointFamily.CHAT_COMPLETIONS


class VersionNegotiator:
    """
    Runs one call through the version state machine.

    Usage:
        negotiator = VersionNegotiator("google", "gemini-1.5-pro")

        async def send(version, body):
            return await client.open_stream(url_for(version), body)

        response = await negotiator.run(send, body)

    One negotiator per call; it is not reusable.
    """

    def __init__(
        self,
        provider: str,
        model: str,
        forced_version: Optional[str] = None,
        request_id: str = ""
    ):
        self.provider = provider
        self.model = model
        self.request_id = request_id
        self.phase = NegotiationPhase.SELECTING
        self.pinned = forced_version is not None or requires_v1beta(model)
        self.version = self._select(forced_version)
        self.attempts = 0
        self.fallback_attempted = False

    def _select(self, forced_version: Optional[str]) -> str:
        if forced_version:
            return forced_version
        if requires_v1beta(self.model):
            return ApiVersion.V1BETA.value
        return ApiVersion.V1.value

    def can_retry(self, error: Exception) -> bool:
        """Check if the failure allows a retry on the alternate version."""
        return (
            self.phase == NegotiationPhase.SENT
            and not self.pinned
            and not self.fallback_attempted
            and isinstance(error, VersionMismatchError)
        )

    async def run(
        self,
        send: Callable[[str, Dict[str, Any]], Awaitable[T]],
        body: Dict[str, Any]
    ) -> T:
        """
        Send the request, retrying once on a version mismatch.

        Args:
            send: Coroutine taking (api_version, body)
            body: Request body in v1 spelling, re-keyed whenever v1beta is used

        Raises:
            UnichatException: The (last) attempt's error; after a retry the
                error carries fallback_attempted=True
        """
        if self.phase != NegotiationPhase.SELECTING:
            raise RuntimeError("VersionNegotiator.run() called twice")

        first_version = self.version
        logger.debug(
            f"Version selected: {first_version} (pinned={self.pinned})",
            api_version=first_version,
        )

        first_body = body
        if first_version == ApiVersion.V1BETA.value:
            first_body = adapt_keys_for_v1beta(body)

        try:
            return await self._attempt(send, first_body)
        except UnichatException as e:
            if not self.can_retry(e):
                self.phase = NegotiationPhase.TERMINAL
                raise

        self.phase = NegotiationPhase.RETRYING
        self.fallback_attempted = True
        self.version = ApiVersion.V1BETA.value
        metrics = get_metrics()

        logger.warning(
            f"{self.provider} {first_version} rejected model {self.model}, "
            f"retrying on {self.version}",
            from_version=first_version,
            to_version=self.version,
        )

        try:
            result = await self._attempt(send, adapt_keys_for_v1beta(body))
        except UnichatException as e:
            self.phase = NegotiationPhase.TERMINAL
            e.error.fallback_attempted = True
            metrics.record_version_fallback(
                self.provider, first_version, self.version, "failure"
            )
            raise

        metrics.record_version_fallback(
            self.provider, first_version, self.version, "success"
        )
        return result

    async def _attempt(
        self,
        send: Callable[[str, Dict[str, Any]], Awaitable[T]],
        body: Dict[str, Any]
    ) -> T:
        self.phase = NegotiationPhase.SENT
        self.attempts += 1
        result = await send(self.version, body)
        self.phase = NegotiationPhase.SUCCEEDED
        return result
