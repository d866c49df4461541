"""
unichat - Error Definitions

Error taxonomy with infra vs semantic classification.

Infra errors come from the transport or the vendor's servers; semantic
errors mean the request (or the vendor's answer to it) cannot be used as
is. Both carry an ErrorDetails payload so callers can log or serialise
them uniformly.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorType(str, Enum):
    """Error classification."""
    INFRA = "infra_error"
    SEMANTIC = "semantic_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    # Core fields (always present)
    code: str
    message: str
    type: ErrorType

    # Context fields
    provider: Optional[str] = None
    param: Optional[str] = None

    # Trace fields
    request_id: str = ""
    provider_request_id: Optional[str] = None

    # Recovery fields
    retryable: bool = False
    retry_after: Optional[int] = None
    fallback_attempted: Optional[bool] = None
    partial_content: Optional[str] = None

    # Debug fields
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "code": self.code,
            "message": self.message,
            "type": self.type.value,
            "request_id": self.request_id,
            "retryable": self.retryable,
        }

        if self.provider:
            result["provider"] = self.provider
        if self.param:
            result["param"] = self.param
        if self.provider_request_id:
            result["provider_request_id"] = self.provider_request_id
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        if self.fallback_attempted is not None:
            result["fallback_attempted"] = self.fallback_attempted
        if self.partial_content:
            result["partial_content"] = self.partial_content
        if self.details:
            result["details"] = self.details

        return {"error": result}


class UnichatException(Exception):
    """Base exception for all unichat errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)

    @property
    def upstream_status(self) -> Optional[int]:
        """HTTP status the vendor answered with, when there was one."""
        return self.error.details.get("upstream_status")


# ============================================================
# Infra Errors
# ============================================================

class InfraError(UnichatException):
    """Base class for infrastructure errors."""
    pass


class ConnectionTimeoutError(InfraError):
    """Failed to connect to provider."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="connection_timeout",
                message=f"Failed to connect to {provider} API within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=5
            ),
            status_code=504
        )


class ReadTimeoutError(InfraError):
    """Provider did not respond in time."""

    def __init__(self, provider: str, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="read_timeout",
                message=f"{provider} did not respond within timeout",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=10
            ),
            status_code=504
        )


class UpstreamError(InfraError):
    """Provider returned server error."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        message: str = "",
        request_id: str = "",
        provider_request_id: str = ""
    ):
        code_map = {
            500: "upstream_500",
            502: "upstream_502",
            503: "upstream_503",
            504: "upstream_504",
        }
        super().__init__(
            ErrorDetails(
                code=code_map.get(status_code, "upstream_error"),
                message=message or f"{provider} returned error {status_code}",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=True,
                retry_after=30,
                details={"upstream_status": status_code}
            ),
            status_code=502 if status_code == 500 else status_code
        )


class RateLimitedError(InfraError):
    """Rate limit exceeded."""

    def __init__(
        self,
        provider: str,
        retry_after: int = 60,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="rate_limited",
                message=f"{provider} rate limit exceeded. Retry after {retry_after} seconds.",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=True,
                retry_after=retry_after,
                details={"upstream_status": 429}
            ),
            status_code=429
        )


class StreamInterruptedError(InfraError):
    """Stream failed after content may already have been delivered."""

    def __init__(
        self,
        provider: str,
        partial_content: str = "",
        message: str = "",
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="stream_interrupted",
                message=message or "Stream ended with an error after receiving partial content",
                type=ErrorType.INFRA,
                provider=provider,
                request_id=request_id,
                retryable=False,  # text may already be on screen
                partial_content=partial_content
            ),
            status_code=502
        )


# ============================================================
# Semantic Errors
# ============================================================

class SemanticError(UnichatException):
    """Base class for semantic errors (client must fix request)."""
    pass


class ProviderAuthError(SemanticError):
    """Vendor rejected the credentials."""

    def __init__(
        self,
        provider: str,
        message: str = "",
        status_code: int = 401,
        request_id: str = "",
        provider_request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="provider_auth_error" if status_code == 401 else "permission_denied",
                message=f"{provider} authentication failed: {message}" if message
                else f"{provider} authentication failed",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                provider_request_id=provider_request_id or None,
                retryable=False,
                details={"upstream_status": status_code}
            ),
            status_code=status_code
        )


class InvalidRequestError(SemanticError):
    """Vendor rejected the request body."""

    def __init__(
        self,
        message: str,
        param: str = "",
        provider: Optional[str] = None,
        request_id: str = "",
        status_code: int = 400
    ):
        super().__init__(
            ErrorDetails(
                code="invalid_request",
                message=message,
                type=ErrorType.SEMANTIC,
                provider=provider,
                param=param or None,
                request_id=request_id,
                retryable=False,
                details={"upstream_status": status_code}
            ),
            status_code=status_code
        )


class ModelNotFoundError(SemanticError):
    """Requested model (or endpoint) does not exist."""

    def __init__(
        self,
        model: str,
        provider: Optional[str] = None,
        message: str = "",
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="model_not_found",
                message=message or f"Model '{model}' not found",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={"requested_model": model, "upstream_status": 404}
            ),
            status_code=404
        )


class VersionMismatchError(SemanticError):
    """The selected API version does not understand the request."""

    def __init__(
        self,
        provider: str,
        api_version: str,
        message: str = "",
        upstream_status: int = 404,
        request_id: str = ""
    ):
        super().__init__(
            ErrorDetails(
                code="version_mismatch",
                message=message or f"{provider} API {api_version} rejected the request",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={
                    "api_version": api_version,
                    "upstream_status": upstream_status
                }
            ),
            status_code=upstream_status
        )


class InvalidToolArgumentsError(SemanticError):
    """Reassembled tool-call arguments are not a JSON object."""

    def __init__(self, call_id: str, raw_arguments: str = "", request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_tool_arguments",
                message=f"invalid tool arguments for call {call_id}",
                type=ErrorType.SEMANTIC,
                request_id=request_id,
                retryable=False,
                details={"call_id": call_id, "raw_arguments": raw_arguments[:200]}
            ),
            status_code=502
        )
        self.call_id = call_id


class InvalidConfigurationError(SemanticError):
    """Adapter configuration is contradictory or incomplete."""

    def __init__(self, message: str, param: str = ""):
        super().__init__(
            ErrorDetails(
                code="invalid_configuration",
                message=message,
                type=ErrorType.SEMANTIC,
                param=param or None,
                retryable=False
            ),
            status_code=400
        )


class UnexpectedToolUseError(SemanticError):
    """A text-only call came back with tool calls."""

    def __init__(self, provider: str, tool_names: list, request_id: str = ""):
        super().__init__(
            ErrorDetails(
                code="unexpected_tool_use",
                message=f"{provider} returned tool calls for a text-only request",
                type=ErrorType.SEMANTIC,
                provider=provider,
                request_id=request_id,
                retryable=False,
                details={"tool_names": tool_names}
            ),
            status_code=502
        )


# ============================================================
# HTTP error mapping
# ============================================================

VERSION_MISMATCH_PATTERN = re.compile(r"Unknown name|Cannot find field")


def _parse_error_body(response: httpx.Response) -> Dict[str, Any]:
    """
    Pull message/type/code out of the vendor's error envelope.

    Handles the three shapes seen in practice:
        OpenAI:    {"error": {"message", "type", "code", "param"}}
        Anthropic: {"type": "error", "error": {"type", "message"}}
        Google:    {"error": {"code", "message", "status"}}
    """
    try:
        data = response.json()
    except ValueError:
        return {"message": response.text or f"HTTP {response.status_code}"}

    if not isinstance(data, dict):
        return {"message": str(data)}

    info = data.get("error", data)
    if not isinstance(info, dict):
        return {"message": str(info)}

    return {
        "message": info.get("message") or str(data),
        "type": info.get("type") or "",
        "status": info.get("status") or "",
        "code": str(info.get("code") or ""),
        "param": info.get("param"),
    }


def _retry_after(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("retry-after", 60))
    except ValueError:
        return 60


def error_from_response(
    provider: str,
    response: httpx.Response,
    model: str = "",
    api_version: Optional[str] = None,
    request_id: str = ""
) -> UnichatException:
    """
    Convert a non-2xx vendor response to a canonical exception.

    When api_version is given the endpoint is version-sensitive: a 404, or a
    400 complaining about unknown fields, becomes a VersionMismatchError.
    """
    status_code = response.status_code
    info = _parse_error_body(response)
    message = info["message"]
    error_status = info.get("status", "")
    error_type = info.get("type", "")
    provider_req_id = (
        response.headers.get("x-request-id")
        or response.headers.get("request-id")
        or ""
    )

    if status_code in (401, 403) or error_status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
        return ProviderAuthError(
            provider, message, status_code, request_id, provider_req_id
        )

    if status_code == 429 or error_type == "rate_limit_error":
        return RateLimitedError(provider, _retry_after(response), request_id)

    # Anthropic overloaded
    if status_code == 529 or error_type == "overloaded_error":
        return UpstreamError(
            provider, 503, f"{provider} is temporarily overloaded",
            request_id, provider_req_id
        )

    if status_code >= 500:
        return UpstreamError(
            provider, status_code, message, request_id, provider_req_id
        )

    if api_version is not None:
        if status_code == 404 or (
            status_code == 400 and VERSION_MISMATCH_PATTERN.search(message)
        ):
            return VersionMismatchError(
                provider, api_version, message, status_code, request_id
            )

    if status_code == 404:
        return ModelNotFoundError(model or "unknown", provider, message, request_id)

    return InvalidRequestError(
        message, info.get("param") or "", provider, request_id, status_code
    )


def error_from_exception(
    provider: str,
    error: Exception,
    request_id: str = ""
) -> UnichatException:
    """Convert an httpx transport exception to a canonical exception."""
    if isinstance(error, UnichatException):
        return error

    if isinstance(error, httpx.TimeoutException):
        if isinstance(error, httpx.ConnectTimeout):
            return ConnectionTimeoutError(provider, request_id)
        return ReadTimeoutError(provider, request_id)

    if isinstance(error, httpx.ConnectError):
        return ConnectionTimeoutError(provider, request_id)

    if isinstance(error, httpx.HTTPStatusError):
        return error_from_response(provider, error.response, request_id=request_id)

    return InfraError(
        ErrorDetails(
            code="unknown_error",
            message=str(error) or error.__class__.__name__,
            type=ErrorType.INFRA,
            provider=provider,
            request_id=request_id,
            retryable=True
        ),
        status_code=500
    )
