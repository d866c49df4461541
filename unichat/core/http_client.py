"""
unichat - Provider HTTP Client

HTTP client wrapper with:
- Streamed POSTs (body consumed by the caller, chunk by chunk)
- Request correlation (request_id header and logging)
- Step-based logging for debugging
- Vendor error responses mapped to canonical exceptions

No automatic retry: a retried request could duplicate output that was
already delivered to the caller. Version retries are decided by the
negotiator, before any body is consumed.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from ..observability.logging import get_logger, summarize_payload
from ..observability.metrics import get_metrics
from .errors import UnichatException, error_from_exception, error_from_response


logger = get_logger("unichat.http")


DEFAULT_TIMEOUT = 60.0


@dataclass
class RequestContext:
    """Context for tracking requests through the system."""
    request_id: str = field(default_factory=lambda: f"req_{uuid.uuid4().hex[:12]}")
    step_name: str = ""
    provider: str = ""
    model: str = ""
    api_version: Optional[str] = None

    def to_log_extra(self) -> Dict[str, str]:
        return {"request_id": self.request_id}


class ProviderHttpClient:
    """
    Async HTTP client for one provider.

    Usage:
        client = ProviderHttpClient("anthropic", headers={"x-api-key": key})
        ctx = RequestContext(step_name="anthropic.messages", provider="anthropic")

        response = await client.open_stream(url, body, ctx)
        try:
            async for chunk in response.aiter_bytes():
                ...
        finally:
            await response.aclose()
    """

    def __init__(
        self,
        provider: str,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.provider = provider
        self.timeout = timeout
        self.default_headers = headers or {}
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.default_headers,
                transport=self.transport
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _log_request_start(self, ctx: RequestContext, url: str, payload: Dict[str, Any]):
        logger.info(
            f"STEP [{ctx.step_name}] Starting POST {url} "
            f"(provider={ctx.provider}, model={ctx.model})",
            **ctx.to_log_extra()
        )
        logger.debug(
            f"Payload summary: {summarize_payload(payload)}",
            **ctx.to_log_extra()
        )

    def _log_response(self, ctx: RequestContext, status: int, latency_ms: float):
        if status < 400:
            logger.info(
                f"STEP [{ctx.step_name}] Response: status={status}, "
                f"latency={latency_ms:.0f}ms",
                **ctx.to_log_extra()
            )
        else:
            logger.warning(
                f"STEP [{ctx.step_name}] Response: status={status}, "
                f"latency={latency_ms:.0f}ms",
                **ctx.to_log_extra()
            )

    def _raise_mapped(self, ctx: RequestContext, error: UnichatException):
        get_metrics().record_upstream_error(self.provider, error.error.code)
        raise error

    async def open_stream(
        self,
        url: str,
        json: Dict[str, Any],
        ctx: RequestContext,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> httpx.Response:
        """
        POST and return the response with its body still unread.

        The caller owns the response and must aclose() it.

        Raises:
            UnichatException: Transport failure or non-2xx status. When
                ctx.api_version is set, 404 and unknown-field 400s become
                VersionMismatchError.
        """
        merged_headers = {**(headers or {}), "X-Request-ID": ctx.request_id}
        self._log_request_start(ctx, url, json)

        client = await self._get_client()
        request = client.build_request(
            "POST", url, json=json, params=params, headers=merged_headers
        )

        start_time = time.time()
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.warning(
                f"STEP [{ctx.step_name}] Transport error: {e.__class__.__name__}: {e}",
                **ctx.to_log_extra()
            )
            self._raise_mapped(ctx, error_from_exception(self.provider, e, ctx.request_id))

        latency_ms = (time.time() - start_time) * 1000
        self._log_response(ctx, response.status_code, latency_ms)

        if response.status_code >= 400:
            try:
                await response.aread()
            finally:
                await response.aclose()
            self._raise_mapped(ctx, error_from_response(
                self.provider,
                response,
                model=ctx.model,
                api_version=ctx.api_version,
                request_id=ctx.request_id,
            ))

        return response
