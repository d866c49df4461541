"""
unichat - Provider Adapter Base

Abstract base class for provider adapters.
Each provider (OpenAI, Anthropic, Google, OpenAI-compatible servers)
implements this interface.

The adapter is responsible for:
1. Choosing the endpoint (and API version) for the call
2. Making the API call to the provider
3. Feeding the response body to the normalization engine
4. Mapping transport and vendor errors to canonical exceptions
"""

import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..config import AdapterConfig
from ..core.conversation import ConversationState
from ..core.errors import (
    StreamInterruptedError,
    UnexpectedToolUseError,
    UpstreamError,
    error_from_exception,
)
from ..core.http_client import ProviderHttpClient, RequestContext
from ..core.models import DialectName, Provider, ToolChatCompletion
from ..observability.logging import LogContext, get_logger
from ..observability.metrics import get_metrics
from ..observability.tracing import set_span_attributes, trace_provider_call
from ..streaming import normalize_document, normalize_stream
from ..streaming.dialects import PartialCallback
from ..streaming.errors import DiagnosticHook


logger = get_logger(__name__)


class BaseAdapter(ABC):
    """
    Abstract base class for provider adapters.

    Each provider adapter must implement:
    - dialect: The wire format its responses use
    - _open: Send the request and return the response with the body unread

    Usage:
        adapter = get_adapter("anthropic", load_adapter_config("anthropic"))
        completion = await adapter.chat_once(
            {"model": "claude-sonnet-4", "max_tokens": 1024, "messages": [...]},
            on_partial=lambda text: print(text, end=""),
        )
    """

    provider: Provider
    provider_name: str = ""

    def __init__(
        self,
        config: AdapterConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self.http = ProviderHttpClient(
            self.provider_name,
            timeout=config.timeout,
            headers=self._default_headers(),
            transport=transport,
        )

    @property
    @abstractmethod
    def dialect(self) -> DialectName:
        """Dialect the provider's responses are decoded with."""

    @abstractmethod
    async def _open(
        self,
        body: Dict[str, Any],
        stream: bool,
        ctx: RequestContext
    ) -> httpx.Response:
        """
        Send the request.

        Returns:
            Response with status < 400 and the body not yet consumed
        """

    def _default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _span_attributes(self) -> Dict[str, Any]:
        return {"unichat.dialect": self.dialect.value}

    async def close(self):
        """Close the underlying HTTP client."""
        await self.http.close()

    async def chat_once(
        self,
        body: Dict[str, Any],
        stream: bool = True,
        on_partial: Optional[PartialCallback] = None,
        on_diagnostic: Optional[DiagnosticHook] = None,
        request_id: str = "",
        conversation: Optional[ConversationState] = None
    ) -> ToolChatCompletion:
        """
        Run one chat call and return the normalized completion.

        Args:
            body: Vendor request body (built by the caller)
            stream: Stream the response (on_partial sees text as it arrives)
            on_partial: Receives each new text fragment
            on_diagnostic: Receives malformed-frame diagnostics
            request_id: Correlation id (generated when empty)
            conversation: Tool-call id bookkeeping shared across turns

        Raises:
            UnichatException: Transport, vendor or tool-argument failure
        """
        request_id = request_id or f"req_{uuid.uuid4().hex[:12]}"
        model = str(body.get("model", ""))
        ctx = RequestContext(
            request_id=request_id,
            step_name=f"{self.provider_name}.chat",
            provider=self.provider_name,
            model=model,
        )

        token = LogContext.set_current(LogContext(
            request_id=request_id,
            provider=self.provider_name,
            model=model,
            dialect=self.dialect.value,
        ))
        started = time.perf_counter()

        try:
            with trace_provider_call(self.provider_name, model, "chat") as span:
                set_span_attributes(span, self._span_attributes())
                response = await self._open(body, stream, ctx)
                set_span_attributes(span, {"unichat.api_version": ctx.api_version})

                try:
                    if stream:
                        completion = await self._consume_stream(
                            response, on_partial, on_diagnostic, conversation, request_id
                        )
                    else:
                        completion = await self._consume_document(
                            response, on_diagnostic, conversation, request_id
                        )
                finally:
                    await response.aclose()

                span.set_attribute("unichat.stop_reason", completion.stop_reason.value)
        finally:
            LogContext.reset(token)

        get_metrics().record_completion(
            provider=self.provider_name,
            dialect=self.dialect.value,
            stop_reason=completion.stop_reason.value,
            streaming=stream,
            duration_seconds=time.perf_counter() - started,
        )
        return completion

    async def _consume_stream(
        self,
        response: httpx.Response,
        on_partial: Optional[PartialCallback],
        on_diagnostic: Optional[DiagnosticHook],
        conversation: Optional[ConversationState],
        request_id: str
    ) -> ToolChatCompletion:
        delivered: List[str] = []

        def track(text: str):
            delivered.append(text)
            if on_partial is not None:
                on_partial(text)

        try:
            return await normalize_stream(
                response.aiter_bytes(),
                self.dialect,
                on_partial=track,
                on_diagnostic=on_diagnostic,
                conversation=conversation,
                provider=self.provider_name,
                request_id=request_id,
            )
        except httpx.HTTPError as e:
            if delivered:
                logger.error(
                    f"Stream from {self.provider_name} broke after partial content: "
                    f"{e.__class__.__name__}",
                    delivered_fragments=len(delivered),
                )
                raise StreamInterruptedError(
                    self.provider_name,
                    partial_content="".join(delivered),
                    message=f"Connection lost mid-stream: {e}",
                    request_id=request_id,
                )
            raise error_from_exception(self.provider_name, e, request_id)

    async def _consume_document(
        self,
        response: httpx.Response,
        on_diagnostic: Optional[DiagnosticHook],
        conversation: Optional[ConversationState],
        request_id: str
    ) -> ToolChatCompletion:
        try:
            await response.aread()
        except httpx.HTTPError as e:
            raise error_from_exception(self.provider_name, e, request_id)

        try:
            document = response.json()
        except ValueError:
            raise UpstreamError(
                self.provider_name,
                502,
                f"{self.provider_name} returned a non-JSON body",
                request_id,
            )

        return normalize_document(
            document,
            self.dialect,
            conversation=conversation,
            on_diagnostic=on_diagnostic,
            provider=self.provider_name,
            request_id=request_id,
        )

    async def chat_text(
        self,
        body: Dict[str, Any],
        stream: bool = True,
        on_partial: Optional[PartialCallback] = None,
        request_id: str = ""
    ) -> str:
        """
        Tool-free convenience: return the completion's text.

        Raises:
            UnexpectedToolUseError: The vendor answered with tool calls
        """
        completion = await self.chat_once(
            body, stream=stream, on_partial=on_partial, request_id=request_id
        )
        if completion.tool_uses:
            raise UnexpectedToolUseError(
                self.provider_name,
                [block.name for block in completion.tool_uses],
                request_id,
            )
        return completion.text
