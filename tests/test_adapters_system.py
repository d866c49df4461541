"""
unichat - Adapter System Tests

Drives each adapter against an httpx.MockTransport.
Verifies:
- Vendor URLs, headers and request bodies
- Streamed and one-shot responses normalize to the same shape
- Google v1 -> v1beta negotiation over real requests
- Vendor failures surface as canonical errors
- Adapter factory and environment configuration
"""

import json
from typing import Any, Callable, Dict, List

import httpx
import pytest

from unichat.adapters import (
    AnthropicAdapter,
    GoogleAdapter,
    OpenAIAdapter,
    OpenAICompatibleAdapter,
    get_adapter,
)
from unichat.config import AdapterConfig, get_http_timeout, load_adapter_config
from unichat.core.errors import (
    InvalidConfigurationError,
    InvalidRequestError,
    ProviderAuthError,
    StreamInterruptedError,
    UnexpectedToolUseError,
    UpstreamError,
    VersionMismatchError,
)
from unichat.core.models import MCPServerConfig, StopReason, TextBlock, ToolUseBlock
from unichat.routing import EndpointFamily


SSE_HEADERS = {"content-type": "text/event-stream"}


def data(payload: Any) -> str:
    return f"data: {json.dumps(payload)}\n\n"


OPENAI_TEXT_STREAM = (
    data({"choices": [{"delta": {"content": "Hello"}}]})
    + data({"choices": [{"delta": {"content": " there"}, "finish_reason": "stop"}]})
    + "data: [DONE]\n\n"
).encode()

OPENAI_TOOL_STREAM = (
    data({"choices": [{"delta": {"tool_calls": [
        {"index": 0, "id": "call_1", "function": {"name": "getWeather", "arguments": "{\"city\":"}}
    ]}}]})
    + data({"choices": [{"delta": {"tool_calls": [
        {"index": 0, "function": {"arguments": "\"Oslo\"}"}}
    ]}, "finish_reason": "tool_calls"}]})
    + "data: [DONE]\n\n"
).encode()

ANTHROPIC_STREAM = "".join([
    "event: message_start\n" + data({"type": "message_start", "message": {"id": "msg_1"}}),
    "event: content_block_start\n" + data({
        "type": "content_block_start", "index": 0,
        "content_block": {"type": "text", "text": ""},
    }),
    "event: content_block_delta\n" + data({
        "type": "content_block_delta", "index": 0,
        "delta": {"type": "text_delta", "text": "Bonjour"},
    }),
    "event: content_block_stop\n" + data({"type": "content_block_stop", "index": 0}),
    "event: message_stop\n" + data({"type": "message_stop"}),
]).encode()

GOOGLE_STREAM = (
    data({"candidates": [{"content": {"role": "model", "parts": [{"text": "Hallo"}]}}]})
    + data({"candidates": [{"content": {"parts": [{"text": " Welt"}]}, "finishReason": "STOP"}]})
).encode()


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, *responses: Callable[[httpx.Request], httpx.Response]):
        self.responses = list(responses)
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def body(self, index: int = 0) -> Dict[str, Any]:
        return json.loads(self.requests[index].content)


def stream_reply(content: bytes, status: int = 200):
    return lambda request: httpx.Response(status, content=content, headers=SSE_HEADERS)


def json_reply(body: Dict[str, Any], status: int = 200, headers=None):
    return lambda request: httpx.Response(status, json=body, headers=headers)


# ============================================================
# OpenAI
# ============================================================

class TestOpenAIAdapter:
    """Chat Completions and Responses over the wire."""

    @pytest.mark.asyncio
    async def test_streamed_chat(self, partials):
        """Text streams through on_partial and the request is well formed."""
        recorder = Recorder(stream_reply(OPENAI_TEXT_STREAM))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        completion = await adapter.chat_once(
            {"model": "gpt-4o", "messages": [{"role": "user", "content": "hi"}]},
            on_partial=partials.append,
            request_id="req_abc",
        )
        await adapter.close()

        assert completion.blocks == [TextBlock(text="Hello there")]
        assert completion.stop_reason == StopReason.END
        assert partials == ["Hello", " there"]

        request = recorder.requests[0]
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        assert request.headers["x-request-id"] == "req_abc"
        assert recorder.body()["stream"] is True

    @pytest.mark.asyncio
    async def test_streamed_tool_call(self):
        """Argument fragments are reassembled into one tool use."""
        recorder = Recorder(stream_reply(OPENAI_TOOL_STREAM))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        completion = await adapter.chat_once({"model": "gpt-4o", "messages": []})

        assert completion.blocks == [
            ToolUseBlock(id="call_1", name="getWeather", input={"city": "Oslo"})
        ]
        assert completion.stop_reason == StopReason.TOOL_USE

    @pytest.mark.asyncio
    async def test_one_shot_document(self):
        """stream=False parses the chat.completion document."""
        document = {
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": "Done."},
                "finish_reason": "stop",
            }],
        }
        recorder = Recorder(json_reply(document))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        completion = await adapter.chat_once({"model": "gpt-4o", "messages": []}, stream=False)

        assert completion.blocks == [TextBlock(text="Done.")]
        assert recorder.body()["stream"] is False

    @pytest.mark.asyncio
    async def test_non_json_document(self):
        """A one-shot body that is not JSON is an upstream failure."""
        recorder = Recorder(lambda request: httpx.Response(200, text="<html>"))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        with pytest.raises(UpstreamError) as exc_info:
            await adapter.chat_once({"model": "gpt-4o", "messages": []}, stream=False)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_auth_failure(self, metrics):
        """401 surfaces as ProviderAuthError and is counted."""
        recorder = Recorder(json_reply(
            {"error": {"message": "Incorrect API key provided", "type": "invalid_request_error"}},
            status=401,
        ))
        adapter = OpenAIAdapter(AdapterConfig(api_key="bad"), transport=recorder.transport)

        with pytest.raises(ProviderAuthError):
            await adapter.chat_once({"model": "gpt-4o", "messages": []})

        assert metrics.registry.get_sample_value(
            "unichat_upstream_errors_total",
            {"provider": "openai", "code": "provider_auth_error"},
        ) == 1.0

    @pytest.mark.asyncio
    async def test_connection_lost_mid_stream(self, partials):
        """Text already delivered is carried on StreamInterruptedError."""
        async def broken_body():
            yield data({"choices": [{"delta": {"content": "Part"}}]}).encode()
            raise httpx.ReadError("connection reset")

        recorder = Recorder(
            lambda request: httpx.Response(200, content=broken_body(), headers=SSE_HEADERS)
        )
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        with pytest.raises(StreamInterruptedError) as exc_info:
            await adapter.chat_once(
                {"model": "gpt-4o", "messages": []}, on_partial=partials.append
            )

        assert exc_info.value.error.partial_content == "Part"
        assert partials == ["Part"]

    @pytest.mark.asyncio
    async def test_chat_text_rejects_tool_calls(self):
        """The tool-free helper refuses tool-use completions."""
        recorder = Recorder(stream_reply(OPENAI_TOOL_STREAM))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        with pytest.raises(UnexpectedToolUseError) as exc_info:
            await adapter.chat_text({"model": "gpt-4o", "messages": []})

        assert exc_info.value.error.details["tool_names"] == ["getWeather"]

    @pytest.mark.asyncio
    async def test_chat_text_returns_text(self):
        """The tool-free helper returns the flattened text."""
        recorder = Recorder(stream_reply(OPENAI_TEXT_STREAM))
        adapter = OpenAIAdapter(AdapterConfig(api_key="sk-test"), transport=recorder.transport)

        assert await adapter.chat_text({"model": "gpt-4o", "messages": []}) == "Hello there"

    @pytest.mark.asyncio
    async def test_mcp_uses_responses_endpoint(self):
        """MCP servers switch to /responses and are sent as mcp tools."""
        stream = (
            "event: response.output_text.delta\n"
            + data({"type": "response.output_text.delta", "item_id": "msg_1",
                    "output_index": 0, "content_index": 0, "delta": "ok"})
            + "event: response.completed\n"
            + data({"type": "response.completed", "response": {"id": "resp_1"}})
        ).encode()
        recorder = Recorder(stream_reply(stream))
        server = MCPServerConfig(url="https://mcp.example.com/sse", name="docs")
        adapter = OpenAIAdapter(
            AdapterConfig(api_key="sk-test"),
            mcp_servers=[server],
            transport=recorder.transport,
        )

        completion = await adapter.chat_once({"model": "gpt-4.1", "input": "hi"})

        assert adapter.endpoint_family == EndpointFamily.RESPONSES
        assert completion.text == "ok"
        assert recorder.requests[0].url.path == "/v1/responses"
        assert recorder.body()["tools"] == [{
            "type": "mcp",
            "server_label": "docs",
            "server_url": "https://mcp.example.com/sse",
            "require_approval": "never",
        }]

    def test_responses_url_from_chat_base(self):
        """A chat completions base URL is rewritten for Responses."""
        adapter = OpenAIAdapter(
            AdapterConfig(api_key="k", base_url="https://proxy.local/v1/chat/completions"),
            endpoint_family=EndpointFamily.RESPONSES,
        )

        assert adapter.url == "https://proxy.local/v1/responses"

    def test_chat_with_mcp_rejected(self):
        """Chat Completions cannot carry MCP servers."""
        with pytest.raises(InvalidConfigurationError):
            OpenAIAdapter(
                AdapterConfig(api_key="k"),
                endpoint_family=EndpointFamily.CHAT_COMPLETIONS,
                mcp_servers=[MCPServerConfig(url="https://mcp.example.com", name="x")],
            )


class TestOpenAICompatibleAdapter:
    """Chat Completions compatible servers."""

    @pytest.mark.asyncio
    async def test_preset_url(self):
        """Presets post to their own endpoint."""
        recorder = Recorder(stream_reply(OPENAI_TEXT_STREAM))
        adapter = OpenAICompatibleAdapter(
            AdapterConfig(api_key="k"), preset="openrouter", transport=recorder.transport
        )

        await adapter.chat_once({"model": "meta-llama/llama-3-70b", "messages": []})

        assert str(recorder.requests[0].url) == "https://openrouter.ai/api/v1/chat/completions"
        assert adapter.provider_name == "openrouter"

    def test_base_url_required_without_preset(self):
        """A bare compatible adapter needs a base URL."""
        with pytest.raises(InvalidConfigurationError):
            OpenAICompatibleAdapter(AdapterConfig(api_key="k"))

    def test_unknown_preset(self):
        """Unknown presets are rejected."""
        with pytest.raises(InvalidConfigurationError):
            OpenAICompatibleAdapter(AdapterConfig(api_key="k"), preset="nope")


# ============================================================
# Anthropic
# ============================================================

class TestAnthropicAdapter:
    """Messages API over the wire."""

    @pytest.mark.asyncio
    async def test_headers_and_stream(self):
        """API key and version headers; content blocks normalized."""
        recorder = Recorder(stream_reply(ANTHROPIC_STREAM))
        adapter = AnthropicAdapter(AdapterConfig(api_key="sk-ant"), transport=recorder.transport)

        completion = await adapter.chat_once(
            {"model": "claude-sonnet-4", "max_tokens": 256, "messages": []}
        )

        request = recorder.requests[0]
        assert request.headers["x-api-key"] == "sk-ant"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert "anthropic-beta" not in request.headers
        assert "mcp_servers" not in recorder.body()
        assert completion.blocks == [TextBlock(text="Bonjour")]

    @pytest.mark.asyncio
    async def test_mcp_servers(self):
        """MCP servers add the beta header and the mcp_servers list."""
        recorder = Recorder(stream_reply(ANTHROPIC_STREAM))
        server = MCPServerConfig(
            url="https://mcp.example.com/sse",
            name="docs",
            allowed_tools=["search"],
            authorization_token="tok",
        )
        adapter = AnthropicAdapter(
            AdapterConfig(api_key="sk-ant"), mcp_servers=[server], transport=recorder.transport
        )

        await adapter.chat_once({"model": "claude-sonnet-4", "max_tokens": 256, "messages": []})

        assert recorder.requests[0].headers["anthropic-beta"] == "mcp-client-2025-04-04"
        assert recorder.body()["mcp_servers"] == [{
            "type": "url",
            "url": "https://mcp.example.com/sse",
            "name": "docs",
            "tool_configuration": {"enabled": True, "allowed_tools": ["search"]},
            "authorization_token": "tok",
        }]


# ============================================================
# Google
# ============================================================

GOOGLE_NOT_FOUND = {
    "error": {
        "code": 404,
        "message": "models/gemini-1.5-pro is not found for API version v1",
        "status": "NOT_FOUND",
    }
}


class TestGoogleAdapter:
    """Generative Language API with version negotiation."""

    @pytest.mark.asyncio
    async def test_v1_404_retries_on_v1beta(self, metrics):
        """Exactly two requests: v1 then v1beta."""
        recorder = Recorder(json_reply(GOOGLE_NOT_FOUND, status=404), stream_reply(GOOGLE_STREAM))
        adapter = GoogleAdapter(AdapterConfig(api_key="g-key"), transport=recorder.transport)

        completion = await adapter.chat_once({
            "model": "gemini-1.5-pro",
            "contents": [{"role": "user", "parts": [{"text": "hi"}]}],
            "toolConfig": {"functionCallingConfig": {"mode": "AUTO"}},
        })

        assert completion.text == "Hallo Welt"
        assert [r.url.path for r in recorder.requests] == [
            "/v1/models/gemini-1.5-pro:streamGenerateContent",
            "/v1beta/models/gemini-1.5-pro:streamGenerateContent",
        ]
        for request in recorder.requests:
            assert request.url.params["alt"] == "sse"
            assert request.url.params["key"] == "g-key"

        assert "model" not in recorder.body(0)
        assert "toolConfig" in recorder.body(0)
        assert "tool_config" in recorder.body(1)
        assert metrics.registry.get_sample_value(
            "unichat_version_fallbacks_total",
            {"provider": "google", "from_version": "v1",
             "to_version": "v1beta", "outcome": "success"},
        ) == 1.0

    @pytest.mark.asyncio
    async def test_pinned_model_single_request(self):
        """A v1beta-only model is sent once and not retried."""
        recorder = Recorder(json_reply(GOOGLE_NOT_FOUND, status=404))
        adapter = GoogleAdapter(AdapterConfig(api_key="g-key"), transport=recorder.transport)

        with pytest.raises(VersionMismatchError):
            await adapter.chat_once({"model": "gemini-2.5-flash", "contents": []})

        assert len(recorder.requests) == 1
        assert recorder.requests[0].url.path.startswith("/v1beta/")

    @pytest.mark.asyncio
    async def test_forced_version(self):
        """A configured api_version disables negotiation."""
        recorder = Recorder(json_reply(GOOGLE_NOT_FOUND, status=404))
        adapter = GoogleAdapter(
            AdapterConfig(api_key="g-key", api_version="v1"), transport=recorder.transport
        )

        with pytest.raises(VersionMismatchError):
            await adapter.chat_once({"model": "gemini-1.5-pro", "contents": []})

        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_one_shot_uses_generate_content(self):
        """stream=False calls generateContent without alt=sse."""
        document = {"candidates": [{"content": {"parts": [{"text": "Hi"}]}, "finishReason": "STOP"}]}
        recorder = Recorder(json_reply(document))
        adapter = GoogleAdapter(AdapterConfig(api_key="g-key"), transport=recorder.transport)

        completion = await adapter.chat_once(
            {"model": "gemini-1.5-pro", "contents": []}, stream=False
        )

        assert completion.text == "Hi"
        request = recorder.requests[0]
        assert request.url.path == "/v1/models/gemini-1.5-pro:generateContent"
        assert "alt" not in request.url.params

    @pytest.mark.asyncio
    async def test_model_required(self):
        """The model must be given in the body."""
        adapter = GoogleAdapter(AdapterConfig(api_key="g-key"), transport=Recorder().transport)

        with pytest.raises(InvalidRequestError):
            await adapter.chat_once({"contents": []})


# ============================================================
# Factory and configuration
# ============================================================

class TestAdapterFactory:
    """get_adapter and environment configuration."""

    @pytest.mark.parametrize("provider,adapter_class", [
        ("openai", OpenAIAdapter),
        ("anthropic", AnthropicAdapter),
        ("google", GoogleAdapter),
        ("kimi", OpenAICompatibleAdapter),
        ("ZAI", OpenAICompatibleAdapter),
    ])
    def test_get_adapter(self, provider, adapter_class):
        """Known providers and presets build the right adapter."""
        adapter = get_adapter(provider, AdapterConfig(api_key="k"))

        assert type(adapter) is adapter_class

    def test_unknown_provider(self):
        """Unsupported providers raise ValueError."""
        with pytest.raises(ValueError):
            get_adapter("nope", AdapterConfig(api_key="k"))

    def test_load_from_environment(self, monkeypatch):
        """Key, base URL and timeout come from the environment."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        monkeypatch.setenv("ANTHROPIC_BASE_URL", "https://proxy.local/v1/messages")
        monkeypatch.setenv("UNICHAT_HTTP_TIMEOUT", "15")

        config = load_adapter_config("anthropic")

        assert config.api_key == "sk-env"
        assert config.base_url == "https://proxy.local/v1/messages"
        assert config.timeout == 15.0

    def test_default_base_url(self, monkeypatch):
        """Without an override the vendor endpoint is used."""
        monkeypatch.setenv("KIMI_API_KEY", "k")
        monkeypatch.delenv("KIMI_BASE_URL", raising=False)

        assert load_adapter_config("kimi").base_url == "https://api.moonshot.ai/v1/chat/completions"

    def test_google_api_version(self, monkeypatch):
        """GOOGLE_API_VERSION forces the Google version."""
        monkeypatch.setenv("GOOGLE_API_KEY", "g")
        monkeypatch.setenv("GOOGLE_API_VERSION", "v1beta")

        assert load_adapter_config("google").api_version == "v1beta"

    def test_missing_key(self, monkeypatch):
        """A missing API key is a configuration error."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(InvalidConfigurationError) as exc_info:
            load_adapter_config("openai")

        assert exc_info.value.error.param == "OPENAI_API_KEY"

    def test_unknown_provider_config(self):
        """Unknown providers are rejected."""
        with pytest.raises(InvalidConfigurationError):
            load_adapter_config("nope")

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_invalid_timeout(self, monkeypatch, value):
        """Non-numeric and non-positive timeouts are rejected."""
        monkeypatch.setenv("UNICHAT_HTTP_TIMEOUT", value)

        with pytest.raises(InvalidConfigurationError):
            get_http_timeout()
