"""
unichat - Google Gemini Provider Adapter

Adapter for Google's Generative Language API (candidate parts).

The API version is negotiated per call: most models start on v1 and are
retried once on v1beta when v1 does not know the model or the request
fields; preview and 2.5-generation models go straight to v1beta.
"""

from typing import Any, Dict, Optional

import httpx

from .base import BaseAdapter
from ..config import DEFAULT_ENDPOINTS
from ..core.errors import InvalidRequestError
from ..core.http_client import RequestContext
from ..core.models import DialectName, Provider
from ..routing.negotiator import VersionNegotiator


class GoogleAdapter(BaseAdapter):
    """
    Adapter for Google Gemini API.

    The request body carries the model under "model" like the other
    providers; it is moved into the URL before sending.
    """

    provider = Provider.GOOGLE
    provider_name = "google"

    @property
    def dialect(self) -> DialectName:
        return DialectName.GOOGLE

    @property
    def base_url(self) -> str:
        return (self.config.base_url or DEFAULT_ENDPOINTS["google"]).rstrip("/")

    def _default_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_url(self, api_version: str, model: str, stream: bool) -> str:
        """{base}/{version}/models/{model}:{streamGenerateContent|generateContent}"""
        if model.startswith("models/"):
            model = model[len("models/"):]
        method = "streamGenerateContent" if stream else "generateContent"
        return f"{self.base_url}/{api_version}/models/{model}:{method}"

    async def _open(
        self,
        body: Dict[str, Any],
        stream: bool,
        ctx: RequestContext
    ) -> httpx.Response:
        payload = dict(body)
        model = str(payload.pop("model", "") or "")
        if not model:
            raise InvalidRequestError(
                "model is required", param="model",
                provider=self.provider_name, request_id=ctx.request_id
            )

        params = {"key": self.config.api_key}
        if stream:
            params["alt"] = "sse"

        negotiator = VersionNegotiator(
            self.provider_name,
            model,
            forced_version=self.config.api_version,
            request_id=ctx.request_id,
        )

        async def send(api_version: str, request_body: Dict[str, Any]) -> httpx.Response:
            ctx.api_version = api_version
            ctx.step_name = f"google.{api_version}"
            return await self.http.open_stream(
                self.build_url(api_version, model, stream),
                request_body,
                ctx,
                params=params,
            )

        return await negotiator.run(send, payload)
