"""
unichat - Routing Module

Endpoint and API version selection:
- Endpoint family choice (Chat Completions vs Responses)
- Google API version pinning and one-shot v1 -> v1beta retry
"""

from .negotiator import (
    ApiVersion,
    EndpointFamily,
    NegotiationPhase,
    VersionNegotiator,
    adapt_keys_for_v1beta,
    requires_v1beta,
    select_endpoint_family,
)

__all__ = [
    "ApiVersion",
    "EndpointFamily",
    "NegotiationPhase",
    "VersionNegotiator",
    "adapt_keys_for_v1beta",
    "requires_v1beta",
    "select_endpoint_family",
]
