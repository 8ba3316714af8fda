"""
Connectors for external price verification collaborators.

This package provides connectors for:
- Live exchange rates over a JSON REST API
- AI product matching over the OpenAI / Azure OpenAI SDK
- Request rate limiting shared between callers
"""

from .api_connector import APIConnector, APIResponse, RateLimiter
from .base_connector import BaseConnector, ConnectorError
from .openai_connector import (
    AIMatchProvider, AIMatchResponse, OpenAIMatchConnector, parse_match_payload
)

__all__ = [
    "APIConnector",
    "APIResponse",
    "RateLimiter",
    "BaseConnector",
    "ConnectorError",
    "AIMatchProvider",
    "AIMatchResponse",
    "OpenAIMatchConnector",
    "parse_match_payload"
]
