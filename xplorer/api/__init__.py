"""
X API v2 HTTP layer.

Public API:
    XApiClient: Authenticated client
    classify_response: Map a response to a value or typed error
    parse_rate_limit: Read rate-limit headers
    RateLimitSnapshot: Parsed rate-limit headers
"""

from .client import XApiClient
from .exceptions import (
    ApiClientError,
    ApiStatusError,
    DeserializeError,
    RateLimitedError,
    TransportError,
)
from .responses import RateLimitSnapshot, classify_response, parse_rate_limit

__all__ = [
    "XApiClient",
    "RateLimitSnapshot",
    "classify_response",
    "parse_rate_limit",
    "ApiClientError",
    "TransportError",
    "RateLimitedError",
    "ApiStatusError",
    "DeserializeError",
]
