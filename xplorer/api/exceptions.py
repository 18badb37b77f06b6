"""Exceptions for X API requests."""

from datetime import datetime
from typing import Any, Optional


class ApiClientError(Exception):
    """Base exception for X API request errors."""

    pass


class TransportError(ApiClientError):
    """Network failure before a response was received."""

    pass


class RateLimitedError(ApiClientError):
    """
    API rate limit exceeded (HTTP 429).

    Nothing sleeps or retries on this error; callers decide whether to
    wait until ``reset_at``.
    """

    def __init__(self, reset_at: datetime, rate_limit: Optional[Any] = None):
        self.reset_at = reset_at
        self.rate_limit = rate_limit
        super().__init__(f"X API rate limit exceeded. Resets at {reset_at.isoformat()}")


class ApiStatusError(ApiClientError):
    """Non-2xx response other than 429."""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"X API error ({status}): {body}")


class DeserializeError(ApiClientError):
    """Successful response whose body could not be decoded."""

    def __init__(self, message: str, raw_body: str):
        self.message = message
        self.raw_body = raw_body
        super().__init__(f"Failed to decode X API response: {message}")
