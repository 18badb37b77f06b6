"""
Response classification for X API calls.

Every response is turned into either a parsed value or one of the typed
errors in ``xplorer.api.exceptions``. Rate-limit headers are parsed on a
best-effort basis and are informational only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

import requests

from .exceptions import ApiStatusError, DeserializeError, RateLimitedError

logger = logging.getLogger(__name__)

RATE_LIMIT_REMAINING_HEADER = "x-rate-limit-remaining"
RATE_LIMIT_LIMIT_HEADER = "x-rate-limit-limit"
RATE_LIMIT_RESET_HEADER = "x-rate-limit-reset"


@dataclass
class RateLimitSnapshot:
    """Rate-limit headers from a single response."""

    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset_at: Optional[datetime] = None


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.debug(f"Ignoring malformed {name} header: {value!r}")
        return None


def parse_rate_limit(headers: Mapping[str, str]) -> RateLimitSnapshot:
    """
    Read rate-limit headers.

    Missing or malformed headers yield None fields. ``headers`` should be
    case-insensitive (as ``requests`` response headers are).
    """
    reset_at = None
    reset_epoch = _header_int(headers, RATE_LIMIT_RESET_HEADER)
    if reset_epoch is not None:
        try:
            reset_at = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Ignoring out-of-range reset time: {reset_epoch}")

    return RateLimitSnapshot(
        remaining=_header_int(headers, RATE_LIMIT_REMAINING_HEADER),
        limit=_header_int(headers, RATE_LIMIT_LIMIT_HEADER),
        reset_at=reset_at,
    )


def classify_response(
    response: requests.Response,
    parser: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """
    Map a response to a parsed value or a typed error.

    Args:
        response: HTTP response
        parser: Optional callable applied to the decoded JSON body

    Returns:
        Decoded JSON body, or parser(body) if a parser is given

    Raises:
        RateLimitedError: On 429 (reset_at defaults to now if unknown)
        ApiStatusError: On any other non-2xx status
        DeserializeError: If the body is not JSON or the parser fails
    """
    status = response.status_code

    if status == 429:
        snapshot = parse_rate_limit(response.headers)
        reset_at = snapshot.reset_at or datetime.now(timezone.utc)
        logger.warning(f"Rate limit exceeded (429), resets at {reset_at.isoformat()}")
        raise RateLimitedError(reset_at, snapshot)

    if not 200 <= status < 300:
        logger.error(f"API error ({status}): {response.text}")
        raise ApiStatusError(status, response.text)

    raw_body = response.text
    try:
        data = response.json()
    except ValueError as e:
        raise DeserializeError(f"Invalid JSON: {e}", raw_body) from e

    if parser is None:
        return data

    try:
        return parser(data)
    except (KeyError, TypeError, ValueError) as e:
        raise DeserializeError(f"Unexpected response shape: {e}", raw_body) from e
