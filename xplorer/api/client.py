"""
X API v2 client with pluggable authorization.

This module provides an authenticated HTTP client for the X API. It handles:

- Authorization headers from the RequestAuthorizer (signed, PKCE or bearer)
- Response classification into typed errors
- Informational rate-limit tracking
- Resolution and caching of the authenticated user's id

No request is retried automatically. A rate-limited response surfaces as
RateLimitedError carrying the reset time.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote, urlencode

import requests

from xplorer.oauth.authorizer import RequestAuthorizer
from xplorer.oauth.exceptions import UserIdentityParseError
from xplorer.oauth.methods import RequestContext

from .exceptions import DeserializeError, TransportError
from .responses import RateLimitSnapshot, classify_response, parse_rate_limit

logger = logging.getLogger(__name__)

Parser = Callable[[Any], Any]


def _with_query(url: str, params: Optional[Dict[str, Any]]) -> str:
    """Append query parameters so the signed URL matches the sent URL."""
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params, quote_via=quote)}"


class XApiClient:
    """
    Authenticated HTTP client for X API v2.

    Example:
        authorizer = RequestAuthorizer.from_environment()
        client = XApiClient(authorizer)

        user_id = client.get_my_user_id()
        bookmarks = client.oauth_get(client.url(f"/users/{user_id}/bookmarks"))
    """

    BASE_URL = "https://api.x.com/2"

    def __init__(
        self,
        authorizer: RequestAuthorizer,
        base_url: str = BASE_URL,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize X API client.

        Args:
            authorizer: Produces Authorization headers for each request
            base_url: API base URL
            timeout: Request timeout in seconds
            session: HTTP session (creates one if not provided)
        """
        self.authorizer = authorizer
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.last_rate_limit: Optional[RateLimitSnapshot] = None

        self._user_id: Optional[str] = None
        self._user_id_lock = threading.Lock()

        logger.info(f"XApiClient initialized (auth method: {authorizer.method.value})")

    def url(self, path: str) -> str:
        """
        Construct full API URL from a path.

        Args:
            path: Endpoint path (e.g., "/users/me")

        Returns:
            Full URL under base_url
        """
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{path}"

    def _send(
        self,
        method: str,
        url: str,
        context: RequestContext,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        parser: Optional[Parser] = None,
    ) -> Any:
        """
        Make an authorized request and classify the response.

        Raises:
            AuthError: If no Authorization header can be produced
            TransportError: On network failure
            RateLimitedError: On 429
            ApiStatusError: On any other non-2xx status
            DeserializeError: If the body cannot be decoded
        """
        full_url = _with_query(url, params)
        headers = {
            "Authorization": self.authorizer.authorize(method, full_url, context=context),
            "Accept": "application/json",
        }
        if json_data is not None:
            headers["Content-Type"] = "application/json"

        logger.debug(f"{method} {full_url}")

        try:
            response = self.session.request(
                method,
                full_url,
                headers=headers,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error calling X API: {e}")
            raise TransportError(f"Network error: {e}") from e

        self.last_rate_limit = parse_rate_limit(response.headers)
        logger.debug(f"Response: {response.status_code}")
        return classify_response(response, parser)

    def bearer_get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        parser: Optional[Parser] = None,
    ) -> Any:
        """GET an app-context endpoint (bearer token preferred)."""
        return self._send("GET", url, RequestContext.APP, params=params, parser=parser)

    def oauth_get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        parser: Optional[Parser] = None,
    ) -> Any:
        """GET a user-context endpoint."""
        return self._send("GET", url, RequestContext.USER, params=params, parser=parser)

    def oauth_post(
        self,
        url: str,
        json_data: Optional[Dict[str, Any]] = None,
        parser: Optional[Parser] = None,
    ) -> Any:
        """
        POST a JSON body to a user-context endpoint.

        The JSON body is not part of an OAuth 1.0a signature.
        """
        return self._send(
            "POST", url, RequestContext.USER, json_data=json_data or {}, parser=parser
        )

    def get_my_user_id(self) -> str:
        """
        Return the authenticated user's id from GET /2/users/me.

        The id is cached after the first successful lookup.

        Raises:
            UserIdentityParseError: If the response has no data.id
        """
        with self._user_id_lock:
            if self._user_id is not None:
                return self._user_id

        try:
            body = self.oauth_get(self.url("/users/me"))
        except DeserializeError as e:
            raise UserIdentityParseError(e.raw_body) from e

        user_id = None
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            user_id = body["data"].get("id")
        if not user_id:
            raise UserIdentityParseError(str(body))

        with self._user_id_lock:
            if self._user_id is None:
                self._user_id = str(user_id)
                logger.info("Resolved authenticated user id")
            return self._user_id
