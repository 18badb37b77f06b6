"""
Token manager for X OAuth 2.0 integration.

This module manages the OAuth token lifecycle including:
- Token exchange (authorization code + PKCE verifier → access/refresh tokens)
- Token refresh (refresh token → new access token)
- Refresh shortly before expiry, serialized within and across processes
- Token validation and status checks

No automatic retry is performed: a failed exchange or refresh is reported
to the caller, who decides whether to try again.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

import requests

from .config import XOAuthConfig
from .credentials import PkceClientCredentials
from .exceptions import (
    NoRefreshTokenError,
    TokenExchangeError,
    TokenNotAvailableError,
    TokenParseError,
    TokenRefreshError,
)
from .token_storage import TokenRecord, TokenStore

logger = logging.getLogger(__name__)


class TokenRefresher:
    """
    Manages OAuth 2.0 token lifecycle.

    Responsibilities:
    - Exchange authorization codes for tokens
    - Refresh access tokens before expiry
    - Provide valid access tokens to the request authorizer
    - Track token status

    The only mutable state is the on-disk token record; it is re-read on
    every call so that refreshes made by other processes are picked up.
    """

    def __init__(
        self,
        client: PkceClientCredentials,
        config: XOAuthConfig,
        storage: Optional[TokenStore] = None,
    ):
        """
        Initialize token manager.

        Args:
            client: OAuth 2.0 client id (and optional secret)
            config: OAuth configuration
            storage: Token storage (creates default if not provided)
        """
        self.client = client
        self.config = config
        self.storage = storage or TokenStore(config.token_file)
        self._lock = threading.Lock()

    def _post_token_request(self, data: dict, error_cls: type) -> dict:
        """
        POST a form to the token endpoint.

        Confidential clients authenticate with HTTP Basic; public clients
        send only their client_id in the form.

        Raises:
            error_cls: On transport failure or non-2xx status
            TokenParseError: If the response body is not JSON
        """
        auth = None
        if self.client.client_secret:
            auth = (self.client.client_id, self.client.client_secret)

        try:
            response = requests.post(
                self.config.token_url,
                data={**data, "client_id": self.client.client_id},
                auth=auth,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error calling token endpoint: {e}")
            raise error_cls(f"Network error calling token endpoint: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Token endpoint returned {response.status_code} - {response.text}"
            )
            raise error_cls(
                f"Token request ({data.get('grant_type')}) failed with status "
                f"{response.status_code}: {response.text}"
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid response from token endpoint: {e}")
            raise TokenParseError(f"Invalid response from token endpoint: {e}") from e

    def exchange_code_for_tokens(
        self, authorization_code: str, code_verifier: str, redirect_uri: str
    ) -> TokenRecord:
        """
        Exchange authorization code for access and refresh tokens.

        This is called once after the user authorizes the application.
        The authorization code is obtained from the OAuth callback.

        Args:
            authorization_code: Code received from OAuth callback
            code_verifier: PKCE verifier matching the challenge sent earlier
            redirect_uri: Exact redirect URI used in the authorization request

        Returns:
            TokenRecord with access and (usually) refresh tokens

        Raises:
            TokenExchangeError: If exchange fails
            TokenParseError: If the response is malformed
        """
        logger.info("Exchanging authorization code for tokens")

        data = self._post_token_request(
            {
                "grant_type": "authorization_code",
                "code": authorization_code,
                "redirect_uri": redirect_uri,
                "code_verifier": code_verifier,
            },
            TokenExchangeError,
        )
        record = TokenRecord.from_token_response(data)

        self.storage.save(record)
        logger.info("Successfully obtained and saved tokens")
        return record

    def refresh(self, record: TokenRecord) -> TokenRecord:
        """
        Refresh access token using refresh token.

        The previous refresh token is kept when the response omits a new one.

        Args:
            record: Current token record

        Returns:
            New TokenRecord with fresh access token (already persisted)

        Raises:
            NoRefreshTokenError: If the record has no refresh token
            TokenRefreshError: If the token endpoint rejects the refresh
        """
        if not record.refresh_token:
            raise NoRefreshTokenError(
                "No refresh token available. Run the authorization flow again."
            )

        logger.info("Refreshing access token")

        data = self._post_token_request(
            {"grant_type": "refresh_token", "refresh_token": record.refresh_token},
            TokenRefreshError,
        )
        refreshed = TokenRecord.from_token_response(
            data, existing_refresh_token=record.refresh_token
        )

        self.storage.save(refreshed)
        logger.info("Successfully refreshed tokens")
        return refreshed

    def needs_refresh(self, record: TokenRecord, now: Optional[datetime] = None) -> bool:
        """
        Decide whether a record is stale.

        Returns:
            True iff an expiry is recorded and now + buffer >= expiry
        """
        return record.expires_within(self.config.refresh_buffer_seconds, now=now)

    def get_valid_token(self) -> TokenRecord:
        """
        Get a valid token record, refreshing if necessary.

        Check-then-refresh runs under an in-process lock and the token
        file lock, re-reading the file each time, so concurrent callers
        trigger at most one exchange.

        Returns:
            Fresh TokenRecord

        Raises:
            TokenNotAvailableError: If no tokens are stored
            NoRefreshTokenError: If the token is stale and cannot be refreshed
            TokenRefreshError: If the refresh exchange fails
        """
        with self._lock, self.storage.lock():
            record = self.storage.load()

            if record is None:
                raise TokenNotAvailableError(
                    "No tokens available. Run the authorization flow first "
                    "(python scripts/authorize_x.py)."
                )

            if self.needs_refresh(record):
                if not record.refresh_token:
                    raise NoRefreshTokenError(
                        "Access token has expired and no refresh token is stored. "
                        "Run the authorization flow again."
                    )
                logger.info(
                    f"Token expires soon "
                    f"(within {self.config.refresh_buffer_seconds}s), refreshing..."
                )
                record = self.refresh(record)

            return record

    def get_valid_access_token(self) -> str:
        """
        Get a valid access token string.

        Returns:
            Valid access token
        """
        return self.get_valid_token().access_token

    def is_authorized(self) -> bool:
        """
        Check if we have stored (possibly refreshable) tokens.

        Returns:
            True if a token file exists, False otherwise
        """
        return self.storage.exists()

    def get_token_status(self) -> dict:
        """
        Get current token status for diagnostics.

        Returns:
            Dictionary with token status information:
            - authorized: Whether we have tokens
            - expired: Whether access token is expired (if authorized)
            - expires_at: When access token expires, or None if unknown
            - expires_in_seconds: Seconds until expiry, or None if unknown
            - refreshable: Whether a refresh token is stored
        """
        record = self.storage.load()

        if record is None:
            return {"authorized": False, "message": "No tokens stored"}

        expires_in = None
        if record.expires_at is not None:
            remaining = (record.expires_at - datetime.now(timezone.utc)).total_seconds()
            expires_in = max(0, remaining)

        return {
            "authorized": True,
            "expired": record.is_expired,
            "expires_at": record.expires_at.isoformat() if record.expires_at else None,
            "expires_in_seconds": expires_in,
            "refreshable": record.refresh_token is not None,
        }

    def revoke(self) -> bool:
        """
        Delete stored tokens (local revocation).

        This removes tokens from local storage. It does NOT revoke
        tokens on X's servers.

        Returns:
            True if a token file was deleted
        """
        with self._lock:
            deleted = self.storage.delete()
        logger.info("Tokens revoked (local)")
        return deleted
