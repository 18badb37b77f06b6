"""
Authentication exception classes for X API integration.

This module defines the exception hierarchy for credential loading,
strategy selection, the PKCE authorization flow and token lifecycle errors,
providing clear error messages and recovery guidance.
"""

from typing import Optional


class XAuthError(Exception):
    """Base exception for all X authentication errors."""

    pass


class CredentialError(XAuthError):
    """No usable credential bundle could be loaded."""

    pass


class NoCredentialsError(CredentialError):
    """No credential slot could be populated from env or .env files."""

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "No credentials found; set X_API_KEY/X_CLIENT_ID/X_BEARER_TOKEN "
            "in the environment or in ~/.config/xplorertui/.env"
        )


class ConfigurationError(XAuthError):
    """OAuth configuration error (missing or invalid configuration)."""

    pass


class AuthError(XAuthError):
    """Base class for errors raised while producing an authorization header."""

    pass


class NoAuthMethodError(AuthError):
    """No strategy is selectable or usable for the requested scope."""

    pass


class TokenNotAvailableError(NoAuthMethodError):
    """No stored OAuth 2.0 tokens (run the authorization flow first)."""

    pass


class NoRefreshTokenError(NoAuthMethodError):
    """Access token is stale and no refresh token is available."""

    pass


class OAuth1RequiredError(AuthError):
    """A user-context call requires signed-user (OAuth 1.0a) credentials."""

    pass


class AuthorizationError(AuthError):
    """OAuth authorization flow error."""

    pass


class CsrfMismatchError(AuthorizationError):
    """Callback `state` is absent or does not match the generated token."""

    pass


class MissingCodeError(AuthorizationError):
    """Callback did not carry an authorization code."""

    pass


class AuthorizationDeniedError(AuthorizationError):
    """
    Provider redirected back with an OAuth error (e.g. access_denied).

    Attributes:
        error: OAuth error code from the callback
        error_description: Human-readable description, if the provider sent one
    """

    def __init__(self, error: str, error_description: Optional[str] = None):
        message = f"Authorization denied: {error}"
        if error_description:
            message += f" - {error_description}"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class PortInUseError(AuthorizationError):
    """
    Loopback callback port is already bound by another process.

    Attributes:
        port: The port that could not be bound
    """

    def __init__(self, port: int):
        super().__init__(
            f"Port {port} is already in use. Stop the program using it or "
            f"set oauth.callback_port (XPLORER_CALLBACK_PORT) to a free port."
        )
        self.port = port


class AuthorizationTimeoutError(AuthorizationError):
    """No callback was received before the deadline."""

    pass


class AuthorizationCancelledError(AuthorizationError):
    """Waiting for the callback was cancelled by the caller."""

    pass


class TokenExchangeError(AuthError):
    """Failed to exchange authorization code for tokens."""

    pass


class TokenRefreshError(AuthError):
    """Failed to refresh access token using refresh token."""

    pass


class TokenStorageError(AuthError):
    """Token storage operation failed (file I/O error)."""

    pass


class TokenParseError(AuthError):
    """Malformed token file or token endpoint response."""

    pass


class UserIdentityParseError(AuthError):
    """
    The identity lookup response did not contain a user id.

    Attributes:
        body: Raw response body, for diagnostics
    """

    def __init__(self, body: str):
        super().__init__(f"Failed to parse /2/users/me response: {body}")
        self.body = body
