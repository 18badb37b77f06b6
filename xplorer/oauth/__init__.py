"""
Authentication module for X API v2 integration.

This module supports three mutually exclusive credential strategies:
- OAuth 1.0a HMAC-SHA1 signed user-context requests
- OAuth 2.0 Authorization Code with PKCE (browser-delegated)
- App-only static bearer token

Public API:
    CredentialStore: Layered .env/environment credential loading
    CredentialSet: Immutable credential bundle
    AuthMethod: Active strategy tag
    XOAuthConfig: OAuth configuration management
    sign: OAuth 1.0a request signing
    LoopbackCallbackServer: Local redirect listener
    PkceAuthorizationFlow: Interactive OAuth 2.0 PKCE authorization
    TokenRecord: Token data structure
    TokenStore: File-based token persistence
    TokenRefresher: Token lifecycle management
    RequestAuthorizer: Authorization header facade

Exceptions:
    XAuthError: Base exception
    CredentialError: No usable credentials
    ConfigurationError: Configuration error
    AuthError: Header could not be produced
    AuthorizationError: Authorization flow error
"""

from .auth_server import AuthorizationResult, LoopbackCallbackServer
from .authorizer import RequestAuthorizer, load_authorizer
from .config import XOAuthConfig, load_config
from .credentials import (
    CredentialSet,
    CredentialStore,
    PkceClientCredentials,
    SignedUserCredentials,
    StaticBearerCredentials,
    load_credentials,
)
from .exceptions import (
    AuthError,
    AuthorizationCancelledError,
    AuthorizationDeniedError,
    AuthorizationError,
    AuthorizationTimeoutError,
    ConfigurationError,
    CredentialError,
    CsrfMismatchError,
    MissingCodeError,
    NoAuthMethodError,
    NoCredentialsError,
    NoRefreshTokenError,
    OAuth1RequiredError,
    PortInUseError,
    TokenExchangeError,
    TokenNotAvailableError,
    TokenParseError,
    TokenRefreshError,
    TokenStorageError,
    UserIdentityParseError,
    XAuthError,
)
from .methods import AuthMethod, RequestContext, select_auth_method
from .pkce_flow import FlowState, PkceAuthorizationFlow, run_authorization_flow
from .signer import percent_encode, sign
from .token_manager import TokenRefresher
from .token_storage import TokenRecord, TokenStore

__all__ = [
    # Credentials
    "CredentialSet",
    "CredentialStore",
    "PkceClientCredentials",
    "SignedUserCredentials",
    "StaticBearerCredentials",
    "load_credentials",
    # Strategy selection
    "AuthMethod",
    "RequestContext",
    "select_auth_method",
    # Configuration
    "XOAuthConfig",
    "load_config",
    # Signing
    "sign",
    "percent_encode",
    # Authorization flow
    "AuthorizationResult",
    "LoopbackCallbackServer",
    "FlowState",
    "PkceAuthorizationFlow",
    "run_authorization_flow",
    # Tokens
    "TokenRecord",
    "TokenStore",
    "TokenRefresher",
    # Authorizer
    "RequestAuthorizer",
    "load_authorizer",
    # Exceptions
    "XAuthError",
    "CredentialError",
    "NoCredentialsError",
    "ConfigurationError",
    "AuthError",
    "NoAuthMethodError",
    "TokenNotAvailableError",
    "NoRefreshTokenError",
    "OAuth1RequiredError",
    "AuthorizationError",
    "CsrfMismatchError",
    "MissingCodeError",
    "AuthorizationDeniedError",
    "PortInUseError",
    "AuthorizationTimeoutError",
    "AuthorizationCancelledError",
    "TokenExchangeError",
    "TokenRefreshError",
    "TokenStorageError",
    "TokenParseError",
    "UserIdentityParseError",
]
