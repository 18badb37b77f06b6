"""
Request authorization for X API calls.

This module provides the main interface consumed by the HTTP layer: given
an HTTP method and URL it returns the exact ``Authorization`` header value
for the active strategy, transparently refreshing OAuth 2.0 tokens when
needed.

Example:
    authorizer = RequestAuthorizer.from_environment()
    header = authorizer.authorize("GET", "https://api.x.com/2/users/me")
    response = requests.get(url, headers={"Authorization": header})
"""

import logging
from typing import Optional

from .config import XOAuthConfig, load_config
from .credentials import CredentialSet, CredentialStore
from .exceptions import NoAuthMethodError, OAuth1RequiredError, XAuthError
from .methods import AuthMethod, RequestContext, ensure_method_available, select_auth_method
from .pkce_flow import PkceAuthorizationFlow
from .signer import Params, sign
from .token_manager import TokenRefresher

logger = logging.getLogger(__name__)


class RequestAuthorizer:
    """
    Produces Authorization headers for the active strategy.

    Credentials and strategy are immutable after construction; the only
    mutable state (the OAuth 2.0 token) lives on disk behind the
    TokenRefresher, which serializes refreshes on its own lock.
    """

    def __init__(
        self,
        credentials: CredentialSet,
        method: Optional[AuthMethod] = None,
        config: Optional[XOAuthConfig] = None,
        refresher: Optional[TokenRefresher] = None,
    ):
        """
        Initialize request authorizer.

        Args:
            credentials: Loaded credential bundle
            method: Strategy to use (selected from credentials if not given)
            config: OAuth configuration (defaults if not given)
            refresher: Token manager for the PKCE strategy (created if needed)

        Raises:
            NoAuthMethodError: If the strategy's credentials are not configured
        """
        self.credentials = credentials
        self.method = method or select_auth_method(credentials)
        ensure_method_available(self.method, credentials)
        self.config = config or XOAuthConfig()

        self.refresher = refresher
        if self.refresher is None and credentials.pkce_client is not None:
            self.refresher = TokenRefresher(credentials.pkce_client, self.config)

    @classmethod
    def from_environment(
        cls,
        config: Optional[XOAuthConfig] = None,
        store: Optional[CredentialStore] = None,
    ) -> "RequestAuthorizer":
        """
        Load credentials and configuration, then select the strategy.

        Raises:
            NoCredentialsError: If no credentials are configured
            ConfigurationError: If the config file is invalid
        """
        credentials = (store or CredentialStore()).load()
        return cls(credentials, config=config or load_config())

    @property
    def app_bearer_token(self) -> Optional[str]:
        """App-only bearer token, if any is configured."""
        signed = self.credentials.signed_user
        if signed is not None and signed.bearer_token:
            return signed.bearer_token
        if self.credentials.static_bearer is not None:
            return self.credentials.static_bearer.bearer_token
        return None

    def authorize(
        self,
        http_method: str,
        url: str,
        params: Optional[Params] = None,
        context: RequestContext = RequestContext.USER,
    ) -> str:
        """
        Return the Authorization header value for a request.

        Args:
            http_method: HTTP method
            url: Full request URL
            params: Form parameters to include in an OAuth 1.0a signature
            context: USER for user-scoped calls, APP to prefer an app bearer token

        Returns:
            Header value ("OAuth ..." or "Bearer ...")

        Raises:
            OAuth1RequiredError: If a user-context call has no user-scoped credential
            NoAuthMethodError: If no token is stored or it cannot be refreshed
        """
        if context is RequestContext.APP and self.app_bearer_token:
            return self.bearer_header()
        return self.user_header(http_method, url, params)

    def user_header(
        self, http_method: str, url: str, params: Optional[Params] = None
    ) -> str:
        """Header carrying the active strategy's user-scoped credential."""
        if self.method is AuthMethod.SIGNED_USER_CONTEXT:
            return self.signed_header(http_method, url, params)
        elif self.method is AuthMethod.PKCE_DELEGATED:
            return self.pkce_header()
        elif self.method is AuthMethod.STATIC_BEARER_ONLY:
            raise OAuth1RequiredError(
                "This endpoint requires user context; configure OAuth 1.0a "
                "credentials or X_CLIENT_ID for OAuth 2.0"
            )
        raise NoAuthMethodError(f"Unsupported auth method: {self.method!r}")

    def bearer_header(self) -> str:
        """
        Return a ``Bearer <token>`` header for app-context endpoints.

        Raises:
            NoAuthMethodError: If no bearer token is configured
        """
        token = self.app_bearer_token
        if token is None:
            raise NoAuthMethodError("No bearer token configured")
        return f"Bearer {token}"

    def signed_header(
        self, http_method: str, url: str, params: Optional[Params] = None
    ) -> str:
        """
        Return an OAuth 1.0a header.

        Raises:
            OAuth1RequiredError: If signed-user credentials are not configured
        """
        if self.credentials.signed_user is None:
            raise OAuth1RequiredError("OAuth 1.0a credentials required for this endpoint")
        return sign(http_method, url, self.credentials.signed_user, params)

    def pkce_header(self) -> str:
        """
        Return a bearer header from the stored OAuth 2.0 token, refreshing first if stale.

        Raises:
            NoAuthMethodError: If OAuth 2.0 is not configured or no usable token exists
        """
        if self.refresher is None:
            raise NoAuthMethodError("OAuth 2.0 client credentials are not configured")
        return f"Bearer {self.refresher.get_valid_access_token()}"

    def has_stored_tokens(self) -> bool:
        """True if an OAuth 2.0 token file exists."""
        return self.refresher is not None and self.refresher.is_authorized()

    def authorization_flow(self, open_browser: bool = True) -> PkceAuthorizationFlow:
        """
        Build the interactive PKCE flow for the configured client.

        Raises:
            NoAuthMethodError: If X_CLIENT_ID is not configured
        """
        if self.credentials.pkce_client is None or self.refresher is None:
            raise NoAuthMethodError(
                "OAuth 2.0 PKCE requires X_CLIENT_ID (and optionally X_CLIENT_SECRET)"
            )
        return PkceAuthorizationFlow(
            self.credentials.pkce_client,
            self.config,
            token_manager=self.refresher,
            open_browser=open_browser,
        )


def load_authorizer(
    config: Optional[XOAuthConfig] = None,
    store: Optional[CredentialStore] = None,
) -> Optional[RequestAuthorizer]:
    """
    Build an authorizer at startup, degrading instead of aborting.

    Returns:
        RequestAuthorizer, or None when credentials/auth setup failed
        (a warning is logged and the caller runs without API access)
    """
    try:
        authorizer = RequestAuthorizer.from_environment(config=config, store=store)
    except XAuthError as e:
        logger.warning(f"No credentials / auth setup failed: {e}. Running without API access.")
        return None

    logger.info(f"Auth initialized (method: {authorizer.method.value})")
    if authorizer.method is AuthMethod.PKCE_DELEGATED and not authorizer.has_stored_tokens():
        logger.warning("No OAuth 2.0 tokens stored. Run: python scripts/authorize_x.py")
    return authorizer
