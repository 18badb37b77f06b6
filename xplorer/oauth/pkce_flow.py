"""
OAuth 2.0 Authorization Code flow with PKCE for X API v2.

This module runs the one-time interactive authorization:

1. Bind a loopback listener for the redirect
2. Generate the PKCE verifier/challenge and CSRF state
3. Open the user's browser at the X authorization page
4. Wait for the redirect callback (bounded by deadline/cancel event)
5. Validate state and code
6. Exchange the code for tokens and persist them

Nothing is persisted unless every step succeeds.
"""

import logging
import threading
import webbrowser
from enum import Enum
from typing import Callable, Optional
from urllib.parse import urlencode

from .auth_server import AuthorizationResult, LoopbackCallbackServer
from .config import XOAuthConfig
from .credentials import PkceClientCredentials
from .exceptions import (
    AuthorizationDeniedError,
    CsrfMismatchError,
    MissingCodeError,
)
from .pkce import generate_pkce_pair, generate_state
from .token_manager import TokenRefresher
from .token_storage import TokenRecord

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    """Authorization flow progress."""

    IDLE = "idle"
    LISTENER_BOUND = "listener_bound"
    AWAITING_REDIRECT = "awaiting_redirect"
    CODE_RECEIVED = "code_received"
    EXCHANGING = "exchanging"
    COMPLETE = "complete"
    FAILED = "failed"


def build_authorization_url(
    config: XOAuthConfig,
    client_id: str,
    redirect_uri: str,
    code_challenge: str,
    state: str,
) -> str:
    """
    Generate the X authorization URL.

    Returns:
        Complete authorization URL with query parameters
    """
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": " ".join(config.scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{config.authorization_url}?{urlencode(params)}"


def validate_callback(result: AuthorizationResult, expected_state: str) -> str:
    """
    Check a captured callback against the generated CSRF state.

    Args:
        result: Query parameters captured by the callback server
        expected_state: State generated for this flow

    Returns:
        The authorization code

    Raises:
        CsrfMismatchError: If state is absent or differs
        AuthorizationDeniedError: If the provider returned an OAuth error
        MissingCodeError: If no code was delivered
    """
    if not result.state or result.state != expected_state:
        raise CsrfMismatchError("CSRF state mismatch in OAuth callback")

    if result.error:
        raise AuthorizationDeniedError(result.error, result.error_description)

    if not result.code:
        raise MissingCodeError("Callback missing authorization code")

    return result.code


class PkceAuthorizationFlow:
    """
    Interactive OAuth 2.0 PKCE authorization.

    Example:
        flow = PkceAuthorizationFlow(client, config)
        record = flow.run()
        assert flow.state is FlowState.COMPLETE
    """

    def __init__(
        self,
        client: PkceClientCredentials,
        config: XOAuthConfig,
        token_manager: Optional[TokenRefresher] = None,
        browser_opener: Optional[Callable[[str], bool]] = None,
        open_browser: bool = True,
    ):
        """
        Initialize authorization flow.

        Args:
            client: OAuth 2.0 client credentials
            config: OAuth configuration
            token_manager: Token manager used for the code exchange
            browser_opener: Callable that opens a URL (default: webbrowser.open)
            open_browser: Whether to try opening the browser at all
        """
        self.client = client
        self.config = config
        self.token_manager = token_manager or TokenRefresher(client, config)
        self.browser_opener = browser_opener or webbrowser.open
        self.open_browser = open_browser
        self.state = FlowState.IDLE
        self.authorization_url: Optional[str] = None

    def _launch_browser(self, url: str) -> None:
        """Open the browser, printing the URL when that is not possible."""
        print("\n" + "=" * 70)
        print("X OAUTH 2.0 AUTHORIZATION")
        print("=" * 70)

        opened = False
        if self.open_browser:
            try:
                opened = bool(self.browser_opener(url))
            except Exception as e:
                logger.warning(f"Could not open browser automatically: {e}")

        if opened:
            print("\nOpened your browser for authorization.")
            print("If nothing happened, visit:")
        else:
            print("\nPlease authorize the application by visiting:")
        print(f"\n  {url}\n")
        print("Waiting for authorization...")
        print("=" * 70 + "\n")

    def run(
        self,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> TokenRecord:
        """
        Run the complete authorization flow.

        Args:
            cancel_event: Set from another thread to abandon waiting
            timeout: Seconds to wait for the redirect
                     (defaults to config.authorization_timeout)

        Returns:
            Persisted TokenRecord

        Raises:
            PortInUseError: If the callback port is taken
            CsrfMismatchError: If the callback state does not match
            MissingCodeError: If the callback has no code
            AuthorizationDeniedError: If the user or provider refused
            AuthorizationTimeoutError: If no callback arrived in time
            AuthorizationCancelledError: If cancel_event was set
            TokenExchangeError: If the code exchange fails
        """
        wait_timeout = self.config.authorization_timeout if timeout is None else timeout
        verifier, challenge = generate_pkce_pair()
        csrf_state = generate_state()

        server = LoopbackCallbackServer(self.config, expected_state=csrf_state)
        try:
            server.bind()
            self.state = FlowState.LISTENER_BOUND

            redirect_uri = server.redirect_uri
            self.authorization_url = build_authorization_url(
                self.config, self.client.client_id, redirect_uri, challenge, csrf_state
            )

            logger.info("Opening browser for authorization")
            self._launch_browser(self.authorization_url)

            self.state = FlowState.AWAITING_REDIRECT
            result = server.wait_for_callback(
                timeout=wait_timeout, cancel_event=cancel_event
            )
        except Exception:
            self.state = FlowState.FAILED
            raise
        finally:
            server.close()

        try:
            code = validate_callback(result, csrf_state)
            self.state = FlowState.CODE_RECEIVED

            self.state = FlowState.EXCHANGING
            record = self.token_manager.exchange_code_for_tokens(
                code, verifier, redirect_uri
            )
        except Exception as e:
            self.state = FlowState.FAILED
            logger.error(f"Authorization flow failed: {e}")
            raise

        self.state = FlowState.COMPLETE
        logger.info("Authorization flow completed successfully")
        return record


def run_authorization_flow(
    client: PkceClientCredentials,
    config: XOAuthConfig,
    open_browser: bool = True,
    cancel_event: Optional[threading.Event] = None,
) -> TokenRecord:
    """
    Run the complete OAuth 2.0 PKCE authorization flow.

    Args:
        client: OAuth 2.0 client credentials
        config: OAuth configuration
        open_browser: Whether to automatically open browser (default: True)
        cancel_event: Optional cancellation signal

    Returns:
        Persisted TokenRecord
    """
    flow = PkceAuthorizationFlow(client, config, open_browser=open_browser)
    return flow.run(cancel_event=cancel_event)
