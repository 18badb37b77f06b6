"""
Loopback OAuth callback server for X API integration.

This module provides a temporary local HTTP listener that captures the
browser redirect at the end of the OAuth 2.0 authorization step. It binds
to 127.0.0.1 only and serves requests one at a time until the callback
path is hit, the deadline passes, or the caller cancels.

Requests for any other path (favicon, browser prefetch) get a 404 and the
server keeps waiting.
"""

import errno
import logging
import socket
import threading
import time
from dataclasses import dataclass
from typing import Optional

from flask import Flask, Response, request
from markupsafe import escape
from werkzeug.serving import BaseWSGIServer, WSGIRequestHandler, make_server

from .config import XOAuthConfig
from .exceptions import (
    AuthorizationCancelledError,
    AuthorizationError,
    AuthorizationTimeoutError,
    PortInUseError,
)

logger = logging.getLogger(__name__)

_PAGE = """<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 50px auto; padding: 20px;">
    <h1 style="color: {color};">{title}</h1>
    {body}
    <p style="margin-top: 30px; color: #666;">You can close this window and return to the terminal.</p>
</body>
</html>"""


class CallbackRequestHandler(WSGIRequestHandler):
    """WSGI handler whose socket reads time out after the server's connection_timeout."""

    def setup(self) -> None:
        self.timeout = getattr(self.server, "connection_timeout", None)
        super().setup()


@dataclass
class AuthorizationResult:
    """
    Query parameters captured from the OAuth callback.

    Attributes:
        code: Authorization code (if the provider sent one)
        state: Anti-forgery state echoed back by the provider
        error: Error code from OAuth provider (if authorization failed)
        error_description: Human-readable error description
    """

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


class LoopbackCallbackServer:
    """
    Local HTTP server to handle the OAuth redirect.

    The server:
    1. Binds a loopback listener (bind())
    2. Serves requests sequentially (wait_for_callback())
    3. Stops after the first request to the callback path
    4. Releases the socket (close())

    Example:
        with LoopbackCallbackServer(config) as server:
            redirect_uri = server.redirect_uri
            ...  # send the user to the provider
            result = server.wait_for_callback(timeout=300)
    """

    def __init__(
        self,
        config: XOAuthConfig,
        expected_state: Optional[str] = None,
        poll_interval: float = 0.5,
        connection_timeout: float = 5.0,
    ):
        """
        Initialize callback server.

        Args:
            config: OAuth configuration (host, port, callback path)
            expected_state: CSRF token, used only to pick the page shown to the user
            poll_interval: Seconds between cancellation/deadline checks
            connection_timeout: Seconds an accepted connection may stay silent
                                before it is dropped
        """
        self.config = config
        self.expected_state = expected_state
        self.poll_interval = poll_interval
        self.connection_timeout = connection_timeout
        self.result: Optional[AuthorizationResult] = None
        self.port: Optional[int] = None
        self._server: Optional[BaseWSGIServer] = None

        self.app = Flask(__name__)
        self.app.logger.setLevel(logging.WARNING)

        self.app.add_url_rule(
            self.config.callback_path,
            "oauth_callback",
            self._handle_callback,
            methods=["GET"],
        )

    @property
    def redirect_uri(self) -> str:
        """Redirect URI for the bound port."""
        if self.port is None:
            raise AuthorizationError("Callback server is not bound")
        return self.config.redirect_uri(self.port)

    def _handle_callback(self) -> Response:
        """Record the callback query and answer the browser."""
        if request.method == "HEAD":
            return Response(status=200, content_type="text/html")

        logger.info("Received OAuth callback")

        self.result = AuthorizationResult(
            code=request.args.get("code"),
            state=request.args.get("state"),
            error=request.args.get("error"),
            error_description=request.args.get("error_description"),
        )

        if self.result.error:
            logger.error(f"OAuth error: {self.result.error}")
            body = (
                f"<p><strong>Error:</strong> {escape(self.result.error)}</p>"
                f"<p><strong>Description:</strong> "
                f"{escape(self.result.error_description or 'Unknown error')}</p>"
            )
            return self._page("Authorization Failed", body, status=400)

        if self.expected_state is not None and self.result.state != self.expected_state:
            logger.error("OAuth callback state does not match")
            body = "<p>The authorization response could not be verified. Please try again.</p>"
            return self._page("Authorization Failed", body, status=400)

        if not self.result.code:
            logger.error("No authorization code in callback")
            body = "<p>No authorization code received from X.</p>"
            return self._page("Authorization Failed", body, status=400)

        return self._page(
            "Authorization Successful",
            "<p>xplorertui has been authorized to access your X account.</p>",
            status=200,
        )

    @staticmethod
    def _page(title: str, body: str, status: int) -> Response:
        color = "#4caf50" if status == 200 else "#d32f2f"
        return Response(
            _PAGE.format(title=title, color=color, body=body),
            status=status,
            content_type="text/html",
        )

    def bind(self) -> int:
        """
        Bind the loopback listener.

        Returns:
            The bound port (OS-assigned when callback_port is 0)

        Raises:
            PortInUseError: If the configured port is already in use
            AuthorizationError: For any other bind failure
        """
        host = self.config.callback_host
        port = self.config.callback_port

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind((host, port))
            sock.listen(5)
            self.port = sock.getsockname()[1]
            self._server = make_server(
                host,
                self.port,
                self.app,
                request_handler=CallbackRequestHandler,
                fd=sock.fileno(),
            )
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                logger.error(f"Callback port {port} is already in use")
                raise PortInUseError(port) from e
            raise AuthorizationError(
                f"Could not bind callback listener on {host}:{port}: {e}"
            ) from e
        finally:
            # make_server duplicates the descriptor
            sock.close()

        self._server.timeout = self.poll_interval
        self._server.connection_timeout = self.connection_timeout
        logger.info(f"OAuth callback server listening on {self.redirect_uri}")
        return self.port

    def wait_for_callback(
        self,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AuthorizationResult:
        """
        Serve requests until the callback path is hit.

        Args:
            timeout: Maximum seconds to wait (None or 0 waits indefinitely)
            cancel_event: Set from another thread to abandon the wait

        Returns:
            AuthorizationResult captured from the callback query

        Raises:
            AuthorizationTimeoutError: If the deadline passes first
            AuthorizationCancelledError: If cancel_event is set first
            AuthorizationError: If the server is not bound or the socket fails
        """
        if self._server is None:
            raise AuthorizationError("Callback server is not bound")

        deadline = time.monotonic() + timeout if timeout else None
        logger.info(f"Waiting for OAuth callback (timeout: {timeout or 'none'})")

        while self.result is None:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Authorization wait cancelled")
                raise AuthorizationCancelledError("Authorization was cancelled")

            if deadline is not None and time.monotonic() >= deadline:
                logger.warning(f"Timeout waiting for callback after {timeout}s")
                raise AuthorizationTimeoutError(
                    f"No callback received within {timeout} seconds. "
                    f"Please ensure you completed the authorization in your browser."
                )

            try:
                self._server.handle_request()
            except OSError as e:
                raise AuthorizationError(f"Callback listener failed: {e}") from e

        return self.result

    def close(self) -> None:
        """Release the listening socket."""
        if self._server is not None:
            self._server.server_close()
            self._server = None
            logger.info("OAuth callback server shut down")

    def __enter__(self) -> "LoopbackCallbackServer":
        self.bind()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
