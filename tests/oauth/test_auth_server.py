"""Tests for the loopback OAuth callback server."""

import socket
import threading
import time

import pytest
import requests

from xplorer.oauth.auth_server import AuthorizationResult, LoopbackCallbackServer
from xplorer.oauth.config import XOAuthConfig
from xplorer.oauth.exceptions import (
    AuthorizationCancelledError,
    AuthorizationError,
    AuthorizationTimeoutError,
    PortInUseError,
)


@pytest.fixture
def config(tmp_path):
    """Config with an OS-assigned callback port."""
    return XOAuthConfig(callback_port=0, token_file=str(tmp_path / "tokens.json"))


def fetch_in_background(*urls):
    """GET each URL in order from a worker thread."""
    responses = []
    session = requests.Session()
    session.trust_env = False

    def worker():
        for url in urls:
            responses.append(session.get(url, timeout=5))

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread, responses


class TestAuthorizationResult:
    def test_defaults(self):
        result = AuthorizationResult()
        assert result.code is None
        assert result.state is None
        assert result.error is None
        assert result.error_description is None


class TestCallbackHandler:
    """Tests for the callback route, using Flask's test client."""

    def test_success(self, config):
        server = LoopbackCallbackServer(config, expected_state="s1")

        response = server.app.test_client().get("/callback?code=auth_code_123&state=s1")

        assert response.status_code == 200
        assert "text/html" in response.content_type
        assert "Authorization Successful" in response.get_data(as_text=True)
        assert server.result == AuthorizationResult(code="auth_code_123", state="s1")

    def test_provider_error(self, config):
        server = LoopbackCallbackServer(config, expected_state="s1")

        response = server.app.test_client().get(
            "/callback?error=access_denied&error_description=User%20denied&state=s1"
        )

        assert response.status_code == 400
        assert "Authorization Failed" in response.get_data(as_text=True)
        assert server.result.error == "access_denied"
        assert server.result.error_description == "User denied"
        assert server.result.code is None

    def test_error_is_html_escaped(self, config):
        server = LoopbackCallbackServer(config)

        response = server.app.test_client().get("/callback?error=%3Cscript%3E")

        body = response.get_data(as_text=True)
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_state_mismatch(self, config):
        server = LoopbackCallbackServer(config, expected_state="expected")

        response = server.app.test_client().get("/callback?code=abc&state=forged")

        assert response.status_code == 400
        assert server.result.state == "forged"

    def test_missing_code(self, config):
        server = LoopbackCallbackServer(config)

        response = server.app.test_client().get("/callback")

        assert response.status_code == 400
        assert server.result == AuthorizationResult()

    def test_head_request_not_recorded(self, config):
        """A HEAD probe of the callback URL leaves the wait running."""
        server = LoopbackCallbackServer(config, expected_state="s")

        response = server.app.test_client().head("/callback?code=c&state=s")

        assert response.status_code == 200
        assert server.result is None

    def test_other_paths_not_found(self, config):
        """Unrelated requests get 404 and are not recorded."""
        server = LoopbackCallbackServer(config)

        response = server.app.test_client().get("/favicon.ico")

        assert response.status_code == 404
        assert server.result is None

    def test_custom_callback_path(self, tmp_path):
        config = XOAuthConfig(callback_port=0, callback_path="/oauth/done")
        server = LoopbackCallbackServer(config)

        assert server.app.test_client().get("/oauth/done?code=x").status_code == 200
        assert server.app.test_client().get("/callback?code=x").status_code == 404


class TestLoopbackListener:
    """Tests for binding and serving over a real socket."""

    def test_redirect_uri_requires_bind(self, config):
        server = LoopbackCallbackServer(config)
        with pytest.raises(AuthorizationError, match="not bound"):
            server.redirect_uri

    def test_wait_requires_bind(self, config):
        server = LoopbackCallbackServer(config)
        with pytest.raises(AuthorizationError, match="not bound"):
            server.wait_for_callback(timeout=1)

    def test_ephemeral_port(self, config):
        with LoopbackCallbackServer(config) as server:
            assert server.port > 0
            assert server.redirect_uri == f"http://127.0.0.1:{server.port}/callback"

    def test_receives_callback(self, config):
        with LoopbackCallbackServer(config, expected_state="xyz-state") as server:
            thread, responses = fetch_in_background(
                f"{server.redirect_uri}?code=the-code&state=xyz-state"
            )
            result = server.wait_for_callback(timeout=5)
            thread.join(timeout=5)

        assert result.code == "the-code"
        assert result.state == "xyz-state"
        assert responses[0].status_code == 200

    def test_ignores_unrelated_requests(self, config):
        """A favicon request is answered with 404 and the wait continues."""
        with LoopbackCallbackServer(config) as server:
            base = f"http://127.0.0.1:{server.port}"
            thread, responses = fetch_in_background(
                f"{base}/favicon.ico",
                f"{base}/callback?code=abc&state=s",
            )
            result = server.wait_for_callback(timeout=5)
            thread.join(timeout=5)

        assert [r.status_code for r in responses] == [404, 200]
        assert result.code == "abc"

    def test_port_in_use(self, config):
        """Binding an occupied port raises PortInUseError."""
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        try:
            busy_config = XOAuthConfig(callback_port=port, token_file=config.token_file)
            server = LoopbackCallbackServer(busy_config)
            with pytest.raises(PortInUseError) as exc_info:
                server.bind()
            assert exc_info.value.port == port
        finally:
            blocker.close()

    def test_timeout(self, config):
        with LoopbackCallbackServer(config, poll_interval=0.05) as server:
            with pytest.raises(AuthorizationTimeoutError):
                server.wait_for_callback(timeout=0.2)

    def test_idle_connection_does_not_block_timeout(self, config):
        """A client that connects and sends nothing cannot stall the deadline."""
        server = LoopbackCallbackServer(config, poll_interval=0.05, connection_timeout=0.2)
        server.bind()
        idle = socket.create_connection(("127.0.0.1", server.port))

        try:
            started = time.monotonic()
            with pytest.raises(AuthorizationTimeoutError):
                server.wait_for_callback(timeout=0.5)
            assert time.monotonic() - started < 3
        finally:
            idle.close()
            server.close()

    def test_idle_connection_then_callback(self, config):
        """After an idle connection is dropped the real redirect is still served."""
        with LoopbackCallbackServer(config, poll_interval=0.05, connection_timeout=0.2) as server:
            idle = socket.create_connection(("127.0.0.1", server.port))
            try:
                thread, responses = fetch_in_background(
                    f"{server.redirect_uri}?code=late-code&state=s"
                )
                result = server.wait_for_callback(timeout=5)
                thread.join(timeout=5)
            finally:
                idle.close()

        assert result.code == "late-code"
        assert responses[0].status_code == 200

    def test_cancel(self, config):
        cancel = threading.Event()
        timer = threading.Timer(0.1, cancel.set)
        timer.start()

        try:
            with LoopbackCallbackServer(config, poll_interval=0.05) as server:
                with pytest.raises(AuthorizationCancelledError):
                    server.wait_for_callback(timeout=10, cancel_event=cancel)
        finally:
            timer.cancel()

    def test_close_releases_port(self, config):
        server = LoopbackCallbackServer(config)
        port = server.bind()
        server.close()

        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            probe.bind(("127.0.0.1", port))
        finally:
            probe.close()

    def test_close_is_idempotent(self, config):
        server = LoopbackCallbackServer(config)
        server.bind()
        server.close()
        server.close()
