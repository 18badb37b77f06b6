#!/usr/bin/env python3
"""
X OAuth 2.0 Authorization Script

This script runs the one-time OAuth 2.0 PKCE authorization flow with X.
It starts a loopback listener on 127.0.0.1, opens your browser at the X
authorization page and waits for the redirect.

After successful authorization, tokens are saved to:
    ~/.config/xplorertui/tokens.json

Applications using the xplorer package will then read and refresh these
tokens as needed.

Usage:
    # Run authorization flow
    python scripts/authorize_x.py

    # Show current token status
    python scripts/authorize_x.py --status

    # Delete stored tokens
    python scripts/authorize_x.py --revoke

Prerequisites:
    - X_CLIENT_ID (and X_CLIENT_SECRET for confidential clients) set in the
      environment or in ~/.config/xplorertui/.env
    - The redirect URI http://127.0.0.1:8477/callback registered for the app
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from xplorer.oauth.config import XOAuthConfig, load_config
from xplorer.oauth.credentials import CredentialStore
from xplorer.oauth.exceptions import (
    AuthorizationError,
    ConfigurationError,
    CredentialError,
    XAuthError,
)
from xplorer.oauth.pkce_flow import PkceAuthorizationFlow
from xplorer.oauth.token_manager import TokenRefresher

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def format_time_remaining(seconds: float) -> str:
    """Format seconds as e.g. "2h 15m", "45m" or "expired"."""
    if seconds <= 0:
        return "expired"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)

    if hours > 0:
        return f"{hours}h {minutes}m"
    elif minutes > 0:
        return f"{minutes}m"
    else:
        return f"{int(seconds)}s"


def build_refresher(port=None) -> TokenRefresher:
    """
    Load config and OAuth 2.0 client credentials.

    Raises:
        ConfigurationError: If the config is invalid or X_CLIENT_ID is missing
        CredentialError: If no credentials are configured at all
    """
    config: XOAuthConfig = load_config()
    if port is not None:
        config = dataclasses.replace(config, callback_port=port)

    credentials = CredentialStore().load()
    if credentials.pkce_client is None:
        raise ConfigurationError(
            "X_CLIENT_ID is not set. OAuth 2.0 authorization needs a client id."
        )
    return TokenRefresher(credentials.pkce_client, config)


def confirm(prompt: str) -> bool:
    """Ask a yes/no question on stdin."""
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def show_status() -> int:
    """
    Display authorization status.

    Returns:
        Exit code (0 if authorized, 1 if not authorized, 2 on error)
    """
    try:
        refresher = build_refresher()
        status = refresher.get_token_status()
    except XAuthError as e:
        logger.error(f"Error reading authorization status: {e}")
        return 2

    print(f"Token file: {refresher.storage.token_file}")
    if not status["authorized"]:
        print("Status:     NOT AUTHORIZED")
        print("Run: python scripts/authorize_x.py")
        return 1

    print("Status:     AUTHORIZED")
    if status["expires_in_seconds"] is None:
        print("Expires:    unknown")
    else:
        remaining = format_time_remaining(status["expires_in_seconds"])
        print(f"Expires:    {status['expires_at']} ({remaining})")
    print(f"Refreshable: {'yes' if status['refreshable'] else 'no'}")
    return 0


def revoke() -> int:
    """
    Delete stored tokens.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        refresher = build_refresher()
        if not refresher.revoke():
            logger.info("No authorization found to revoke")
            return 0
    except XAuthError as e:
        logger.error(f"Error revoking authorization: {e}")
        return 1

    logger.info("Authorization revoked")
    logger.info(f"   Token file deleted: {refresher.storage.token_file}")
    logger.info("Run this script again to re-authorize")
    return 0


def authorize(open_browser: bool = True, port=None, force: bool = False) -> int:
    """
    Run the authorization flow.

    Returns:
        Exit code (0 for success, 1 for failure, 130 if interrupted)
    """
    try:
        refresher = build_refresher(port)

        if refresher.is_authorized() and not force:
            logger.info("Tokens are already stored.")
            if not confirm("Re-authorize and replace them?"):
                logger.info("Keeping existing tokens")
                return 0

        logger.info("Starting OAuth 2.0 authorization flow...")
        flow = PkceAuthorizationFlow(
            refresher.client,
            refresher.config,
            token_manager=refresher,
            open_browser=open_browser,
        )
        flow.run()

    except (ConfigurationError, CredentialError) as e:
        logger.error(f"Configuration error: {e}")
        logger.error("")
        logger.error("Please set X_CLIENT_ID (and X_CLIENT_SECRET if your app is confidential)")
        logger.error("in the environment or in ~/.config/xplorertui/.env")
        return 1
    except AuthorizationError as e:
        logger.error(f"Authorization failed: {e}")
        return 1
    except XAuthError as e:
        logger.error(f"Token exchange failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.error("Authorization interrupted")
        return 130

    logger.info("Authorization successful!")
    logger.info(f"   Tokens saved to: {refresher.storage.token_file}")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="X OAuth 2.0 (PKCE) authorization",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run authorization flow
  python scripts/authorize_x.py

  # Print the URL instead of opening a browser
  python scripts/authorize_x.py --no-browser

  # Show token status
  python scripts/authorize_x.py --status

  # Revoke existing authorization
  python scripts/authorize_x.py --revoke
        """,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--status",
        action="store_true",
        help="Show current authorization status",
    )
    group.add_argument(
        "--revoke",
        action="store_true",
        help="Delete stored tokens",
    )
    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't automatically open browser (display URL only)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Callback port (default: 8477 or XPLORER_CALLBACK_PORT; 0 for any free port)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-authorize without asking when tokens already exist",
    )

    args = parser.parse_args(argv)

    if args.status:
        return show_status()
    if args.revoke:
        return revoke()
    return authorize(open_browser=not args.no_browser, port=args.port, force=args.force)


if __name__ == "__main__":
    sys.exit(main())
