"""
OAuth configuration for X API integration.

This module provides configuration management for the OAuth 2.0 PKCE flow
and token handling. Configuration is loaded from a YAML file
(~/.config/xplorertui/config.yaml) with environment variable overrides,
or provided programmatically.

Example config.yaml:

    oauth:
      callback_port: 8477
      callback_path: /callback
      authorization_timeout: 300
      scopes:
        - tweet.read
        - users.read
        - offline.access
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = [
    "tweet.read",
    "users.read",
    "bookmark.read",
    "like.read",
    "like.write",
    "offline.access",
]


def default_config_dir() -> Path:
    """Per-user configuration directory (~/.config/xplorertui)."""
    return Path.home() / ".config" / "xplorertui"


def default_token_file() -> str:
    """Per-user token file path (~/.config/xplorertui/tokens.json)."""
    return str(default_config_dir() / "tokens.json")


@dataclass
class XOAuthConfig:
    """
    Configuration for X OAuth 2.0 PKCE and token handling.

    Attributes:
        callback_host: Loopback address for the callback listener
        callback_port: Port for callback listener (0 = OS-assigned ephemeral port)
        callback_path: URL path registered as redirect URI with the provider
        authorization_url: X OAuth authorization endpoint
        token_url: X OAuth token endpoint
        scopes: Requested OAuth scopes
        token_file: Absolute path to token storage file
        refresh_buffer_seconds: Refresh tokens this many seconds before expiry
        authorization_timeout: Seconds to wait for the browser redirect
                               (None or 0 waits until cancelled)
        request_timeout: Timeout in seconds for token endpoint calls
    """

    # Callback configuration
    callback_host: str = "127.0.0.1"
    callback_port: int = 8477
    callback_path: str = "/callback"

    # X OAuth endpoints
    authorization_url: str = "https://twitter.com/i/oauth2/authorize"
    token_url: str = "https://api.x.com/2/oauth2/token"

    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))

    # Token storage
    token_file: str = field(default_factory=default_token_file)

    # Token refresh settings
    refresh_buffer_seconds: int = 60

    authorization_timeout: Optional[float] = 300
    request_timeout: int = 30

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not isinstance(self.callback_port, int) or not (
            0 <= self.callback_port <= 65535
        ):
            raise ConfigurationError(
                f"callback_port must be between 0 and 65535, got {self.callback_port}"
            )

        if not self.callback_path.startswith("/"):
            raise ConfigurationError(
                f"callback_path must start with '/', got {self.callback_path!r}"
            )

        if self.refresh_buffer_seconds < 0:
            raise ConfigurationError("refresh_buffer_seconds cannot be negative")

        if self.authorization_timeout is not None and self.authorization_timeout < 0:
            raise ConfigurationError("authorization_timeout cannot be negative")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

        if not self.scopes:
            raise ConfigurationError("At least one OAuth scope is required")

    def redirect_uri(self, port: Optional[int] = None) -> str:
        """
        Loopback redirect URI for the OAuth callback.

        Args:
            port: Actually bound port (needed when callback_port is 0)

        Returns:
            Redirect URI (e.g., http://127.0.0.1:8477/callback)
        """
        bound_port = port if port is not None else self.callback_port
        return f"http://{self.callback_host}:{bound_port}{self.callback_path}"

    @classmethod
    def get_default_config_path(cls) -> Path:
        """
        Get default configuration file path.

        Returns:
            Path to default config file (~/.config/xplorertui/config.yaml)
        """
        return default_config_dir() / "config.yaml"

    @classmethod
    def from_env(cls) -> "XOAuthConfig":
        """
        Load configuration from defaults and environment variables only.

        Optional environment variables:
            XPLORER_CALLBACK_PORT: Callback port (default: 8477)
            XPLORER_TOKEN_FILE: Token file path (default: ~/.config/xplorertui/tokens.json)
            XPLORER_AUTH_TIMEOUT: Seconds to wait for the browser redirect (default: 300)

        Returns:
            XOAuthConfig instance

        Raises:
            ConfigurationError: If an environment value is invalid
        """
        return cls.merge_with_defaults({})

    @classmethod
    def load_from_file(cls, path: Optional[Path] = None) -> "XOAuthConfig":
        """
        Load configuration from YAML file.

        If the file doesn't exist, returns default configuration.
        Environment variables override file values.

        Args:
            path: Optional path to config file (default: ~/.config/xplorertui/config.yaml)

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration file is invalid
        """
        config_path = path or cls.get_default_config_path()

        config_dict: dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path) as f:
                    file_config = yaml.safe_load(f)
                    if file_config:
                        config_dict = file_config
                logger.debug(f"Loaded configuration from {config_path}")
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Invalid YAML in configuration file: {e}"
                ) from e
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to load configuration file: {e}"
                ) from e
        else:
            logger.debug(f"Configuration file not found at {config_path}, using defaults")

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration file {config_path} must contain a mapping"
            )

        return cls.merge_with_defaults(config_dict)

    @classmethod
    def merge_with_defaults(cls, config_dict: dict[str, Any]) -> "XOAuthConfig":
        """
        Merge configuration dictionary with defaults and environment variables.

        Precedence order (highest to lowest):
        1. Environment variables
        2. Config file values (under the ``oauth`` key)
        3. Default values

        Args:
            config_dict: Configuration dictionary from file

        Returns:
            Configuration instance

        Raises:
            ConfigurationError: If configuration is invalid
        """
        oauth_config = config_dict.get("oauth") or {}
        if not isinstance(oauth_config, dict):
            raise ConfigurationError("'oauth' section must be a mapping")

        kwargs: dict[str, Any] = {}
        for key in (
            "callback_port",
            "callback_path",
            "authorization_url",
            "token_url",
            "scopes",
            "token_file",
            "refresh_buffer_seconds",
            "authorization_timeout",
            "request_timeout",
        ):
            if key in oauth_config:
                kwargs[key] = oauth_config[key]

        try:
            port = os.getenv("XPLORER_CALLBACK_PORT")
            if port:
                kwargs["callback_port"] = int(port)

            token_file = os.getenv("XPLORER_TOKEN_FILE")
            if token_file:
                kwargs["token_file"] = token_file

            timeout = os.getenv("XPLORER_AUTH_TIMEOUT")
            if timeout:
                kwargs["authorization_timeout"] = float(timeout)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e

        if "token_file" in kwargs:
            kwargs["token_file"] = os.path.expanduser(str(kwargs["token_file"]))

        if isinstance(kwargs.get("scopes"), str):
            kwargs["scopes"] = kwargs["scopes"].split()

        try:
            return cls(**kwargs)
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(config_path: Optional[Path] = None) -> XOAuthConfig:
    """
    Load configuration from file or defaults.

    Convenience function for loading configuration.

    Args:
        config_path: Optional path to config file

    Returns:
        Configuration instance
    """
    return XOAuthConfig.load_from_file(config_path)
