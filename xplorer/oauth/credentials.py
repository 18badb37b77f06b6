"""
Credential loading for X API authentication.

Credentials are resolved from layered dotenv files and the process
environment. Resolution order (highest to lowest priority):

1. Process environment variables
2. ~/.config/xplorertui/.env
3. ~/.config/x-cli/.env (legacy location)
4. ./.env in the current working directory

Values already set in the environment are never overwritten by file
contents, and ``os.environ`` itself is never modified.

Security Considerations:
    - Credential values are never logged (only the file they came from)
    - ``repr()`` of every credential type masks secret fields
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import dotenv_values

from .exceptions import NoCredentialsError

logger = logging.getLogger(__name__)

# Environment variable names
ENV_API_KEY = "X_API_KEY"
ENV_API_SECRET = "X_API_SECRET"
ENV_ACCESS_TOKEN = "X_ACCESS_TOKEN"
ENV_ACCESS_TOKEN_SECRET = "X_ACCESS_TOKEN_SECRET"
ENV_BEARER_TOKEN = "X_BEARER_TOKEN"
ENV_CLIENT_ID = "X_CLIENT_ID"
ENV_CLIENT_SECRET = "X_CLIENT_SECRET"

CREDENTIAL_ENV_VARS = (
    ENV_API_KEY,
    ENV_API_SECRET,
    ENV_ACCESS_TOKEN,
    ENV_ACCESS_TOKEN_SECRET,
    ENV_BEARER_TOKEN,
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
)


@dataclass(frozen=True)
class SignedUserCredentials:
    """
    OAuth 1.0a credentials (user-context with full request signing).

    Attributes:
        consumer_key: App API key
        consumer_secret: App API secret
        access_token: User access token
        access_token_secret: User access token secret
        bearer_token: Optional app-only bearer token for endpoints that accept it
    """

    consumer_key: str = field(repr=False)
    consumer_secret: str = field(repr=False)
    access_token: str = field(repr=False)
    access_token_secret: str = field(repr=False)
    bearer_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class PkceClientCredentials:
    """
    OAuth 2.0 PKCE client credentials.

    Public clients use PKCE without a client secret; confidential clients
    also send the secret via HTTP Basic auth at the token endpoint.
    """

    client_id: str
    client_secret: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class StaticBearerCredentials:
    """App-only bearer token."""

    bearer_token: str = field(repr=False)


@dataclass(frozen=True)
class CredentialSet:
    """
    All detected credentials bundled together.

    Built once at startup and immutable afterwards, so it can be shared by
    reference across concurrent requests without synchronization.
    """

    signed_user: Optional[SignedUserCredentials] = None
    pkce_client: Optional[PkceClientCredentials] = None
    static_bearer: Optional[StaticBearerCredentials] = None

    @property
    def is_empty(self) -> bool:
        """True if no credential slot is populated."""
        return (
            self.signed_user is None
            and self.pkce_client is None
            and self.static_bearer is None
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "CredentialSet":
        """
        Build a credential set from a flat name -> value mapping.

        A slot is populated only when all of its required fields are
        non-empty. Empty strings are treated as absent.

        Args:
            values: Mapping of environment variable names to values

        Returns:
            CredentialSet (possibly empty)
        """

        def get(name: str) -> Optional[str]:
            value = values.get(name)
            return value if value else None

        signed_user = None
        api_key = get(ENV_API_KEY)
        api_secret = get(ENV_API_SECRET)
        access_token = get(ENV_ACCESS_TOKEN)
        access_token_secret = get(ENV_ACCESS_TOKEN_SECRET)
        if api_key and api_secret and access_token and access_token_secret:
            signed_user = SignedUserCredentials(
                consumer_key=api_key,
                consumer_secret=api_secret,
                access_token=access_token,
                access_token_secret=access_token_secret,
                bearer_token=get(ENV_BEARER_TOKEN),
            )

        pkce_client = None
        client_id = get(ENV_CLIENT_ID)
        if client_id:
            pkce_client = PkceClientCredentials(
                client_id=client_id, client_secret=get(ENV_CLIENT_SECRET)
            )

        static_bearer = None
        bearer_token = get(ENV_BEARER_TOKEN)
        if bearer_token:
            static_bearer = StaticBearerCredentials(bearer_token=bearer_token)

        return cls(
            signed_user=signed_user,
            pkce_client=pkce_client,
            static_bearer=static_bearer,
        )


def default_env_file_paths() -> List[Path]:
    """
    Return candidate .env paths in descending priority.

    Returns:
        User config path, legacy config path, then ./.env
    """
    home = Path.home()
    return [
        home / ".config" / "xplorertui" / ".env",
        home / ".config" / "x-cli" / ".env",
        Path(".env"),
    ]


class CredentialStore:
    """
    Resolve X API credentials from dotenv files and the environment.

    Example:
        store = CredentialStore()
        credentials = store.load()
        if credentials.signed_user:
            ...
    """

    def __init__(
        self,
        env_file_paths: Optional[List[Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize credential store.

        Args:
            env_file_paths: Candidate .env files, highest priority first
                           (defaults to the standard user/legacy/cwd locations)
            environ: Environment mapping (defaults to os.environ)
        """
        self.env_file_paths = (
            env_file_paths if env_file_paths is not None else default_env_file_paths()
        )
        self.environ = environ if environ is not None else os.environ

    def _read_env_files(self) -> Dict[str, Optional[str]]:
        """Merge dotenv files so that earlier (higher priority) files win."""
        merged: Dict[str, Optional[str]] = {}
        for path in self.env_file_paths:
            if not path.is_file():
                continue
            values = dotenv_values(path)
            for name, value in values.items():
                if name not in merged or not merged[name]:
                    merged[name] = value
            logger.debug(f"Loaded credential file: {path}")
        return merged

    def resolve_values(self) -> Dict[str, Optional[str]]:
        """
        Resolve every credential variable to its effective value.

        Returns:
            Mapping of credential variable name -> value (None if unset)
        """
        values = self._read_env_files()
        for name in CREDENTIAL_ENV_VARS:
            env_value = self.environ.get(name)
            if env_value:
                values[name] = env_value
        return {name: values.get(name) for name in CREDENTIAL_ENV_VARS}

    def load(self) -> CredentialSet:
        """
        Load the credential bundle.

        Returns:
            CredentialSet with at least one populated slot

        Raises:
            NoCredentialsError: If no credential slot could be populated
        """
        credentials = CredentialSet.from_mapping(self.resolve_values())

        if credentials.is_empty:
            raise NoCredentialsError()

        logger.debug(
            "Credentials detected: "
            f"signed_user={credentials.signed_user is not None}, "
            f"pkce_client={credentials.pkce_client is not None}, "
            f"static_bearer={credentials.static_bearer is not None}"
        )
        return credentials


def load_credentials() -> CredentialSet:
    """
    Load credentials from the default locations.

    Convenience function for loading credentials.

    Returns:
        CredentialSet

    Raises:
        NoCredentialsError: If no credentials are configured
    """
    return CredentialStore().load()
