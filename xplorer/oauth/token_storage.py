"""
Token storage for X OAuth 2.0 integration.

This module provides file-based token persistence with expiry tracking.
Tokens are stored as JSON at a fixed per-user path
(~/.config/xplorertui/tokens.json by default):

    {
      "access_token": "...",
      "refresh_token": "..." | null,
      "expires_at": "2026-01-25T10:30:00+00:00" | null
    }

The file is the single source of truth: it is re-read before every
PKCE-authorized request, and written with an atomic replace. A sibling
``.lock`` file serializes refreshes across processes.
"""

import fcntl
import json
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional

from .exceptions import TokenParseError, TokenStorageError

logger = logging.getLogger(__name__)


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class TokenRecord:
    """
    Stored OAuth 2.0 token data.

    Attributes:
        access_token: Short-lived access token for API calls
        refresh_token: Long-lived token for obtaining new access tokens
        expires_at: Absolute expiry (timezone-aware UTC), if the provider sent one
    """

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def is_expired(self) -> bool:
        """
        Check if access token is expired.

        Returns:
            True if token has expired, False otherwise (or if no expiry is known)
        """
        return self.expires_within(0)

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        """
        Check if token expires within given seconds.

        Args:
            seconds: Number of seconds to check
            now: Reference time (defaults to current UTC time)

        Returns:
            True if `now + seconds >= expires_at`; False when no expiry is recorded
        """
        if self.expires_at is None:
            return False
        reference = now or datetime.now(timezone.utc)
        return reference + timedelta(seconds=seconds) >= self.expires_at

    @classmethod
    def from_token_response(
        cls,
        data: dict,
        existing_refresh_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> "TokenRecord":
        """
        Build a record from a token endpoint JSON response.

        Args:
            data: Decoded JSON body
            existing_refresh_token: Kept when the response omits a refresh token
            now: Issue time (defaults to current UTC time)

        Returns:
            TokenRecord

        Raises:
            TokenParseError: If the response has no usable access_token
        """
        if not isinstance(data, dict):
            raise TokenParseError(f"Unexpected token response: {data!r}")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise TokenParseError("Token response is missing access_token")

        expires_at = None
        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                seconds = int(expires_in)
            except (TypeError, ValueError) as e:
                raise TokenParseError(f"Invalid expires_in: {expires_in!r}") from e
            issued = now or datetime.now(timezone.utc)
            expires_at = issued + timedelta(seconds=seconds)

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or existing_refresh_token,
            expires_at=expires_at,
        )

    def to_dict(self) -> dict:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation of token data
        """
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        """
        Create TokenRecord from dictionary.

        Args:
            data: Dictionary with token data fields

        Returns:
            TokenRecord instance

        Raises:
            TokenParseError: If fields are missing or have wrong types
        """
        if not isinstance(data, dict):
            raise TokenParseError("Token file must contain a JSON object")

        access_token = data.get("access_token")
        if not isinstance(access_token, str):
            raise TokenParseError("Token file is missing access_token")

        refresh_token = data.get("refresh_token")
        if refresh_token is not None and not isinstance(refresh_token, str):
            raise TokenParseError("refresh_token must be a string or null")

        expires_at = data.get("expires_at")
        if expires_at is not None:
            if not isinstance(expires_at, str):
                raise TokenParseError("expires_at must be a string or null")
            try:
                expires_at = _parse_timestamp(expires_at)
            except ValueError as e:
                raise TokenParseError(f"Invalid expires_at: {e}") from e

        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )


class TokenStore:
    """
    File-based token storage (plaintext JSON, mode 600).

    There is exactly one token file per user; all disk access goes
    through this class.
    """

    def __init__(self, token_file: str):
        """
        Initialize token storage.

        Args:
            token_file: Path to token storage file
                       (e.g., ~/.config/xplorertui/tokens.json)
        """
        self.token_file = Path(token_file).expanduser()
        self.lock_file = self.token_file.with_name(self.token_file.name + ".lock")

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        self.token_file.parent.mkdir(parents=True, exist_ok=True)

    def save(self, record: TokenRecord) -> None:
        """
        Save tokens to file.

        Writes to a temporary file in the same directory and replaces the
        token file atomically, with user-only permissions.

        Args:
            record: Token data to save

        Raises:
            TokenStorageError: If save operation fails
        """
        try:
            self._ensure_directory()
            fd, tmp_path = tempfile.mkstemp(
                dir=self.token_file.parent, prefix=".tokens-", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record.to_dict(), f, indent=2)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.token_file)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise

            logger.info(f"Tokens saved to {self.token_file}")
        except OSError as e:
            logger.error(f"Failed to save tokens: {e}")
            raise TokenStorageError(f"Failed to save tokens: {e}") from e

    def load(self) -> Optional[TokenRecord]:
        """
        Load tokens from file.

        Returns:
            TokenRecord if the file exists, None if it does not

        Raises:
            TokenParseError: If the file content is malformed
            TokenStorageError: If the file exists but cannot be read
        """
        if not self.token_file.exists():
            logger.debug(f"No token file found at {self.token_file}")
            return None

        try:
            with open(self.token_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Invalid token file at {self.token_file}: {e}")
            raise TokenParseError(f"Invalid token file {self.token_file}: {e}") from e
        except OSError as e:
            logger.error(f"Could not read token file: {e}")
            raise TokenStorageError(f"Could not read token file: {e}") from e

        record = TokenRecord.from_dict(data)
        logger.debug(f"Tokens loaded from {self.token_file}")
        return record

    def delete(self) -> bool:
        """
        Delete token file.

        Returns:
            True if file was deleted, False if file didn't exist

        Raises:
            TokenStorageError: If the file exists but cannot be removed
        """
        if self.token_file.exists():
            try:
                self.token_file.unlink()
                logger.info(f"Token file deleted: {self.token_file}")
                return True
            except OSError as e:
                logger.error(f"Failed to delete token file: {e}")
                raise TokenStorageError(f"Failed to delete token file: {e}") from e

        logger.debug(f"Token file does not exist: {self.token_file}")
        return False

    def exists(self) -> bool:
        """
        Check if token file exists.

        Returns:
            True if token file exists, False otherwise
        """
        return self.token_file.exists()

    @contextmanager
    def lock(self) -> Iterator[None]:
        """
        Hold an exclusive cross-process lock on the token file.

        Raises:
            TokenStorageError: If the lock file cannot be opened
        """
        try:
            self._ensure_directory()
            handle = open(self.lock_file, "a")
        except OSError as e:
            raise TokenStorageError(f"Could not open token lock file: {e}") from e

        with handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
