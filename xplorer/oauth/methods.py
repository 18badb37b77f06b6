"""
Authentication strategy selection.

Exactly one strategy is active per process. Preference order:
signed user context (OAuth 1.0a) > PKCE delegated (OAuth 2.0) > static bearer.
"""

import logging
from enum import Enum

from .credentials import CredentialSet
from .exceptions import NoAuthMethodError

logger = logging.getLogger(__name__)


class AuthMethod(str, Enum):
    """Which authentication strategy signs outbound requests."""

    SIGNED_USER_CONTEXT = "signed_user_context"
    PKCE_DELEGATED = "pkce_delegated"
    STATIC_BEARER_ONLY = "static_bearer_only"


class RequestContext(str, Enum):
    """
    Request flavor.

    APP requests prefer an app-only bearer token when one is available;
    USER requests must carry a user-scoped credential.
    """

    USER = "user"
    APP = "app"


def select_auth_method(credentials: CredentialSet) -> AuthMethod:
    """
    Pick the active strategy from a credential set.

    Args:
        credentials: Loaded credential bundle

    Returns:
        The preferred available AuthMethod

    Raises:
        NoAuthMethodError: If no credential slot is populated
    """
    if credentials.signed_user is not None:
        method = AuthMethod.SIGNED_USER_CONTEXT
    elif credentials.pkce_client is not None:
        method = AuthMethod.PKCE_DELEGATED
    elif credentials.static_bearer is not None:
        method = AuthMethod.STATIC_BEARER_ONLY
    else:
        raise NoAuthMethodError("No suitable auth method available")

    logger.info(f"Selected auth method: {method.value}")
    return method


def ensure_method_available(method: AuthMethod, credentials: CredentialSet) -> None:
    """
    Check that the credential slot backing `method` is populated.

    Raises:
        NoAuthMethodError: If the slot for `method` is empty
    """
    if method is AuthMethod.SIGNED_USER_CONTEXT:
        available = credentials.signed_user is not None
    elif method is AuthMethod.PKCE_DELEGATED:
        available = credentials.pkce_client is not None
    elif method is AuthMethod.STATIC_BEARER_ONLY:
        available = credentials.static_bearer is not None
    else:
        raise NoAuthMethodError(f"Unknown auth method: {method!r}")

    if not available:
        raise NoAuthMethodError(
            f"Auth method {method.value} selected but its credentials are not configured"
        )
