"""PKCE (RFC 7636) verifier/challenge and CSRF state generation."""

import base64
import hashlib
import secrets
from typing import Tuple


def generate_code_verifier() -> str:
    """URL-safe random verifier (86 characters, within the 43-128 limit)."""
    return secrets.token_urlsafe(64)


def code_challenge_s256(verifier: str) -> str:
    """base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce_pair() -> Tuple[str, str]:
    """
    Generate PKCE code verifier and challenge.

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    verifier = generate_code_verifier()
    return verifier, code_challenge_s256(verifier)


def generate_state() -> str:
    """Opaque anti-forgery token round-tripped through the redirect."""
    return secrets.token_urlsafe(32)
