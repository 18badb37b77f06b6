"""
OAuth 1.0a HMAC-SHA1 request signing.

Produces the ``Authorization: OAuth ...`` header value for user-context
requests. Signing is pure: no network I/O, and the output is reproducible
byte-for-byte when ``nonce`` and ``timestamp`` are supplied.

Example:
    header = sign("GET", "https://api.x.com/2/users/me", credentials)
    response = requests.get(url, headers={"Authorization": header})
"""

import base64
import hashlib
import hmac
import secrets
import time
from typing import Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, quote, urlsplit

from .credentials import SignedUserCredentials

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

DEFAULT_PORTS = {"http": 80, "https": 443}

Params = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def percent_encode(value: str) -> str:
    """
    Percent-encode a string per RFC 3986.

    Unreserved characters (A-Z, a-z, 0-9, '-', '.', '_', '~') are kept;
    every other UTF-8 byte becomes %XX with uppercase hex.
    """
    return quote(str(value), safe="")


def generate_nonce() -> str:
    """Random nonce: 16 bytes of entropy as lowercase hex."""
    return secrets.token_hex(16)


def generate_timestamp() -> str:
    """Current Unix time in whole seconds."""
    return str(int(time.time()))


def _as_pairs(params: Optional[Params]) -> List[Tuple[str, str]]:
    if params is None:
        return []
    if isinstance(params, Mapping):
        return [(str(k), str(v)) for k, v in params.items()]
    return [(str(k), str(v)) for k, v in params]


def base_url(url: str) -> str:
    """
    Normalize a request URL for the signature base string.

    Scheme and host are lowercased, query and fragment are stripped, and a
    non-default port is preserved.

    Raises:
        ValueError: If the URL has no scheme or host
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        raise ValueError(f"Invalid URL for OAuth signing: {url!r}")

    scheme = parts.scheme.lower()
    host = parts.hostname.lower()
    # RFC 5849 3.4.1.2: only the scheme's default port is omitted
    if parts.port is not None and parts.port != DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"

    return f"{scheme}://{host}{parts.path or '/'}"


def normalize_parameters(params: Iterable[Tuple[str, str]]) -> str:
    """
    Build the parameter string: encode, sort by encoded pairs, join with '&'.

    Sorting happens after encoding, so '|' (%7C) sorts before 'a'.
    """
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(
    method: str, url: str, params: Iterable[Tuple[str, str]]
) -> str:
    """
    Build the signature base string for a request.

    Args:
        method: HTTP method
        url: Full request URL (its query parameters are not read here)
        params: Every parameter to sign (protocol, extra and query)

    Returns:
        METHOD&enc(base_url)&enc(parameter_string)
    """
    return "&".join(
        [
            method.upper(),
            percent_encode(base_url(url)),
            percent_encode(normalize_parameters(params)),
        ]
    )


def hmac_sha1_signature(
    base_string: str, consumer_secret: str, token_secret: str
) -> str:
    """Base64 HMAC-SHA1 of `base_string` keyed by the encoded secrets."""
    key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"
    digest = hmac.new(
        key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def sign(
    method: str,
    url: str,
    credentials: SignedUserCredentials,
    extra_params: Optional[Params] = None,
    *,
    nonce: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> str:
    """
    Generate an OAuth 1.0a ``Authorization`` header value.

    Args:
        method: HTTP method (GET, POST, ...)
        url: Full request URL; its query parameters are signed automatically
        credentials: OAuth 1.0a credentials
        extra_params: Additional form/query parameters to include in the signature
        nonce: Fixed nonce (random if not given)
        timestamp: Fixed Unix timestamp string (current time if not given)

    Returns:
        Header value, e.g. ``OAuth oauth_consumer_key="...", ...``

    Raises:
        ValueError: If the URL is malformed
    """
    oauth_params = [
        ("oauth_consumer_key", credentials.consumer_key),
        ("oauth_nonce", nonce if nonce is not None else generate_nonce()),
        ("oauth_signature_method", SIGNATURE_METHOD),
        ("oauth_timestamp", timestamp if timestamp is not None else generate_timestamp()),
        ("oauth_token", credentials.access_token),
        ("oauth_version", OAUTH_VERSION),
    ]

    all_params = list(oauth_params)
    all_params.extend(_as_pairs(extra_params))
    all_params.extend(parse_qsl(urlsplit(url).query, keep_blank_values=True))

    base_string = signature_base_string(method, url, all_params)
    signature = hmac_sha1_signature(
        base_string, credentials.consumer_secret, credentials.access_token_secret
    )

    oauth_params.append(("oauth_signature", signature))
    oauth_params.sort()

    header_parts = ", ".join(
        f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in oauth_params
    )
    return f"OAuth {header_parts}"
