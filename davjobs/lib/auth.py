"""
Authentication utilities.

The job layer never negotiates authentication itself, it only needs to
know which kind of credentials a server expects (see
DetermineAuthTypeJob) and how to attach stored credentials to a request.
"""

from __future__ import annotations

import enum
from typing import Optional

from niquests.auth import AuthBase
from niquests.auth import HTTPBasicAuth


class AuthType(enum.Enum):
    BASIC = "basic"
    OAUTH = "oauth"

    def __str__(self) -> str:
        return self.value


def extract_auth_types(header: str) -> set[str]:
    """
    Extract authentication types from WWW-Authenticate header.

    Parses the WWW-Authenticate header value and extracts the
    authentication scheme names (e.g., "basic", "digest", "bearer").

    Args:
        header: WWW-Authenticate header value from server response.

    Returns:
        Set of lowercase auth type strings.

    Example:
        >>> sorted(extract_auth_types('Basic realm="test", Digest realm="test"'))
        ['basic', 'digest']

    Reference:
        https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/WWW-Authenticate#syntax
    """
    return {h.split()[0] for h in header.lower().split(",") if h.strip()}


def classify_auth_challenge(header: Optional[str]) -> AuthType:
    """
    A server announcing a bearer challenge wants OAuth tokens, anything
    else (including no challenge at all) is treated as basic auth.
    """
    if header and "bearer" in extract_auth_types(header):
        return AuthType.OAUTH
    return AuthType.BASIC


class HTTPBearerAuth(AuthBase):
    def __init__(self, password: str) -> None:
        self.password = password

    def __eq__(self, other: object) -> bool:
        return self.password == getattr(other, "password", None)

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __call__(self, r):
        r.headers["Authorization"] = f"Bearer {self.password}"
        return r


def build_auth_object(
    auth_type: Optional[str],
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Optional[AuthBase]:
    """
    Build a niquests auth object from stored credentials.

    Args:
        auth_type: 'basic', 'bearer' or 'oauth'.  None picks bearer when
            only a password (token) is given, basic otherwise.
        username: Username for basic auth.
        password: Password, or the token for bearer auth.

    Returns:
        The auth object, or None when there are no credentials at all.
    """
    if username is None and password is None:
        return None
    if not auth_type:
        auth_type = "basic" if username else "bearer"
    auth_type = auth_type.lower()
    if auth_type in ("bearer", "oauth"):
        return HTTPBearerAuth(password)
    if auth_type == "basic":
        return HTTPBasicAuth(username or "", password or "")
    raise ValueError(f"Unsupported auth type: {auth_type}")
