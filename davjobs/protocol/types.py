"""
Core protocol types for the job layer.

These dataclasses represent HTTP requests and responses at the protocol
level, independent of any I/O implementation, plus the typed results the
jobs deliver to their callers.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any
from typing import Optional

from niquests.structures import CaseInsensitiveDict

from davjobs.lib.python_utilities import to_normal_str


class DAVMethod(Enum):
    """WebDAV HTTP methods."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    PROPFIND = "PROPFIND"
    PROPPATCH = "PROPPATCH"
    MKCOL = "MKCOL"
    MOVE = "MOVE"
    COPY = "COPY"


class Priority(Enum):
    """
    Transport priority.  HIGH requests are not queued behind NORMAL
    ones (bulk sync traffic).
    """

    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True)
class DAVRequest:
    """
    Represents an HTTP request to be made.

    This is a pure data structure with no I/O. It describes what request
    should be made, but does not make it.

    Attributes:
        method: HTTP method (GET, PROPFIND, etc.)
        url: Full URL for the request
        headers: HTTP headers as dict
        body: Request body as bytes (optional)
        send_credentials: Attach the stored credentials
        reuse_auth: Allow reuse of cached authentication state (cookies,
            negotiated auth) of the transport
        follow_redirects: Follow 3xx responses (never to a less safe scheme)
        max_redirects: Upper bound of redirects to follow
        priority: Transport priority
    """

    method: DAVMethod
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    send_credentials: bool = True
    reuse_auth: bool = True
    follow_redirects: bool = False
    max_redirects: int = 10
    priority: Priority = Priority.NORMAL

    @property
    def verb(self) -> str:
        return self.method.value


@dataclass(frozen=True)
class TlsSessionInfo:
    """
    TLS details observed on a connection, kept for later display.

    Attributes:
        peer_certificate_chain: DER encoded certificates, peer first
        session_cipher: Negotiated cipher name
        session_ticket: Session ticket / identifier, if any
        protocol: TLS version string
    """

    peer_certificate_chain: tuple = ()
    session_cipher: Optional[str] = None
    session_ticket: Optional[bytes] = None
    protocol: Optional[str] = None

    def merged(self, other: Optional["TlsSessionInfo"]) -> "TlsSessionInfo":
        """
        Shallow merge, the newer observation wins, but only for the
        fields it actually carries.
        """
        if other is None:
            return self
        return TlsSessionInfo(
            peer_certificate_chain=other.peer_certificate_chain
            or self.peer_certificate_chain,
            session_cipher=other.session_cipher or self.session_cipher,
            session_ticket=other.session_ticket or self.session_ticket,
            protocol=other.protocol or self.protocol,
        )


@dataclass(frozen=True)
class DAVResponse:
    """
    Represents an HTTP response received.

    This is a pure data structure with no I/O. It contains the response
    data but does not fetch it.

    Attributes:
        status: HTTP status code
        headers: HTTP headers (case insensitive)
        body: Response body as bytes
        url: The final URL, after redirects were followed
        tls: TLS session details, when the transport could observe them
    """

    status: int
    headers: CaseInsensitiveDict
    body: bytes
    url: str = ""
    tls: Optional[TlsSessionInfo] = None

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            object.__setattr__(self, "headers", CaseInsensitiveDict(self.headers or {}))

    @property
    def is_multistatus(self) -> bool:
        """True if this is a 207 Multi-Status response."""
        return self.status == 207

    @property
    def text(self) -> str:
        return to_normal_str(self.body) or ""

    @property
    def content_type(self) -> str:
        return self.headers.get("Content-Type", "")

    @property
    def date(self) -> Optional[datetime]:
        """The Date header as a datetime, None if missing or unparseable"""
        value = self.headers.get("Date")
        if not value:
            return None
        try:
            return parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None

    @property
    def reason(self) -> str:
        """Return a reason phrase for the status code."""
        reasons = {
            200: "OK",
            201: "Created",
            204: "No Content",
            207: "Multi-Status",
            301: "Moved Permanently",
            302: "Found",
            304: "Not Modified",
            307: "Temporary Redirect",
            308: "Permanent Redirect",
            400: "Bad Request",
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not Found",
            405: "Method Not Allowed",
            409: "Conflict",
            412: "Precondition Failed",
            415: "Unsupported Media Type",
            423: "Locked",
            500: "Internal Server Error",
            501: "Not Implemented",
            502: "Bad Gateway",
            503: "Service Unavailable",
            507: "Insufficient Storage",
        }
        return reasons.get(self.status, "Unknown")


@dataclass
class MultistatusEntry:
    """
    One <response> of a multistatus body.

    Attributes:
        href: Percent-decoded path of the resource, trailing slash stripped
        properties: property localname -> flattened content, only from
            propstat blocks with HTTP/1.1 200 status
        is_collection: resourcetype contains collection
        size: the size property, when present and numeric
    """

    href: str
    properties: dict[str, str] = field(default_factory=dict)
    is_collection: bool = False
    size: Optional[int] = None


@dataclass
class ListingResult:
    """
    Final result of a directory listing.

    Attributes:
        folders: hrefs of the collections, in document order
        sizes: href -> size for all resources that reported one
    """

    folders: list[str] = field(default_factory=list)
    sizes: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class EtagResult:
    etag: str
    timestamp: Optional[datetime] = None


@dataclass
class DiscoveryResult:
    """
    A found server instance.

    Attributes:
        url: The server URL as seen after redirects and path fallback
        info: The decoded status object
    """

    url: str
    info: dict[str, Any] = field(default_factory=dict)


@dataclass
class JsonApiResult:
    """
    Attributes:
        json: The decoded document, None if the body was not valid JSON
        status_code: OCS status code found in the body, 0 if none
    """

    json: Optional[Any] = None
    status_code: int = 0
