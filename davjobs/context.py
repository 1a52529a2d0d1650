#!/usr/bin/env python
"""
The server context every job is bound to.

A ServerContext is owned by whoever talks to one server (an account, in
a sync client).  Jobs only reference it: they read the URLs and the
transport from it, report credential failures to it, and feed it the TLS
details they observe.
"""

import logging
import sys
from types import TracebackType
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple, Union

from niquests.auth import AuthBase

from davjobs import __version__
from davjobs.io import AsyncIO
from davjobs.io import AsyncIOProtocol
from davjobs.lib.auth import build_auth_object
from davjobs.lib.url import concat_url_path
from davjobs.lib.url import URL
from davjobs.protocol.types import DAVResponse
from davjobs.protocol.types import TlsSessionInfo

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("davjobs")

DEFAULT_DAV_PATH = "remote.php/webdav/"


def parse_version(version: Union[str, Tuple[int, ...], None]) -> Tuple[int, ...]:
    """
    "10.0.3.1" -> (10, 0, 3, 1).  Non-numeric parts end the version,
    "10.2.0beta" -> (10, 2).
    """
    if version is None:
        return ()
    if isinstance(version, tuple):
        return version
    parts = []
    for part in version.split("."):
        if not part.isdigit():
            break
        parts.append(int(part))
    return tuple(parts)


class ServerContext:
    """
    Base URL, transport and credentials of one server, plus the shared
    TLS session info sink.

    The recommended way to create one from the environment or a config
    file is davjobs.config.get_context().
    """

    def __init__(
        self,
        url: Union[str, URL],
        transport: Optional[AsyncIOProtocol] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        auth: Optional[AuthBase] = None,
        auth_type: Optional[str] = None,
        dav_path: str = DEFAULT_DAV_PATH,
        timeout: Optional[float] = None,
        ssl_verify_cert: Union[bool, str] = True,
        ssl_cert: Union[str, Tuple[str, str], None] = None,
        proxy: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        server_version: Union[str, Tuple[int, ...], None] = None,
        max_concurrent_requests: int = 6,
    ) -> None:
        """
        Args:
            url: Base URL of the server, i.e. https://cloud.example.com/
            transport: Transport to use, an AsyncIO is created if None.
            username: Username for authentication.
            password: Password (or token, for bearer auth).
            auth: Custom auth object (niquests.auth.AuthBase).
            auth_type: Auth type ('basic', 'bearer' or 'oauth').
            dav_path: Path of the WebDAV root below url.
            timeout: Transport level request timeout in seconds.
            ssl_verify_cert: SSL certificate verification (bool or CA bundle path).
            ssl_cert: Client SSL certificate (path or (cert, key) tuple).
            proxy: Proxy server (scheme://hostname:port).
            headers: Additional headers for all requests.
            server_version: Version reported by the server, if known.
            max_concurrent_requests: Concurrency limit of the transport.
        """
        self.url = URL.objectify(url)
        self.dav_path = dav_path
        self.username = username
        if transport is None:
            all_headers = {"User-Agent": f"davjobs/{__version__}"}
            all_headers.update(headers or {})
            transport = AsyncIO(
                auth=auth or build_auth_object(auth_type, username, password),
                timeout=timeout,
                verify=ssl_verify_cert,
                cert=ssl_cert,
                proxy=proxy,
                headers=all_headers,
                max_concurrent_requests=max_concurrent_requests,
            )
        self.transport = transport
        self.server_version = parse_version(server_version)
        self.tls_info = TlsSessionInfo()
        self._credentials_failed_listeners: List[Callable[[Any, DAVResponse], None]] = []
        ## started jobs that nobody else holds on to
        self._running_jobs: Set[Any] = set()

    def __repr__(self) -> str:
        return f"ServerContext({str(self.url)!r})"

    @property
    def dav_url(self) -> URL:
        return concat_url_path(self.url, self.dav_path)

    def make_dav_url(self, path: str) -> URL:
        return concat_url_path(self.dav_url, path)

    def make_account_url(self, path: str) -> URL:
        return concat_url_path(self.url, path)

    def set_server_version(self, version: Union[str, Tuple[int, ...], None]) -> None:
        self.server_version = parse_version(version)

    def server_version_at_least(self, *version: int) -> bool:
        """Missing parts count as 0, "10" is at least 10.0.0"""
        length = max(len(self.server_version), len(version))
        have = self.server_version + (0,) * (length - len(self.server_version))
        want = tuple(version) + (0,) * (length - len(version))
        return have >= want

    def merge_tls_info(self, info: Optional[TlsSessionInfo]) -> None:
        """Last writer wins, for the fields the new observation carries"""
        self.tls_info = self.tls_info.merged(info)

    def add_credentials_failed_listener(self, listener: Callable[[Any, DAVResponse], None]) -> None:
        """
        listener(job, response) is called whenever a job got a 401/403
        and did not opt out of credential failure handling.  This is
        where a credential refresh flow hooks in.
        """
        self._credentials_failed_listeners.append(listener)

    def credentials_failed(self, job: Any, response: DAVResponse) -> None:
        log.warning(f"{job} got {response.status}, credentials rejected")
        for listener in list(self._credentials_failed_listeners):
            listener(job, response)

    def keep_alive(self, job: Any) -> None:
        self._running_jobs.add(job)

    def release(self, job: Any) -> None:
        self._running_jobs.discard(job)

    async def close(self) -> None:
        """Close the transport."""
        await self.transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Async context manager exit."""
        await self.close()
