"""
Asynchronous I/O implementation using the niquests library.
"""

import asyncio
import logging
from typing import Mapping, Optional, Union
from urllib.parse import urljoin, urlparse

import niquests
from niquests.auth import AuthBase

from davjobs.lib import error
from davjobs.protocol.types import DAVRequest, DAVResponse, Priority, TlsSessionInfo

log = logging.getLogger("davjobs.io")

## Statuses after which a redirected request continues as a plain GET
_SEE_OTHER = 303
_MOVED = (301, 302)


def tls_info_from_response(response: niquests.Response) -> Optional[TlsSessionInfo]:
    """
    Collect the TLS details niquests exposes on the connection info of
    a response.  None for plain http or when nothing is known.
    """
    conn_info = getattr(response, "conn_info", None)
    if conn_info is None:
        return None
    chain = tuple(
        cert
        for cert in (
            getattr(conn_info, "certificate_der", None),
            getattr(conn_info, "issuer_certificate_der", None),
        )
        if cert
    )
    cipher = getattr(conn_info, "cipher", None)
    tls_version = getattr(conn_info, "tls_version", None)
    if not chain and not cipher:
        return None
    return TlsSessionInfo(
        peer_certificate_chain=chain,
        session_cipher=cipher,
        protocol=getattr(tls_version, "name", None) or (str(tls_version) if tls_version else None),
    )


class AsyncIO:
    """
    Asynchronous I/O shell using niquests.

    This is a thin wrapper that executes DAVRequest objects via HTTP
    and returns DAVResponse objects.  On top of plain execution it
    implements the per-request flags of DAVRequest: credential
    injection, auth reuse, redirect policy and priority.

    Example:
        async with AsyncIO(auth=HTTPBasicAuth("user", "secret")) as io:
            response = await io.execute(request)
    """

    def __init__(
        self,
        session: Optional[niquests.AsyncSession] = None,
        auth: Optional[AuthBase] = None,
        timeout: Optional[float] = None,
        verify: Union[bool, str] = True,
        cert: Union[str, tuple[str, str], None] = None,
        proxy: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        max_concurrent_requests: int = 6,
    ):
        """
        Initialize the async I/O handler.

        Args:
            session: Existing niquests AsyncSession to use (creates new if None)
            auth: Auth object attached to requests that send credentials
            timeout: Transport level request timeout in seconds
            verify: SSL certificate verification (bool or CA bundle path)
            cert: Client SSL certificate (path or (cert, key) tuple)
            proxy: Proxy server (scheme://hostname:port)
            headers: Headers added to every request
            max_concurrent_requests: Concurrency limit for NORMAL priority
                requests.  HIGH priority requests are not limited.
        """
        self._session = session
        self._owns_session = session is None
        self.auth = auth
        self.timeout = timeout
        self.verify = verify
        self.cert = cert
        self.proxy = proxy
        if self.proxy is not None and "://" not in self.proxy:
            self.proxy = "http://" + self.proxy
        self.headers: dict[str, str] = dict(headers or {})
        self.max_concurrent_requests = max_concurrent_requests
        self._semaphore: Optional[asyncio.Semaphore] = None

    def _get_session(self) -> niquests.AsyncSession:
        """Get or create the niquests session."""
        if self._session is None:
            self._session = niquests.AsyncSession()
        return self._session

    def _get_semaphore(self) -> asyncio.Semaphore:
        """Created on first use, inside the running loop"""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent_requests)
        return self._semaphore

    async def execute(self, request: DAVRequest) -> DAVResponse:
        """
        Execute a DAVRequest and return DAVResponse.

        Args:
            request: The request to execute

        Returns:
            DAVResponse with status, headers, body and the final URL

        Raises:
            TransportError: no response could be obtained
        """
        if request.priority is Priority.HIGH:
            return await self._execute(request)
        async with self._get_semaphore():
            return await self._execute(request)

    async def _execute(self, request: DAVRequest) -> DAVResponse:
        if request.reuse_auth:
            return await self._send(self._get_session(), request)
        ## a throw-away session, nothing negotiated earlier leaks in
        session = niquests.AsyncSession()
        try:
            return await self._send(session, request)
        finally:
            await session.close()

    async def _send(self, session: niquests.AsyncSession, request: DAVRequest) -> DAVResponse:
        method = request.verb
        url = request.url
        body = request.body
        headers = {**self.headers, **request.headers}
        auth = self.auth if request.send_credentials else None
        redirects = 0

        while True:
            proxies = None
            if self.proxy is not None:
                proxies = {urlparse(url).scheme: self.proxy}
            log.debug(f"sending request - method={method}, url={url}, headers={headers}")
            try:
                r = await session.request(
                    method,
                    url,
                    data=body,
                    headers=headers,
                    auth=auth,
                    proxies=proxies,
                    timeout=self.timeout,
                    verify=self.verify,
                    cert=self.cert,
                    allow_redirects=False,
                )
            except niquests.exceptions.RequestException as e:
                raise error.TransportError(url=url, reason=str(e)) from e
            log.debug(f"server responded with {r.status_code} {r.reason}")

            location = r.headers.get("Location")
            if not (request.follow_redirects and r.is_redirect and location):
                break

            redirects += 1
            if redirects > request.max_redirects:
                raise error.TransportError(
                    url=url, reason=f"too many redirects (max {request.max_redirects})"
                )
            target = urljoin(url, location)
            if urlparse(url).scheme == "https" and urlparse(target).scheme != "https":
                raise error.TransportError(
                    url=url, reason=f"refusing redirect to less safe {target}"
                )
            if urlparse(target).netloc != urlparse(url).netloc:
                auth = None
            if r.status_code == _SEE_OTHER or (
                r.status_code in _MOVED and method not in ("GET", "HEAD")
            ):
                method = "GET"
                body = None
            log.debug(f"following redirect {url} -> {target}")
            url = target

        return DAVResponse(
            status=r.status_code,
            headers=r.headers,
            body=r.content or b"",
            url=url,
            tls=tls_info_from_response(r),
        )

    async def close(self) -> None:
        """Close the session if we created it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "AsyncIO":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args) -> None:
        """Async context manager exit."""
        await self.close()
