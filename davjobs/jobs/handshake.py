#!/usr/bin/env python
"""
Handshake jobs, run before an account is usable: finding the server
instance behind a URL and finding out which kind of credentials it
wants.
"""

import json
from typing import Any, Callable, Dict, Optional

from davjobs.context import ServerContext
from davjobs.lib import error
from davjobs.lib.auth import AuthType
from davjobs.lib.auth import classify_auth_challenge
from davjobs.lib.url import concat_url_path
from davjobs.lib.url import URL
from davjobs.protocol.types import DAVMethod, DAVRequest, DAVResponse, DiscoveryResult

from .base import NetworkJob
from .base import RESTART
from .base import SimpleNetworkJob

STATUS_PHP = "status.php"
## where servers installed below a subdirectory keep their status file
SUBDIR_STATUS_PHP = "owncloud/" + STATUS_PHP

DEFAULT_MAX_REDIRECTS = 10
AUTH_PROBE_TIMEOUT = 30


class CheckServerJob(NetworkJob):
    """
    Find the server instance behind the URL of the context.

    GETs status.php without credentials, following redirects as long as
    they do not lead to a less safe scheme.  On a 404 it retries once
    with owncloud/status.php.

    When the URL the status was finally found at differs from the URL
    of the context, on_redirect(old_url, new_url) is called before the
    job resolves, so the caller can store the corrected URL.

    Resolves with a DiscoveryResult; raises InstanceNotFoundError for
    anything but a 200 with a JSON object that has an "installed" key.
    """

    log_name = "davjobs.networkjob.checkserver"

    def __init__(
        self,
        context: ServerContext,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        on_redirect: Optional[Callable[[URL, URL], None]] = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("ignore_credential_failure", True)
        super().__init__(context, STATUS_PHP, **kwargs)
        self.max_redirects = max_redirects
        self.on_redirect = on_redirect
        self.server_url: Optional[URL] = None
        self.subdir_fallback = False

    @staticmethod
    def version(info: Dict[str, Any]) -> str:
        return f"{info.get('version', '')}-{info.get('productname', '')}"

    @staticmethod
    def version_string(info: Dict[str, Any]) -> str:
        return info.get("versionstring", "")

    @staticmethod
    def installed(info: Dict[str, Any]) -> bool:
        return bool(info.get("installed", False))

    def build_request(self) -> DAVRequest:
        self.server_url = self.context.url
        ## don't authenticate the request to a possibly external service
        return self.make_request(
            DAVMethod.GET,
            concat_url_path(self.server_url, self.path),
            {"OC-Connection-Validator": "desktop"},
            send_credentials=False,
            follow_redirects=True,
            max_redirects=self.max_redirects,
        )

    def target_url(self, response: DAVResponse) -> URL:
        """The URL the server is at, as seen after redirects"""
        url = URL.objectify(response.url or self.request.url)
        if url.is_relative():
            url = self.server_url.resolved(url)
        return url.with_path(url.path.replace("/" + STATUS_PHP, "") or "/")

    def timed_out(self) -> None:
        self.log.warning("TIMEOUT")

    def transport_failed(self, exc: error.TransportError) -> DiscoveryResult:
        self.log.warning(f"error: {exc.reason}")
        raise error.InstanceNotFoundError(url=self.request.url, reason=exc.reason, status=0)

    def finished(self, response: DAVResponse) -> DiscoveryResult:
        target_url = self.target_url(response)
        if self.server_url.strip_trailing_slash() != target_url.strip_trailing_slash():
            self.log.info(f"redirect detected: {self.server_url} -> {target_url}")
            if self.on_redirect is not None:
                self.on_redirect(self.server_url, target_url)

        self.context.merge_tls_info(response.tls)

        ## The server installs to /owncloud.  Let's try that if the file
        ## wasn't found at the original location
        if response.status == 404 and not self.subdir_fallback:
            self.subdir_fallback = True
            self.path = SUBDIR_STATUS_PHP
            self.log.info(f"Retrying with {concat_url_path(self.server_url, self.path)}")
            return RESTART

        if not response.body or response.status != 200:
            self.log.warning(f"error: status.php replied {response.status} {response.body!r}")
            raise error.InstanceNotFoundError(
                url=self.request.url,
                reason=f"status.php replied {response.status} {response.reason}",
                status=response.status,
            )

        try:
            info = json.loads(response.text)
        except ValueError as e:
            self.log.warning(
                f"status.php from server is not valid JSON! {response.body!r} {self.request.url} {e}"
            )
            info = None

        self.log.info(f"status.php returns: {info}")
        if isinstance(info, dict) and "installed" in info:
            return DiscoveryResult(url=str(target_url), info=info)
        self.log.warning(f"No proper answer on {response.url or self.request.url}")
        raise error.InstanceNotFoundError(
            url=self.request.url, reason="no installed field in status", status=response.status
        )


class DetermineAuthTypeJob(SimpleNetworkJob):
    """
    Probe the DAV root with an unauthenticated PROPFIND and read the
    WWW-Authenticate challenge.  Resolves with AuthType.OAUTH when the
    server offers a bearer challenge, AuthType.BASIC otherwise.

    No stored credentials are sent and no earlier authentication state
    is reused.  The expected 401 is not a credential failure.
    """

    log_name = "davjobs.networkjob.determineauthtype"

    def __init__(self, context: ServerContext, **kwargs: Any) -> None:
        kwargs.setdefault("timeout", AUTH_PROBE_TIMEOUT)
        super().__init__(
            context,
            DAVMethod.PROPFIND,
            context.dav_url,
            send_credentials=False,
            reuse_auth=False,
            ignore_credential_failure=True,
            **kwargs,
        )

    def build_request(self) -> DAVRequest:
        self.log.info(f"Determining auth type for {self.url}")
        return super().build_request()

    def finished(self, response: DAVResponse) -> AuthType:
        challenge = response.headers.get("WWW-Authenticate", "")
        if not challenge:
            self.log.warning("Did not receive WWW-Authenticate reply to auth-test PROPFIND")
        result = classify_auth_challenge(challenge)
        self.log.info(f"Auth type for {self.url} is {result}")
        return result
