#!/usr/bin/env python
"""
WebDAV verb jobs: entity tag, directory listing, property read and
write, collection creation and the existence probe.

Paths are relative to the DAV root of the context
(context.make_dav_url()), except for EntityExistsJob, whose path is
relative to the server URL.
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from urllib.parse import unquote

from davjobs.context import ServerContext
from davjobs.lib import error
from davjobs.lib.url import URL
from davjobs.protocol.types import DAVMethod, DAVRequest, DAVResponse
from davjobs.protocol.types import EtagResult, ListingResult, MultistatusEntry, Priority
from davjobs.protocol.xml_builders import build_etag_body
from davjobs.protocol.xml_builders import build_propfind_body
from davjobs.protocol.xml_builders import build_proppatch_body
from davjobs.protocol.xml_parsers import MultistatusParser
from davjobs.protocol.xml_parsers import parse_etag_response
from davjobs.protocol.xml_parsers import parse_propfind_properties

from .base import NetworkJob

XML_CONTENT_TYPES = ("application/xml", "text/xml")


def is_xml_utf8(content_type: Optional[str]) -> bool:
    """
    True for an XML media type that is either utf-8 or has no charset:

    >>> is_xml_utf8("application/xml; charset=utf-8")
    True
    >>> is_xml_utf8('text/xml; charset="ISO-8859-1"')
    False
    """
    if not content_type:
        return False
    media_type, *params = [p.strip().lower() for p in content_type.split(";")]
    if media_type not in XML_CONTENT_TYPES:
        return False
    for param in params:
        key, _, value = param.partition("=")
        if key.strip() == "charset" and value.strip().strip('"') not in ("utf-8", "utf8"):
            return False
    return True


class RequestEtagJob(NetworkJob):
    """
    Fetch the entity tag of one resource.

    Resolves with an EtagResult carrying the cleaned tag and the Date
    header of the response.  Anything but 207 raises EtagError.
    """

    log_name = "davjobs.networkjob.etag"

    def build_request(self) -> DAVRequest:
        return self.make_request(
            DAVMethod.PROPFIND,
            self.make_dav_url(),
            {"Depth": "0", "Content-Type": "application/xml; charset=utf-8"},
            build_etag_body(),
        )

    def finished(self, response: DAVResponse) -> EtagResult:
        self.log.info(
            f"Request Etag of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        if not response.is_multistatus:
            raise self.http_error(error.EtagError)
        return EtagResult(etag=parse_etag_response(response.body), timestamp=response.date)


class MkColJob(NetworkJob):
    """
    Create a collection.  The outcome is the HTTP status of the
    response, whatever it is, the caller decides what counts as success
    (201, or 405 for an existing collection).
    """

    log_name = "davjobs.networkjob.mkcol"

    def __init__(
        self,
        context: ServerContext,
        path: str = "",
        url: Union[URL, str, None] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(context, path, **kwargs)
        self.url = url
        self.extra_headers = dict(extra_headers or {})

    def build_request(self) -> DAVRequest:
        headers = {"Content-Length": "0"}
        headers.update(self.extra_headers)
        return self.make_request(
            DAVMethod.MKCOL, self.url if self.url else self.make_dav_url(), headers
        )

    def finished(self, response: DAVResponse) -> int:
        self.log.info(
            f"MKCOL of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        return response.status


class LsColJob(NetworkJob):
    """
    List a collection (PROPFIND with depth 1).

    Every <response> of the reply is passed to on_entry as a
    MultistatusEntry while the body is parsed.  The job resolves with a
    ListingResult holding the subfolders and sizes; the sizes stay
    available as the sizes attribute.

    Properties are given as "getetag" (DAV:) or "namespace:localname",
    i.e. "http://owncloud.org/ns:size".
    """

    log_name = "davjobs.networkjob.lscol"

    def __init__(
        self,
        context: ServerContext,
        path: str = "",
        properties: Iterable[str] = (),
        on_entry: Optional[Callable[[MultistatusEntry], None]] = None,
        url: Union[URL, str, None] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(context, path, **kwargs)
        self.properties: List[str] = list(properties)
        self.on_entry = on_entry
        self.url = url
        self.sizes: Dict[str, int] = {}

    def build_request(self) -> DAVRequest:
        if not self.properties:
            self.log.warning("Propfind with no properties!")
        return self.make_request(
            DAVMethod.PROPFIND,
            self.url if self.url else self.make_dav_url(),
            {"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
            build_propfind_body(self.properties),
        )

    def finished(self, response: DAVResponse) -> ListingResult:
        self.log.info(
            f"LSCOL of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        if not response.is_multistatus:
            raise self.http_error(error.LsColError)
        if not is_xml_utf8(response.content_type):
            self.log.warning(f"unexpected content type {response.content_type!r}")
            raise error.LsColError(
                url=self.request.url,
                reason=f"wrong content type {response.content_type!r}",
                status=response.status,
            )
        ## something like "/owncloud/remote.php/webdav/folder"
        expected_path = unquote(URL.objectify(self.request.url).path)
        parser = MultistatusParser(expected_path, on_entry=self.on_entry, log=self.log)
        result = parser.parse(response.body)
        self.sizes = result.sizes
        return result


class PropfindJob(NetworkJob):
    """
    Read properties of a single resource (PROPFIND with depth 0).

    Resolves with a dict of property localname -> text.  Only direct
    children of <prop> are read, nesting below is ignored.  Sent with
    high priority, this is for interactive use.
    """

    log_name = "davjobs.networkjob.propfind"

    def __init__(
        self,
        context: ServerContext,
        path: str = "",
        properties: Iterable[str] = (),
        **kwargs: Any,
    ) -> None:
        super().__init__(context, path, **kwargs)
        self.properties: List[str] = list(properties)

    def build_request(self) -> DAVRequest:
        if not self.properties:
            self.log.warning("Propfind with no properties!")
        return self.make_request(
            DAVMethod.PROPFIND,
            self.make_dav_url(),
            {"Depth": "0", "Content-Type": "application/xml; charset=utf-8"},
            build_propfind_body(self.properties, oc_prefix=False),
            priority=Priority.HIGH,
        )

    def finished(self, response: DAVResponse) -> Dict[str, str]:
        self.log.info(
            f"PROPFIND of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        if not response.is_multistatus:
            location = response.headers.get("Location", "") if response.status == 302 else ""
            self.log.warning(
                f"*not* successful, http result code is {response.status} {location}".rstrip()
            )
            raise self.http_error()
        return parse_propfind_properties(response.body)


class ProppatchJob(NetworkJob):
    """
    Set properties of a resource.  Resolves with True on 207, anything
    else raises ProppatchError.
    """

    log_name = "davjobs.networkjob.proppatch"

    def __init__(
        self,
        context: ServerContext,
        path: str = "",
        properties: Optional[Mapping[str, Union[str, bytes]]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(context, path, **kwargs)
        self.properties: Dict[str, Union[str, bytes]] = dict(properties or {})

    def build_request(self) -> DAVRequest:
        if not self.properties:
            self.log.warning("Proppatch with no properties!")
        return self.make_request(
            DAVMethod.PROPPATCH,
            self.make_dav_url(),
            {"Content-Type": "application/xml; charset=utf-8"},
            build_proppatch_body(self.properties),
        )

    def finished(self, response: DAVResponse) -> bool:
        self.log.info(
            f"PROPPATCH of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}"
        )
        if not response.is_multistatus:
            location = response.headers.get("Location", "") if response.status == 302 else ""
            self.log.warning(
                f"*not* successful, http result code is {response.status} {location}".rstrip()
            )
            raise self.http_error()
        return True


class EntityExistsJob(NetworkJob):
    """
    HEAD request below the server URL.  Resolves with the response, the
    caller decides about existence from its status.
    """

    log_name = "davjobs.networkjob.entityexists"

    def build_request(self) -> DAVRequest:
        return self.make_request(DAVMethod.HEAD, self.make_account_url())

    def finished(self, response: DAVResponse) -> DAVResponse:
        self.log.debug(f"HEAD of {self.request.url} FINISHED WITH STATUS {self.reply_status_string()}")
        return response
