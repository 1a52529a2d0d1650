"""
Functions and classes for parsing WebDAV XML responses.

The bodies are processed as a stream of start/end events from
lxml's XMLPullParser, so only the element currently being looked at (and
its ancestors) is kept in memory, never the whole document.
"""

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple
from urllib.parse import unquote

from lxml import etree
from lxml.etree import _Element

from davjobs.lib import error
from davjobs.lib.namespace import DAV_NS

from .types import ListingResult
from .types import MultistatusEntry

log = logging.getLogger("davjobs.networkjob.lscol")

## Bodies are fed to the pull parser in chunks of this size
CHUNK_SIZE = 64 * 1024


def _make_parser(events: Tuple[str, ...] = ("start", "end")) -> etree.XMLPullParser:
    return etree.XMLPullParser(
        events=events,
        remove_comments=True,
        remove_pis=True,
        resolve_entities=False,
        no_network=True,
    )


def _split_tag(tag) -> Tuple[Optional[str], str]:
    if not isinstance(tag, str):
        return None, ""
    qname = etree.QName(tag)
    return qname.namespace, qname.localname


def _localname(tag) -> str:
    return _split_tag(tag)[1]


def _events(body: bytes, parser: etree.XMLPullParser) -> Iterable[Tuple[str, _Element]]:
    """
    Feed body to parser chunk by chunk, yielding the events as they
    become available.  An XMLSyntaxError is raised only after all events
    the parser produced before the error have been yielded.
    """
    syntax_error = None
    try:
        for offset in range(0, len(body), CHUNK_SIZE):
            parser.feed(body[offset : offset + CHUNK_SIZE])
            yield from parser.read_events()
        parser.close()
    except etree.XMLSyntaxError as e:
        syntax_error = e
    yield from parser.read_events()
    if syntax_error is not None:
        raise syntax_error


def parse_etag(header: Optional[str]) -> str:
    """
    Normalize an entity tag as delivered by the server.

    Weak tags (W/"...") show up when the server compresses the
    response, and some servers append -gzip to the tag in that case.
    Both are stripped, as are the surrounding quotes:

    >>> parse_etag('W/"abc-gzip"')
    'abc'
    >>> parse_etag('"abc"')
    'abc'
    """
    if not header:
        return ""
    arr = header
    if arr.startswith("W/"):
        arr = arr[2:]
    arr = arr.replace("-gzip", "")
    if len(arr) >= 2 and arr.startswith('"') and arr.endswith('"'):
        arr = arr[1:-1]
    return arr


def read_contents_as_string(elem: _Element) -> str:
    """
    The inner content of an element as a flat string, child elements
    rendered as <localname>...</localname> without namespaces or
    attributes.  A <d:resourcetype><d:collection/></d:resourcetype>
    property thus becomes "<collection></collection>".
    """
    parts = [elem.text or ""]
    for child in elem:
        name = _localname(child.tag)
        if name:
            parts.append("<%s>" % name)
            parts.append(read_contents_as_string(child))
            parts.append("</%s>" % name)
        parts.append(child.tail or "")
    return "".join(parts)


def parse_etag_response(body: bytes) -> str:
    """
    Find the DAV:getetag elements of a depth 0 PROPFIND response.

    Returns:
        The cleaned entity tag.  Should there be more than one, they are
        concatenated.  A tag that cleans up to nothing is used verbatim.

    Raises:
        EtagError: if the body is not well-formed XML
    """
    etag = ""
    try:
        for event, elem in _events(body, _make_parser(("end",))):
            if elem.tag == "{%s}getetag" % DAV_NS:
                text = elem.text or ""
                etag += parse_etag(text) or text
    except etree.XMLSyntaxError as e:
        log.warning("XML parser error: %s", e)
        raise error.EtagError(reason=f"XML parser error: {e}")
    return etag


def parse_propfind_properties(body: bytes) -> Dict[str, str]:
    """
    Read the properties of a depth 0 PROPFIND response into a flat
    property name -> text mapping.

    Only the direct children of a <prop> element are recorded, and only
    their own character data - anything nested deeper is skipped.
    Namespaces are dropped from the property names.

    Raises:
        PropfindError: if the body is not well-formed XML
    """
    items: Dict[str, str] = {}
    stack: List[str] = []
    capture: Optional[_Element] = None
    capture_level = 0
    try:
        for event, elem in _events(body, _make_parser()):
            name = _localname(elem.tag)
            if event == "start":
                if capture is not None:
                    capture_level += 1
                elif stack and stack[-1] == "prop":
                    capture = elem
                    capture_level = 1
                else:
                    stack.append(name)
                continue
            if capture is not None:
                capture_level -= 1
                if capture_level == 0:
                    items[_localname(capture.tag)] = (capture.text or "") + "".join(
                        child.tail or "" for child in capture
                    )
                    capture = None
                continue
            if stack and stack[-1] == name:
                stack.pop()
    except etree.XMLSyntaxError as e:
        log.warning("XML parser error: %s", e)
        raise error.PropfindError(reason=f"XML parser error: {e}")
    return items


@dataclass
class ParseState:
    """
    Everything the multistatus parser needs to remember between two
    events.  Lives exactly as long as one parse() call.
    """

    current_href: str = ""
    ## properties of the propstat block being read
    tmp_properties: Dict[str, str] = field(default_factory=dict)
    ## properties of the last propstat block of the current response
    ## that had a HTTP/1.1 200 status
    http200_properties: Dict[str, str] = field(default_factory=dict)
    props_have_http200: bool = False
    inside_propstat: bool = False
    inside_prop: bool = False
    inside_multistatus: bool = False
    depth: int = 0
    ## depth of the property element whose content is being captured
    capture_depth: Optional[int] = None
    folders: List[str] = field(default_factory=list)
    sizes: Dict[str, int] = field(default_factory=dict)

    def reset_response(self) -> None:
        self.current_href = ""
        self.http200_properties = {}


class MultistatusParser:
    """
    Streaming parser for the multistatus body of a directory listing
    (depth 1 PROPFIND).

    Each <response> is handed to on_entry as soon as its end tag has
    been read, so a caller sees the entries before the document is
    complete.  Only properties from propstat blocks with a
    "HTTP/1.1 200" status make it into an entry; with several such
    blocks the last one wins.

    Every href has to start with expected_path (the path of the
    request), otherwise the whole parse fails.  Entries already handed
    out stay valid.
    """

    def __init__(
        self,
        expected_path: str,
        on_entry: Optional[Callable[[MultistatusEntry], None]] = None,
        log: logging.Logger = log,
    ) -> None:
        self.expected_path = expected_path
        self.on_entry = on_entry
        self.log = log

    def parse(self, body: bytes) -> ListingResult:
        """
        Parse a complete multistatus body.

        Returns:
            The folders found and the sizes reported.

        Raises:
            ValidationError: an href outside of expected_path, or a size
                that is not a number
            ProtocolError: malformed XML, or no multistatus element at all
        """
        state = ParseState()
        try:
            for event, elem in _events(body, _make_parser()):
                if event == "start":
                    self._start_element(elem, state)
                else:
                    self._end_element(elem, state)
        except etree.XMLSyntaxError as e:
            ## whatever was emitted before stays emitted
            self.log.warning("ERROR %s %r", e, body)
            raise error.ProtocolError(reason=f"XML parser error: {e}")

        if not state.inside_multistatus:
            self.log.warning("ERROR no WebDAV response? %r", body)
            raise error.ProtocolError(reason="no multistatus element in response")

        return ListingResult(folders=state.folders, sizes=state.sizes)

    def _start_element(self, elem: _Element, state: ParseState) -> None:
        state.depth += 1
        if state.capture_depth is not None:
            return
        namespace, name = _split_tag(elem.tag)
        if namespace == DAV_NS:
            if name == "propstat":
                state.inside_propstat = True
            elif name == "prop":
                state.inside_prop = True
                return
            elif name == "multistatus":
                state.inside_multistatus = True
                return
        if state.inside_propstat and state.inside_prop:
            ## All those elements are properties
            state.capture_depth = state.depth

    def _end_element(self, elem: _Element, state: ParseState) -> None:
        depth = state.depth
        state.depth -= 1
        if state.capture_depth is not None:
            if depth == state.capture_depth:
                state.tmp_properties[_localname(elem.tag)] = read_contents_as_string(elem)
                state.capture_depth = None
            return

        namespace, name = _split_tag(elem.tag)
        if namespace != DAV_NS:
            return
        if name == "href":
            ## The request path is not percent-encoded, the hrefs are
            href = unquote(elem.text or "")
            if not href.startswith(self.expected_path):
                self.log.warning(
                    "Invalid href %s expected starting with %s", href, self.expected_path
                )
                raise error.ValidationError(
                    url=href, reason=f"href outside of {self.expected_path}"
                )
            state.current_href = href
        elif name == "status" and state.inside_propstat:
            status = (elem.text or "").strip()
            state.props_have_http200 = status.startswith("HTTP/1.1 200")
        elif name == "propstat":
            state.inside_propstat = False
            if state.props_have_http200:
                state.http200_properties = dict(state.tmp_properties)
            state.tmp_properties = {}
            state.props_have_http200 = False
        elif name == "prop":
            state.inside_prop = False
        elif name == "response":
            self._finish_response(state)
            ## drop what has been read so far, memory stays flat
            elem.clear()
            parent = elem.getparent()
            if parent is not None:
                while elem.getprevious() is not None:
                    del parent[0]

    def _finish_response(self, state: ParseState) -> None:
        href = state.current_href
        if not href:
            error.weirdness("multistatus response without href")
        properties = state.http200_properties
        is_collection = "collection" in properties.get("resourcetype", "")
        if is_collection:
            state.folders.append(href)

        size = None
        size_text = properties.get("size", "").strip()
        if size_text:
            ## int() would also take "+5", "1_000" or non-ASCII digits
            if size_text.isascii() and size_text.isdigit():
                size = int(size_text)
            else:
                size = -1
            if not 0 <= size < 2**63:
                self.log.warning("Invalid size %r for %s", size_text, href)
                raise error.ValidationError(url=href, reason=f"invalid size {size_text!r}")
            state.sizes[href] = size

        if href.endswith("/"):
            href = href[:-1]
        entry = MultistatusEntry(
            href=href,
            properties=dict(properties),
            is_collection=is_collection,
            size=size,
        )
        state.reset_response()
        if self.on_entry is not None:
            self.on_entry(entry)


def parse_multistatus(
    body: bytes, expected_path: str
) -> Tuple[List[MultistatusEntry], ListingResult]:
    """
    Convenience wrapper around MultistatusParser collecting all entries.

    Returns:
        (entries, listing result)
    """
    entries: List[MultistatusEntry] = []
    result = MultistatusParser(expected_path, on_entry=entries.append).parse(body)
    return entries, result
