#!/usr/bin/env python
import sys
import urllib.parse
from typing import cast
from typing import Iterable
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Union
from urllib.parse import ParseResult
from urllib.parse import quote
from urllib.parse import SplitResult
from urllib.parse import unquote
from urllib.parse import urlencode
from urllib.parse import urljoin
from urllib.parse import urlparse
from urllib.parse import urlunparse

from davjobs.lib.python_utilities import to_normal_str

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class URL:
    """
    This class is for wrapping URLs into objects.  It's used
    internally in the library, end users should not need to know
    anything about this class.  All methods that accept URLs can be
    fed either with a URL object, a string or a urlparse.ParsedURL
    object.

    Addresses may be one out of three:

    1) a path relative to the DAV-root, i.e. "Documents/report.odt"

    2) an absolute path, i.e. "/remote.php/webdav/Documents/report.odt"

    3) a fully qualified URL, i.e.
    "https://cloud.example.com/remote.php/webdav/Documents/report.odt".
    """

    def __init__(self, url: Union[str, ParseResult, SplitResult]) -> None:
        if isinstance(url, ParseResult) or isinstance(url, SplitResult):
            self.url_parsed: Optional[Union[ParseResult, SplitResult]] = url
            self.url_raw = None
        else:
            self.url_raw = url
            self.url_parsed = None

    def __bool__(self) -> bool:
        if self.url_raw or self.url_parsed:
            return True
        else:
            return False

    def __ne__(self, other: object) -> bool:
        return not self == other

    def __eq__(self, other: object) -> bool:
        if str(self) == str(other):
            return True
        # The URLs could have insignificant differences
        me = self.canonical()
        if hasattr(other, "canonical"):
            other = other.canonical()
        else:
            other = URL(str(other)).canonical()
        return str(me) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))

    @classmethod
    def objectify(cls, url: Union[Self, str, ParseResult, SplitResult, None]) -> "URL":
        if url is None or isinstance(url, URL):
            return url
        else:
            return URL(url)

    # To deal with all kind of methods/properties in the ParseResult
    # class
    def __getattr__(self, attr: str):
        if "url_parsed" not in vars(self):
            raise AttributeError
        if self.url_parsed is None:
            self.url_parsed = cast(urllib.parse.ParseResult, urlparse(self.url_raw))
        if hasattr(self.url_parsed, attr):
            return getattr(self.url_parsed, attr)
        else:
            return getattr(str(self), attr)

    # returns the url in text format
    def __str__(self) -> str:
        if self.url_raw is None:
            if self.url_parsed is None:
                raise ValueError("Unexpected value None for self.url_parsed")

            self.url_raw = self.url_parsed.geturl()
        return to_normal_str(self.url_raw)

    def __repr__(self) -> str:
        return "URL(%s)" % str(self)

    def strip_trailing_slash(self) -> "URL":
        if str(self)[-1] == "/":
            return URL.objectify(str(self)[:-1])
        else:
            return self

    def is_relative(self) -> bool:
        return not self.scheme and not self.netloc

    def resolved(self, other: Union["URL", str]) -> "URL":
        """Resolve a (possibly relative) reference against this URL"""
        return URL(urljoin(str(self), str(other)))

    def with_path(self, path: str) -> "URL":
        return URL(
            ParseResult(
                self.scheme,
                self.netloc,
                path,
                self.params,
                self.query,
                self.fragment,
            )
        )

    def canonical(self) -> "URL":
        """
        a canonical URL ... make sure there are no double slashes, and
        to make sure the URL is always the same, run it through the
        urlparser, and make sure path is properly quoted
        """
        arr = list(cast(urllib.parse.ParseResult, urlparse(str(self))))
        ## quoting path and removing double slashes
        arr[2] = quote(unquote(arr[2].replace("//", "/")))
        ## sensible defaults
        if not arr[0]:
            arr[0] = "https"
        if arr[1] and ":" not in arr[1]:
            if arr[0] == "https":
                portpart = ":443"
            elif arr[0] == "http":
                portpart = ":80"
            else:
                portpart = ""
            arr[1] += portpart

        return URL(urlunparse(arr))


def concat_url_path(
    url: Union[URL, str],
    path: str,
    query: Optional[Union[Mapping[str, str], Iterable[Tuple[str, str]]]] = None,
) -> URL:
    """
    Append path to the path of url, making sure there is exactly one
    slash between them.  A leading slash in path does not throw away
    the path of url, "remote.php/webdav" and "/remote.php/webdav" give
    the same result.  query replaces the query of url.
    """
    url = URL.objectify(url)
    base_path = url.path
    if path:
        if not base_path.endswith("/"):
            base_path += "/"
        if path.startswith("/"):
            path = path[1:]
        base_path += path
    querystr = url.query
    if query is not None:
        querystr = urlencode(list(query.items()) if isinstance(query, Mapping) else list(query))
    return URL(
        ParseResult(url.scheme, url.netloc, base_path, url.params, querystr, url.fragment)
    )

