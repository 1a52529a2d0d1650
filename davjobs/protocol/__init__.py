"""
Sans-I/O WebDAV protocol layer.

This module provides protocol-level operations without any I/O.
It builds request bodies and parses response bodies as pure data
transformations.

The protocol layer is organized into:
- types: Core data structures (DAVRequest, DAVResponse, result types)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Streaming parsers for XML response bodies
"""

from .types import (
    # Enums
    DAVMethod,
    Priority,
    # Request/Response
    DAVRequest,
    DAVResponse,
    TlsSessionInfo,
    # Result types
    DiscoveryResult,
    EtagResult,
    JsonApiResult,
    ListingResult,
    MultistatusEntry,
)
from .xml_builders import (
    build_etag_body,
    build_propfind_body,
    build_proppatch_body,
)
from .xml_parsers import (
    MultistatusParser,
    parse_etag,
    parse_etag_response,
    parse_multistatus,
    parse_propfind_properties,
    read_contents_as_string,
)

__all__ = [
    # Enums
    "DAVMethod",
    "Priority",
    # Request/Response
    "DAVRequest",
    "DAVResponse",
    "TlsSessionInfo",
    # Result types
    "DiscoveryResult",
    "EtagResult",
    "JsonApiResult",
    "ListingResult",
    "MultistatusEntry",
    # XML Builders
    "build_etag_body",
    "build_propfind_body",
    "build_proppatch_body",
    # XML Parsers
    "MultistatusParser",
    "parse_etag",
    "parse_etag_response",
    "parse_multistatus",
    "parse_propfind_properties",
    "read_contents_as_string",
]
