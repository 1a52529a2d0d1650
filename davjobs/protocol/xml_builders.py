"""
Pure functions for building WebDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.

Property names follow one convention throughout: "getetag" is a property
in the DAV: namespace, "http://owncloud.org/ns:size" or
"urn:vendor:ns:thing" carry their namespace before the last colon.
"""
from typing import Iterable
from typing import Mapping
from typing import Union

from lxml import etree

from davjobs.elements import dav
from davjobs.elements.base import BaseElement
from davjobs.elements.base import PropertyElement
from davjobs.lib.namespace import nsmap
from davjobs.lib.namespace import nsmap_oc


def _tostring(element: BaseElement) -> bytes:
    return etree.tostring(element.xmlelement(), encoding="utf-8", xml_declaration=True)


def build_etag_body() -> bytes:
    """
    PROPFIND body asking for the entity tag only:
    <d:propfind><d:prop><d:getetag/></d:prop></d:propfind>
    """
    return _tostring(dav.Propfind() + (dav.Prop() + dav.GetEtag()))


def build_propfind_body(props: Iterable[str], oc_prefix: bool = True) -> bytes:
    """
    Build PROPFIND request body XML.

    Args:
        props: Property names to retrieve.
        oc_prefix: Declare the oc: prefix on the root and render owncloud
            properties with it (directory listings).  When false, owncloud
            properties are rendered like any other foreign namespace, with
            their own xmlns declaration.

    Returns:
        UTF-8 encoded XML bytes
    """
    propfind = dav.Propfind(nsmap=nsmap_oc if oc_prefix else nsmap)
    prop = dav.Prop()
    for prop_name in props:
        prop += PropertyElement(prop_name, oc_prefix=oc_prefix)
    propfind += prop
    return _tostring(propfind)


def build_proppatch_body(properties: Mapping[str, Union[str, bytes]]) -> bytes:
    """
    Build PROPPATCH request body for setting properties:
    <d:propertyupdate><d:set><d:prop>...</d:prop></d:set></d:propertyupdate>

    Args:
        properties: Properties to set (name -> value)

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop()
    for name, value in properties.items():
        prop += PropertyElement(name, value=value)
    propertyupdate = dav.PropertyUpdate(nsmap=nsmap_oc) + (dav.Set() + prop)
    return _tostring(propertyupdate)
