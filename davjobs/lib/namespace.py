#!/usr/bin/env python
from typing import Dict
from typing import Optional

DAV_NS = "DAV:"
OC_NS = "http://owncloud.org/ns"

nsmap: Dict[str, str] = {
    "d": DAV_NS,
}

## The owncloud namespace is only declared on requests that make use
## of the oc: prefix (directory listings)
nsmap_oc: Dict[str, str] = nsmap.copy()
nsmap_oc["oc"] = OC_NS

_prefixes: Dict[str, str] = {"D": DAV_NS, "d": DAV_NS, "oc": OC_NS}


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % _prefixes[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name


def split_property_name(prop: str) -> tuple:
    """
    Property names are given as "localname" (DAV: namespace) or as
    "namespace:localname".  The namespace itself may contain colons
    (http://owncloud.org/ns:fileid), so split on the last one.

    Returns (namespace, localname).
    """
    if ":" in prop:
        idx = prop.rindex(":")
        return prop[:idx], prop[idx + 1 :]
    return DAV_NS, prop
