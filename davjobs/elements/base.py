#!/usr/bin/env python
import sys
from collections.abc import Iterable
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from davjobs.lib.namespace import DAV_NS
from davjobs.lib.namespace import nsmap as default_nsmap
from davjobs.lib.namespace import OC_NS
from davjobs.lib.namespace import split_property_name
from davjobs.lib.python_utilities import to_normal_str

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    children: Optional[List[Self]] = None
    tag: ClassVar[Optional[str]] = None
    value: Optional[str] = None
    nsmap: Optional[Dict[Optional[str], str]] = None

    def __init__(
        self,
        value: Union[str, bytes, None] = None,
        nsmap: Optional[Dict[Optional[str], str]] = None,
    ) -> None:
        self.children = []
        value = to_normal_str(value)
        self.value = None
        if value is not None:
            self.value = value
        if nsmap is not None:
            self.nsmap = nsmap

    def __add__(
        self, other: Union["BaseElement", Iterable["BaseElement"]]
    ) -> "BaseElement":
        return self.append(other)

    def __str__(self) -> str:
        utf8 = etree.tostring(
            self.xmlelement(), encoding="utf-8", xml_declaration=True, pretty_print=True
        )
        return str(utf8, "utf-8")

    def _tag(self) -> str:
        return self.tag

    def xmlelement(self, parent: Optional[_Element] = None) -> _Element:
        """
        Render the element (and its children) into lxml.  The namespace
        declarations are only put on the root element, plus on children
        that carry their own nsmap (properties in foreign namespaces).
        """
        tag = self._tag()
        if tag is None:
            raise ValueError("Unexpected value None for self.tag")

        if parent is None:
            root = etree.Element(tag, nsmap=self.nsmap or default_nsmap)
        elif self.nsmap:
            root = etree.SubElement(parent, tag, nsmap=self.nsmap)
        else:
            root = etree.SubElement(parent, tag)
        if self.value is not None:
            root.text = self.value

        self.xmlchildren(root)
        return root

    def xmlchildren(self, root: _Element) -> None:
        if self.children is None:
            raise ValueError("Unexpected value None for self.children")

        for c in self.children:
            c.xmlelement(root)

    def append(self, element: Union[Self, Iterable[Self]]) -> Self:
        if self.children is None:
            raise ValueError("Unexpected value None for self.children")

        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)

        return self


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super(ValuedBaseElement, self).__init__(value=value)


class PropertyElement(BaseElement):
    """
    An arbitrary property, given by a property name as used throughout
    the jobs: "getetag" (DAV:), "http://owncloud.org/ns:size" or
    "urn:other:ns:whatever".

    Properties in DAV: and (when oc_prefix is set and the oc prefix is
    declared by the root element) in the owncloud namespace are rendered
    prefixed, everything else gets its own default namespace
    declaration, i.e. <whatever xmlns="urn:other:ns"/>.
    """

    def __init__(
        self,
        prop_name: str,
        value: Union[str, bytes, None] = None,
        oc_prefix: bool = True,
    ) -> None:
        super(PropertyElement, self).__init__(value=value)
        self.namespace, self.localname = split_property_name(prop_name)
        if self.namespace != DAV_NS and not (oc_prefix and self.namespace == OC_NS):
            self.nsmap = {None: self.namespace}

    def _tag(self) -> str:
        return "{%s}%s" % (self.namespace, self.localname)
