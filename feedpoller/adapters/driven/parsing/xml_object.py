"""Convert XML documents into plain dict/list trees.

The layout follows the common xml2js convention so transforms can address
feeds as ``rss.channel[0].item``:

- the document is ``{root_tag: element}``;
- every child tag maps to a list of converted elements;
- attributes live under ``"$"`` and text under ``"_"`` when an element has
  attributes or children, otherwise the element is just its text;
- namespaced tags keep their declared prefix (``dc:creator``).
"""

import io
from typing import Any
from xml.etree import ElementTree as ET

__all__ = ["xml_to_object", "ATTRIBUTES_KEY", "TEXT_KEY"]

ATTRIBUTES_KEY = "$"
TEXT_KEY = "_"


def _qualify(name: str, prefixes: dict[str, str]) -> str:
    """Turn ``{uri}local`` into ``prefix:local``."""
    if not name.startswith("{"):
        return name
    uri, _, local = name[1:].partition("}")
    prefix = prefixes.get(uri)
    return f"{prefix}:{local}" if prefix else local


def _convert(element: ET.Element, prefixes: dict[str, str]) -> Any:
    text = (element.text or "").strip()
    children = list(element)
    if not children and not element.attrib:
        return text

    node: dict[str, Any] = {}
    if element.attrib:
        node[ATTRIBUTES_KEY] = {_qualify(k, prefixes): v for k, v in element.attrib.items()}
    if text:
        node[TEXT_KEY] = text
    for child in children:
        node.setdefault(_qualify(child.tag, prefixes), []).append(_convert(child, prefixes))
    return node


def xml_to_object(text: str) -> dict[str, Any]:
    """Parse an XML document into a dict tree.

    Args:
        text: XML source.

    Returns:
        Single-key dict holding the converted root element.

    Raises:
        xml.etree.ElementTree.ParseError: If the document is not well formed.
    """
    prefixes: dict[str, str] = {}
    root = None
    for event, item in ET.iterparse(io.StringIO(text), events=("start-ns", "start")):
        if event == "start-ns":
            prefix, uri = item
            prefixes.setdefault(uri, prefix)
        elif root is None:
            root = item
    if root is None:
        raise ET.ParseError("document has no root element")
    return {_qualify(root.tag, prefixes): _convert(root, prefixes)}
