"""Tests for XML and HTML body parsing helpers."""

from xml.etree import ElementTree as ET

import pytest

from feedpoller.adapters.driven.parsing.html_select import select_value
from feedpoller.adapters.driven.parsing.xml_object import xml_to_object

__all__ = []

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Under Dusken</title>
    <item>
      <title>Første sak</title>
      <guid isPermaLink="false">42</guid>
      <dc:creator>Kari</dc:creator>
    </item>
    <item>
      <title>Andre sak</title>
    </item>
  </channel>
</rss>"""

PAGE = """
<html><body>
  <div class="group-image"><img src="/a.png" class="hero wide"></div>
  <h2 class="title">  Hello world </h2>
</body></html>
"""


def test_xml_to_object_follows_list_convention() -> None:
    """Children become lists, attributes go under '$' and text under '_'."""
    tree = xml_to_object(FEED)

    assert tree["rss"]["$"] == {"version": "2.0"}
    channel = tree["rss"]["channel"][0]
    assert channel["title"] == ["Under Dusken"]
    first, second = channel["item"]
    assert first["title"] == ["Første sak"]
    assert first["guid"] == [{"$": {"isPermaLink": "false"}, "_": "42"}]
    assert first["dc:creator"] == ["Kari"]
    assert "dc:creator" not in second


def test_xml_to_object_rejects_malformed_documents() -> None:
    """Broken XML should raise ParseError."""
    with pytest.raises(ET.ParseError):
        xml_to_object("<rss><channel></rss>")


@pytest.mark.parametrize(
    ("selector", "attribute", "expected"),
    [
        (".group-image img", "src", "/a.png"),
        (".group-image img", "class", "hero wide"),
        ("h2.title", None, "Hello world"),
        (".group-image img", "alt", None),
        ("table", None, None),
    ],
)
def test_select_value(selector: str, attribute: str | None, expected: str | None) -> None:
    """Selectors should return text, attribute values or None."""
    assert select_value(PAGE, selector, attribute) == expected


def test_select_value_invalid_selector() -> None:
    """Invalid CSS should surface as ValueError."""
    with pytest.raises(ValueError, match="Invalid selector"):
        select_value(PAGE, "div[[[")
