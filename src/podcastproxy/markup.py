"""HTML parsing helpers on top of lxml.

Strategies describe pages with XPath expressions; these helpers keep the
lxml specifics (parser errors, attribute access, text extraction) in one
place.
"""

from __future__ import annotations

import lxml.etree
import lxml.html
from lxml.html import HtmlElement

from podcastproxy.errors import DecodeError, ExtractionMiss


def parse_html(content: bytes | None, *, url: str = "") -> HtmlElement:
    """Parse a full HTML document. Empty or unparseable markup raises DecodeError."""
    if not content:
        raise DecodeError(f"Empty HTML document at {url}")
    try:
        return lxml.html.document_fromstring(content)
    except (lxml.etree.ParserError, ValueError) as exc:
        raise DecodeError(f"Malformed HTML at {url}: {exc}") from exc


def find(node: HtmlElement, xpath: str) -> list[HtmlElement]:
    """Return the element matches of ``xpath`` (non-element results are dropped)."""
    return [match for match in node.xpath(xpath) if isinstance(match, HtmlElement)]


def find_one(node: HtmlElement, xpath: str) -> HtmlElement | None:
    matches = find(node, xpath)
    return matches[0] if matches else None


def attribute(node: HtmlElement | None, name: str) -> str:
    """Attribute value, or an empty string when the node or attribute is missing."""
    if node is None:
        return ""
    return node.get(name) or ""


def first_text(node: HtmlElement, xpath: str) -> str:
    """Stripped text of the first match of ``xpath``.

    Raises ExtractionMiss when nothing matches.
    """
    match = find_one(node, xpath)
    if match is None:
        raise ExtractionMiss(f"No element matches {xpath}")
    return match.text_content().strip()
