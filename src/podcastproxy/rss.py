"""RSS 2.0 reading and writing.

Used both for native feeds published by the sources and for the persisted
feed state, so ``parse_rss(render_rss(feed))`` must give back every item
field. Dates use the RFC 822 format required by RSS.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime

import lxml.etree as etree

from podcastproxy.errors import DecodeError
from podcastproxy.models.feed import Enclosure, Feed, Image, Item

ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"

# Feeds are untrusted input: no DTD entities, no network lookups.
_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)

# Characters XML 1.0 cannot carry, even escaped.
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_rss(content: bytes | None) -> Feed:
    """Parse an RSS 2.0 document. Raises DecodeError on malformed input."""
    if not content:
        raise DecodeError("Empty RSS document")
    try:
        root = etree.fromstring(content, parser=_PARSER)
    except etree.XMLSyntaxError as exc:
        raise DecodeError(f"Malformed RSS document: {exc}") from exc

    channel = root.find("channel")
    if channel is None:
        raise DecodeError(f"Not an RSS document: root element is <{root.tag}>")

    return Feed(
        title=_text(channel, "title"),
        description=_text(channel, "description"),
        copyright=_text(channel, "copyright"),
        link=_text(channel, "link"),
        image=_parse_image(channel.find("image")),
        updated=parse_date(_text(channel, "lastBuildDate")),
        items=[_parse_item(node) for node in channel.iterfind("item")],
    )


def parse_date(value: str) -> datetime | None:
    """Parse an RFC 822 date, returning None when absent or invalid."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _text(node: etree._Element, tag: str) -> str:
    return (node.findtext(tag) or "").strip()


def _int(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def _parse_image(node: etree._Element | None) -> Image | None:
    if node is None:
        return None
    return Image(
        url=_text(node, "url"),
        title=_text(node, "title"),
        link=_text(node, "link"),
        width=_int(node.findtext("width")),
        height=_int(node.findtext("height")),
    )


def _parse_item(node: etree._Element) -> Item:
    enclosure: Enclosure | None = None
    enclosure_node = node.find("enclosure")
    if enclosure_node is not None and enclosure_node.get("url"):
        enclosure = Enclosure(
            url=enclosure_node.get("url", ""),
            length=_int(enclosure_node.get("length")),
            type=enclosure_node.get("type", ""),
        )

    return Item(
        title=_text(node, "title"),
        link=_text(node, "link"),
        author=_text(node, "author") or _text(node, f"{{{ITUNES_NS}}}author"),
        enclosure=enclosure,
        description=_text(node, "description"),
        created=parse_date(_text(node, "pubDate")),
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return format_datetime(value)


def _clean(value: str) -> str:
    return _INVALID_XML_CHARS.sub("", value)


def _add(parent: etree._Element, tag: str, value: str, *, always: bool = False) -> None:
    if value or always:
        etree.SubElement(parent, tag).text = _clean(value)


def render_rss(feed: Feed) -> str:
    """Serialise a feed as an RSS 2.0 document."""
    rss = etree.Element("rss", version="2.0")
    channel = etree.SubElement(rss, "channel")

    # title, link and description are mandatory channel elements
    _add(channel, "title", feed.title, always=True)
    _add(channel, "link", feed.link, always=True)
    _add(channel, "description", feed.description, always=True)
    _add(channel, "copyright", feed.copyright)
    if feed.updated is not None:
        _add(channel, "lastBuildDate", format_date(feed.updated))

    if feed.image is not None and feed.image.url:
        image = etree.SubElement(channel, "image")
        _add(image, "url", feed.image.url)
        _add(image, "title", feed.image.title)
        _add(image, "link", feed.image.link)
        if feed.image.width:
            _add(image, "width", str(feed.image.width))
        if feed.image.height:
            _add(image, "height", str(feed.image.height))

    for item in feed.items:
        node = etree.SubElement(channel, "item")
        _add(node, "title", item.title)
        _add(node, "link", item.link)
        _add(node, "description", item.description)
        _add(node, "author", item.author)
        if item.enclosure is not None:
            etree.SubElement(
                node,
                "enclosure",
                url=_clean(item.enclosure.url),
                length=str(item.enclosure.length),
                type=_clean(item.enclosure.type),
            )
        if item.created is not None:
            _add(node, "pubDate", format_date(item.created))

    return etree.tostring(
        rss, encoding="UTF-8", xml_declaration=True, pretty_print=True
    ).decode("utf-8")
