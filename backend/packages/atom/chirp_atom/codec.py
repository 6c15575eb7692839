"""
Atom feed document codec.

Encodes a feed's updates as an Atom 1.0 document with ElementTree and decodes
pushed documents with feedparser. Decoding is pure: storing the result is up
to the caller.
"""

import io
import re
import xml.sax
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Protocol
from xml.etree import ElementTree as ET

import feedparser

ATOM_NS = "http://www.w3.org/2005/Atom"
ATOM_CONTENT_TYPE = "application/atom+xml"

ET.register_namespace("", ATOM_NS)

# Characters outside the XML 1.0 Char production.
ILLEGAL_XML_CHARS = re.compile(r"[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


class MalformedDocumentError(ValueError):
    """The document is not well-formed markup or misses a required field."""


class _Author(Protocol):
    name: str
    url: str


class _Entry(Protocol):
    guid: str
    text: str
    author: _Author
    published: datetime


class _Feed(Protocol):
    url: str
    title: str
    hubs: list[str]
    author: Any
    entries: list[Any]


class DecodedEntry:
    """Entry decoded from a feed document."""

    def __init__(
        self,
        guid: str,
        text: str,
        author_name: str,
        author_url: str,
        published: datetime,
    ):
        self.guid = guid
        self.text = text
        self.author_name = author_name
        self.author_url = author_url
        self.published = published

    def __repr__(self) -> str:
        return f"DecodedEntry(guid={self.guid!r}, published={self.published.isoformat()})"


class DecodedDocument:
    """Feed document metadata plus its entries in document order."""

    def __init__(
        self,
        self_url: str | None,
        title: str,
        hubs: list[str],
        entries: list[DecodedEntry],
    ):
        self.self_url = self_url
        self.title = title
        self.hubs = hubs
        self.entries = entries


def _timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _text(parent: ET.Element, tag: str, value: str, **attrs: str) -> ET.Element:
    elem = ET.SubElement(parent, f"{{{ATOM_NS}}}{tag}", attrs)
    elem.text = ILLEGAL_XML_CHARS.sub("", value)
    return elem


def _link(parent: ET.Element, rel: str, href: str, **attrs: str) -> None:
    ET.SubElement(parent, f"{{{ATOM_NS}}}link", {"rel": rel, "href": href, **attrs})


def _author(parent: ET.Element, name: str, url: str) -> None:
    author = ET.SubElement(parent, f"{{{ATOM_NS}}}author")
    _text(author, "name", name)
    _text(author, "uri", url)


def encode(feed: _Feed, base_url: str, limit: int | None = None) -> bytes:
    """
    Encode a feed as an Atom document.

    Args:
        feed: Feed with ``url``, ``title``, ``hubs``, ``author`` and ``entries``
            (newest first; each with ``guid``, ``text``, ``author`` and ``published``).
        base_url: Public site URL, used as the alternate link.
        limit: Optional maximum number of entries to include.

    Returns:
        UTF-8 encoded Atom XML.
    """
    entries: Iterable[_Entry] = feed.entries if limit is None else feed.entries[:limit]
    entries = list(entries)

    root = ET.Element(f"{{{ATOM_NS}}}feed")
    _text(root, "id", feed.url)
    _text(root, "title", feed.title or feed.url)

    updated = entries[0].published if entries else datetime.now(timezone.utc)
    _text(root, "updated", _timestamp(updated))
    _text(root, "generator", "Chirp")

    _link(root, "self", feed.url, type=ATOM_CONTENT_TYPE)
    _link(root, "alternate", base_url, type="text/html")
    for hub in feed.hubs:
        _link(root, "hub", hub)

    if feed.author is not None:
        _author(root, feed.author.name, feed.author.url)

    for update in entries:
        entry = ET.SubElement(root, f"{{{ATOM_NS}}}entry")
        _text(entry, "id", update.guid)
        _text(entry, "title", update.text)
        _text(entry, "content", update.text, type="text")
        _text(entry, "published", _timestamp(update.published))
        _text(entry, "updated", _timestamp(update.published))
        _author(entry, update.author.name, update.author.url)
        _link(entry, "alternate", update.author.url, type="text/html")

    tree = ET.ElementTree(root)
    ET.indent(tree, space="  ")

    output = io.BytesIO()
    tree.write(output, encoding="utf-8", xml_declaration=True)
    return output.getvalue()


def _parse_time(data: dict[str, Any]) -> datetime | None:
    for key in ("published", "updated"):
        raw = data.get(key)
        if raw:
            try:
                value = datetime.fromisoformat(raw.strip())
            except ValueError:
                value = None
            if value is not None:
                return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

        parsed = data.get(f"{key}_parsed")
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _content(data: dict[str, Any]) -> str | None:
    # Prefer content over summary
    content_list = data.get("content", [])
    if content_list:
        return content_list[0].get("value")
    return data.get("summary")


def _raw_texts(content: bytes | str) -> dict[str, str]:
    """Plain-text Atom content by entry id, exactly as written."""
    # feedparser strips surrounding whitespace from content values.
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return {}

    texts: dict[str, str] = {}
    for entry in root.iter(f"{{{ATOM_NS}}}entry"):
        guid = entry.findtext(f"{{{ATOM_NS}}}id")
        node = entry.find(f"{{{ATOM_NS}}}content")
        if guid is None or node is None or node.get("type", "text") != "text" or len(node):
            continue
        texts[guid.strip()] = node.text or ""
    return texts


def _decode_entry(
    data: dict[str, Any], feed_author: dict[str, Any], raw_texts: dict[str, str]
) -> DecodedEntry:
    guid = data.get("id")
    if not guid:
        raise MalformedDocumentError("Entry is missing its id")

    published = _parse_time(data)
    if published is None:
        raise MalformedDocumentError(f"Entry {guid} is missing its timestamp")

    text = raw_texts.get(guid)
    if text is None:
        text = _content(data)
    if text is None:
        raise MalformedDocumentError(f"Entry {guid} is missing its content")

    author = data.get("author_detail") or feed_author
    author_url = author.get("href", "")
    author_name = author.get("name") or author_url

    return DecodedEntry(
        guid=guid,
        text=text,
        author_name=author_name,
        author_url=author_url,
        published=published,
    )


def parse_document(content: bytes | str) -> DecodedDocument:
    """
    Parse a feed document.

    Unknown extension elements are ignored. Plain-text Atom content keeps
    its whitespace exactly.

    Args:
        content: Raw document.

    Returns:
        Decoded document.

    Raises:
        MalformedDocumentError: If the markup is not well-formed, is not a
            syndication document, or an entry lacks id, timestamp or content.
    """
    data = feedparser.parse(content)

    if data.get("bozo", False) and isinstance(data.get("bozo_exception"), xml.sax.SAXException):
        raise MalformedDocumentError(f"Failed to parse document: {data['bozo_exception']}")
    if not data.get("version"):
        raise MalformedDocumentError("Not a syndication document")

    feed_info = data.get("feed", {})
    self_url = None
    hubs: list[str] = []
    for link in feed_info.get("links", []):
        if link.get("rel") == "self":
            self_url = link.get("href")
        elif link.get("rel") == "hub" and link.get("href"):
            hubs.append(link["href"])

    feed_author = feed_info.get("author_detail") or {}
    raw_texts = _raw_texts(content)
    entries = [
        _decode_entry(entry, feed_author, raw_texts) for entry in data.get("entries", [])
    ]

    return DecodedDocument(
        self_url=self_url,
        title=feed_info.get("title", ""),
        hubs=hubs,
        entries=entries,
    )


def decode(content: bytes | str) -> list[DecodedEntry]:
    """
    Decode the entries of a feed document, in document order.

    Raises:
        MalformedDocumentError: See ``parse_document``.
    """
    return parse_document(content).entries
