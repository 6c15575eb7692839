"""Tests for the Atom document codec."""

from datetime import datetime, timezone

import pytest

from chirp_atom import MalformedDocumentError, decode, encode, parse_document
from chirp_core.schemas import AuthorProfile, Feed, Update

ALICE = AuthorProfile(name="Alice", url="http://example.com/users/alice")


def _feed(entries: list[Update]) -> Feed:
    return Feed(
        id="f1",
        url="http://example.com/feeds/f1",
        title="Alice's updates",
        secret="s",
        hubs=["http://hub.example/"],
        author=ALICE,
        entries=entries,
    )


def _update(guid: str, text: str, minute: int) -> Update:
    return Update(
        guid=guid,
        text=text,
        author=ALICE,
        published=datetime(2026, 10, 19, 12, minute, 30, 123456, tzinfo=timezone.utc),
    )


def _document(entries: str, feed_author: str = "") -> bytes:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <id>http://remote.example/feeds/1</id>
  <title>Remote</title>
  <updated>2026-10-19T12:00:00Z</updated>
  <link rel="self" href="http://remote.example/feeds/1"/>
  <link rel="hub" href="http://hub.example/"/>
  {feed_author}
  {entries}
</feed>""".encode()


class TestEncodeDecode:
    """Test that decoding an encoded feed yields the same updates."""

    def test_empty_feed(self):
        """Test an empty feed decodes to no entries."""
        assert decode(encode(_feed([]), "http://example.com")) == []

    def test_single_entry(self):
        """Test one entry keeps id, text, author and timestamp."""
        update = _update("urn:uuid:1", "hello world", 0)

        [entry] = decode(encode(_feed([update]), "http://example.com"))

        assert entry.guid == "urn:uuid:1"
        assert entry.text == "hello world"
        assert entry.author_name == "Alice"
        assert entry.author_url == ALICE.url
        assert entry.published == update.published

    def test_many_entries_keep_order(self):
        """Test entries come back in document order, newest first."""
        updates = [_update(f"urn:uuid:{i}", f"update {i}", 10 - i) for i in range(5)]

        entries = decode(encode(_feed(updates), "http://example.com"))

        assert [e.guid for e in entries] == [u.guid for u in updates]
        assert [e.text for e in entries] == [u.text for u in updates]
        assert [e.published for e in entries] == [u.published for u in updates]

    def test_whitespace_preserved(self):
        """Test leading, trailing and inner whitespace of the text is kept exactly."""
        updates = [
            _update("urn:uuid:1", "  padded  ", 1),
            _update("urn:uuid:2", "line one\n\n  line two\n", 0),
        ]

        entries = decode(encode(_feed(updates), "http://example.com"))

        assert [e.text for e in entries] == ["  padded  ", "line one\n\n  line two\n"]

    def test_markup_characters_in_text(self):
        """Test text that looks like markup is carried as text."""
        update = _update("urn:uuid:1", "a < b & <b>c</b>", 0)

        [entry] = decode(encode(_feed([update]), "http://example.com"))

        assert entry.text == "a < b & <b>c</b>"

    def test_illegal_characters_dropped(self):
        """Test characters XML cannot carry are left out instead of breaking the document."""
        update = _update("urn:uuid:1", "ctrl\x0bchar\x00", 0)

        [entry] = decode(encode(_feed([update]), "http://example.com"))

        assert entry.text == "ctrlchar"

    def test_limit_truncates_entries(self):
        """Test the entry limit keeps the newest entries."""
        updates = [_update(f"urn:uuid:{i}", "x", 10 - i) for i in range(5)]

        entries = decode(encode(_feed(updates), "http://example.com", limit=2))

        assert [e.guid for e in entries] == ["urn:uuid:0", "urn:uuid:1"]

    def test_feed_metadata(self):
        """Test self link, title and hub links survive encoding."""
        document = parse_document(encode(_feed([]), "http://example.com"))

        assert document.self_url == "http://example.com/feeds/f1"
        assert document.title == "Alice's updates"
        assert document.hubs == ["http://hub.example/"]


class TestDecode:
    """Test decoding of pushed documents."""

    def test_not_well_formed(self):
        """Test broken markup is rejected."""
        with pytest.raises(MalformedDocumentError):
            decode(b"<feed><entry></feed")

    def test_not_a_feed(self):
        """Test arbitrary bytes are rejected."""
        with pytest.raises(MalformedDocumentError):
            decode(b"this is not xml at all")

    def test_entry_without_id(self):
        """Test an entry with no id is rejected."""
        body = _document(
            "<entry><title>t</title><content>c</content>"
            "<published>2026-10-19T12:00:00Z</published></entry>"
        )
        with pytest.raises(MalformedDocumentError, match="id"):
            decode(body)

    def test_entry_without_timestamp(self):
        """Test an entry with neither published nor updated is rejected."""
        body = _document("<entry><id>urn:x:1</id><content>c</content></entry>")
        with pytest.raises(MalformedDocumentError, match="timestamp"):
            decode(body)

    def test_entry_without_content(self):
        """Test an entry with no content or summary is rejected."""
        body = _document(
            "<entry><id>urn:x:1</id><published>2026-10-19T12:00:00Z</published></entry>"
        )
        with pytest.raises(MalformedDocumentError, match="content"):
            decode(body)

    def test_summary_used_when_content_missing(self):
        """Test summary stands in for content."""
        body = _document(
            "<entry><id>urn:x:1</id><summary>short</summary>"
            "<updated>2026-10-19T12:00:00Z</updated></entry>"
        )

        [entry] = decode(body)

        assert entry.text == "short"
        assert entry.published == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def test_unknown_extensions_ignored(self):
        """Test foreign namespace elements do not break decoding."""
        body = _document(
            '<entry xmlns:ext="http://ext.example/ns">'
            "<id>urn:x:1</id><content>hi</content>"
            "<published>2026-10-19T12:00:00+02:00</published>"
            '<ext:mood value="happy">yes</ext:mood>'
            "</entry>"
        )

        [entry] = decode(body)

        assert entry.guid == "urn:x:1"
        assert entry.text == "hi"
        assert entry.published == datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)

    def test_feed_author_fallback(self):
        """Test entries without an author inherit the feed author."""
        body = _document(
            "<entry><id>urn:x:1</id><content>hi</content>"
            "<published>2026-10-19T12:00:00Z</published></entry>",
            feed_author="<author><name>Carol</name><uri>http://remote.example/carol</uri></author>",
        )

        [entry] = decode(body)

        assert entry.author_name == "Carol"
        assert entry.author_url == "http://remote.example/carol"
