"""
Feed and update schemas.

Domain models for a user's update stream and the API payloads built on them.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chirp_atom import ILLEGAL_XML_CHARS


def generate_update_id() -> str:
    """Globally unique, IRI-shaped identifier for a locally created update."""
    return f"urn:uuid:{uuid.uuid4()}"


def _require_xml_text(value: str | None) -> str | None:
    # Served documents must stay well-formed; XML parsers read CR and CRLF as LF.
    if value is None:
        return value
    if ILLEGAL_XML_CHARS.search(value):
        raise ValueError("contains characters not allowed in XML")
    return value.replace("\r\n", "\n").replace("\r", "\n")


class AuthorProfile(BaseModel):
    """Display identity of an update's author."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    name: str
    url: str


class Update(BaseModel):
    """
    A single status update (feed entry).

    Updates are immutable once created; ``guid`` is stable across re-fetches
    and is the deduplication key when merging pushed content.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    guid: str = Field(default_factory=generate_update_id)
    text: str
    author: AuthorProfile
    published: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("published")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        # Naive timestamps are taken as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Feed(BaseModel):
    """
    A signed, versioned stream of updates.

    Attributes:
        id: Opaque feed identifier.
        url: Canonical address of the feed document (self link).
        title: Human readable feed title.
        secret: HMAC key shared with hubs for signing pushes.
        hubs: Hub endpoints this feed is registered with, in order.
        author: Owner of a local feed; None for mirrors of remote feeds.
        entries: Updates, newest first.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    title: str = ""
    secret: str
    hubs: list[str] = Field(default_factory=list)
    author: AuthorProfile | None = None
    entries: list[Update] = Field(default_factory=list)

    def has_entry(self, guid: str) -> bool:
        """Check whether an update with this id is already stored."""
        return any(entry.guid == guid for entry in self.entries)

    def merge(self, updates: list[Update]) -> list[Update]:
        """
        Merge updates into the entry sequence.

        Unknown ids are inserted in the given order; known ids are skipped and
        stored entries are never overwritten.

        Args:
            updates: Candidate updates, typically decoded from a pushed document.

        Returns:
            The updates that were actually added.
        """
        known = {entry.guid for entry in self.entries}
        added: list[Update] = []
        for update in updates:
            if update.guid in known:
                continue
            known.add(update.guid)
            added.append(update)

        if added:
            # Stable sort keeps document order among equal timestamps.
            self.entries = sorted(
                [*added, *self.entries], key=lambda entry: entry.published, reverse=True
            )
        return added


class CreateFeedRequest(BaseModel):
    """Create local feed request."""

    username: str = Field(min_length=1, max_length=100)
    name: str | None = None
    title: str | None = None
    hubs: list[str] | None = None

    _xml_text = field_validator("username", "name", "title")(_require_xml_text)


class PostUpdateRequest(BaseModel):
    """Post a new update to a local feed."""

    username: str = Field(min_length=1, max_length=100)
    name: str | None = None
    text: str = Field(min_length=1, max_length=1000)

    _xml_text = field_validator("username", "name", "text")(_require_xml_text)


class FeedResponse(BaseModel):
    """Feed summary response model."""

    id: str
    url: str
    title: str
    hubs: list[str]
    author: AuthorProfile | None
    entry_count: int

    @classmethod
    def from_feed(cls, feed: Feed) -> "FeedResponse":
        return cls(
            id=feed.id,
            url=feed.url,
            title=feed.title,
            hubs=feed.hubs,
            author=feed.author,
            entry_count=len(feed.entries),
        )


class UpdateResponse(BaseModel):
    """Posted update response model."""

    model_config = ConfigDict(from_attributes=True)

    guid: str
    text: str
    author: AuthorProfile
    published: datetime
    ping_job_id: str | None = None


class MergeResult(BaseModel):
    """Outcome of merging a pushed document into a feed."""

    feed_id: str
    added: int
    skipped: int
