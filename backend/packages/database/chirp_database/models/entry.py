"""
Entry model definition.

This module defines the Entry model storing status updates of a feed.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class Entry(Base, TimestampMixin):
    """
    Feed entry (status update) model.

    Entries are append-only: a (feed_id, guid) pair is written once and
    never rewritten by later pushes.

    Attributes:
        id: Unique row identifier (UUID).
        feed_id: Owning feed (foreign key to feeds).
        guid: Globally unique update identifier from the feed document.
        text: Status text.
        author_name: Author display name.
        author_url: Author profile URL.
        published_at: Publication timestamp (UTC).
    """

    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint("feed_id", "guid", name="uq_entry_feed_guid"),
        Index("ix_entries_feed_published", "feed_id", "published_at"),
    )

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Foreign key
    feed_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False
    )

    # Content
    guid: Mapped[str] = mapped_column(String(2000), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    author_url: Mapped[str] = mapped_column(String(2000), default="", nullable=False)
    published_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    feed = relationship("Feed", back_populates="entries")
