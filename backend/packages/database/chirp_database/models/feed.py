"""
Feed model definition.

This module defines the Feed model for local update streams and the local
mirrors of followed remote feeds.
"""

from sqlalchemy import JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class Feed(Base, TimestampMixin):
    """
    Feed model.

    Attributes:
        id: Unique feed identifier (UUID).
        url: Canonical feed document URL (unique, indexed).
        title: Feed title.
        secret: HMAC key shared with hubs for signed pushes.
        hubs: Ordered hub endpoint URLs.
        author_name: Display name of a local feed's owner.
        author_url: Profile URL of a local feed's owner; null for mirrors.
    """

    __tablename__ = "feeds"

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Feed metadata
    url: Mapped[str] = mapped_column(String(2000), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    secret: Mapped[str] = mapped_column(String(255), nullable=False)
    hubs: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), default=list, nullable=False
    )

    # Owner
    author_name: Mapped[str | None] = mapped_column(String(255))
    author_url: Mapped[str | None] = mapped_column(String(2000))

    # Relationships
    entries = relationship("Entry", back_populates="feed", cascade="all, delete-orphan")
    subscriptions = relationship(
        "Subscription", back_populates="feed", cascade="all, delete-orphan"
    )
