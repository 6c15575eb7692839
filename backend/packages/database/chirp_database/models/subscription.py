"""
Subscription model definition.

This module defines the Subscription model tracking hub handshakes of a
local feed to remote topics.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class Subscription(Base, TimestampMixin):
    """
    Hub subscription model.

    Attributes:
        id: Unique subscription identifier (UUID).
        feed_id: Local feed receiving pushes (foreign key to feeds).
        topic: Remote topic URL, compared by exact string equality.
        hub: Hub endpoint URL.
        state: unsubscribed, pending_verification or subscribed.
        verify_token: Token of the latest handshake.
        requested_at: When the latest handshake was sent.
        verified_at: When the hub last verified the subscription.
        lease_seconds: Lease granted by the hub, if any.
    """

    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("feed_id", "topic", "hub", name="uq_subscription_key"),)

    # Primary key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    # Foreign key
    feed_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Subscription key
    topic: Mapped[str] = mapped_column(String(2000), nullable=False)
    hub: Mapped[str] = mapped_column(String(2000), nullable=False)

    # Handshake state
    state: Mapped[str] = mapped_column(String(32), default="unsubscribed", nullable=False)
    verify_token: Mapped[str | None] = mapped_column(String(255))
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lease_seconds: Mapped[int | None] = mapped_column(Integer)

    # Relationships
    feed = relationship("Feed", back_populates="subscriptions")
