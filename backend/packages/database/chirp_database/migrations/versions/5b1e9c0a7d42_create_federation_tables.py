"""create feeds, entries and subscriptions tables

Revision ID: 5b1e9c0a7d42
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5b1e9c0a7d42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "feeds",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("url", sa.String(2000), nullable=False),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("secret", sa.String(255), nullable=False),
        sa.Column(
            "hubs",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("author_name", sa.String(255), nullable=True),
        sa.Column("author_url", sa.String(2000), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_feeds_url", "feeds", ["url"], unique=True)

    op.create_table(
        "entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "feed_id", sa.String(36), sa.ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("guid", sa.String(2000), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("author_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("author_url", sa.String(2000), nullable=False, server_default=""),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("feed_id", "guid", name="uq_entry_feed_guid"),
    )
    op.create_index("ix_entries_feed_published", "entries", ["feed_id", "published_at"])

    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "feed_id", sa.String(36), sa.ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("topic", sa.String(2000), nullable=False),
        sa.Column("hub", sa.String(2000), nullable=False),
        sa.Column("state", sa.String(32), nullable=False, server_default="unsubscribed"),
        sa.Column("verify_token", sa.String(255), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lease_seconds", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("feed_id", "topic", "hub", name="uq_subscription_key"),
    )
    op.create_index("ix_subscriptions_feed_id", "subscriptions", ["feed_id"])


def downgrade() -> None:
    op.drop_index("ix_subscriptions_feed_id", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_index("ix_entries_feed_published", table_name="entries")
    op.drop_table("entries")
    op.drop_index("ix_feeds_url", table_name="feeds")
    op.drop_table("feeds")
