"""
Persistence contract.

The federation engine does not own storage; it talks to a store that is
durable and linearizable per key. ``chirp_database.SqlFeedStore`` is the
production implementation.
"""

from typing import Protocol

from .schemas import Feed, Subscription


class FeedStore(Protocol):
    """Storage operations used by the federation services."""

    async def load_feed(self, feed_id: str) -> Feed:
        """
        Load a feed with its entries, newest first.

        Raises:
            FeedNotFound: If no such feed exists.
            StorageUnavailable: If the store cannot be reached.
        """
        ...

    async def find_feed_by_url(self, url: str) -> Feed | None:
        """Find a feed by its canonical URL."""
        ...

    async def create_feed(self, feed: Feed) -> Feed:
        """
        Insert a new feed with its initial entries.

        Raises:
            ValueError: If a feed with the same id or URL already exists.
        """
        ...

    async def save_feed(self, feed: Feed) -> None:
        """
        Persist a feed.

        Entries whose id is not yet stored are inserted; stored entries are
        never rewritten. URL, title and hubs are updated.
        """
        ...

    async def delete_update(self, feed_id: str, guid: str) -> bool:
        """Delete one update. Returns False if it did not exist."""
        ...

    async def get_subscription(self, feed_id: str, topic: str, hub: str) -> Subscription | None:
        """Get the subscription for a (feed, topic, hub) key."""
        ...

    async def find_subscriptions(self, feed_id: str, topic: str) -> list[Subscription]:
        """Get all subscriptions of a feed to one topic, across hubs."""
        ...

    async def list_subscriptions(self, feed_id: str) -> list[Subscription]:
        """Get all subscriptions of a feed."""
        ...

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        """Insert or update a subscription by its key."""
        ...
