"""
Feed service.

Local feed lifecycle: creating feeds, appending and deleting updates, and
creating mirror feeds for remote topics a user follows.
"""

import uuid

from chirp_core import get_logger
from chirp_core.config import FederationConfig
from chirp_core.exceptions import NotUpdateAuthor, UpdateNotFound
from chirp_core.locks import KeyedLock, LockKeys
from chirp_core.schemas import AuthorProfile, Feed, Subscription, Update
from chirp_core.signature import generate_secret
from chirp_core.store import FeedStore

from .subscription_client import SubscriptionClient

logger = get_logger(__name__)


class ProfileResolver:
    """Resolve local usernames to author profiles under the site's base URL."""

    def __init__(self, config: FederationConfig) -> None:
        self.config = config

    def __call__(self, identity: str, name: str | None = None) -> AuthorProfile:
        return AuthorProfile(name=name or identity, url=self.config.profile_url(identity))


class FeedService:
    """Feed and update management service."""

    def __init__(
        self,
        config: FederationConfig,
        store: FeedStore,
        locks: KeyedLock,
        subscriptions: SubscriptionClient | None = None,
        resolve_author: ProfileResolver | None = None,
    ) -> None:
        """
        Initialize feed service.

        Args:
            config: Federation configuration.
            store: Feed store.
            locks: Lock registry shared with the push receiver.
            subscriptions: Subscription client used by ``follow_remote``.
            resolve_author: Maps an author identity to its profile.
        """
        self.config = config
        self.store = store
        self.locks = locks
        self.subscriptions = subscriptions or SubscriptionClient(config, store, locks)
        self.resolve_author = resolve_author or ProfileResolver(config)

    async def create_feed(
        self,
        author: AuthorProfile,
        title: str | None = None,
        hubs: list[str] | None = None,
    ) -> Feed:
        """
        Create a local feed for an author.

        Args:
            author: Feed owner.
            title: Optional title; derived from the author's name otherwise.
            hubs: Hubs to register with; configured defaults otherwise.

        Returns:
            The new, empty feed.
        """
        feed_id = str(uuid.uuid4())
        feed = Feed(
            id=feed_id,
            url=self.config.feed_url(feed_id),
            title=title or f"{author.name}'s updates",
            secret=generate_secret(),
            hubs=list(self.config.default_hubs if hubs is None else hubs),
            author=author,
        )
        feed = await self.store.create_feed(feed)
        logger.info("Created feed", extra={"feed_id": feed.id, "author": author.url})
        return feed

    async def get_feed(self, feed_id: str) -> Feed:
        """
        Get a feed with its entries.

        Raises:
            FeedNotFound: If the feed does not exist.
        """
        return await self.store.load_feed(feed_id)

    async def append_update(self, feed_id: str, update: Update) -> Feed:
        """
        Append a locally created update to a feed.

        Args:
            feed_id: Feed identifier.
            update: Update built by the caller.

        Returns:
            The feed after the append.

        Raises:
            FeedNotFound: If the feed does not exist.
        """
        async with self.locks.hold(LockKeys.feed(feed_id)):
            feed = await self.store.load_feed(feed_id)
            if feed.merge([update]):
                await self.store.save_feed(feed)

        logger.info("Appended update", extra={"feed_id": feed_id, "guid": update.guid})
        return feed

    async def post_update(
        self, feed_id: str, text: str, identity: str, name: str | None = None
    ) -> Update:
        """
        Create an update for a local author and append it to a feed.

        Args:
            feed_id: Feed identifier.
            text: Status text.
            identity: Author identity (local username).
            name: Optional author display name.

        Returns:
            The created update.
        """
        update = Update(text=text, author=self.resolve_author(identity, name))
        await self.append_update(feed_id, update)
        return update

    async def delete_update(self, feed_id: str, guid: str, author_url: str) -> None:
        """
        Delete an update on behalf of its author.

        Raises:
            FeedNotFound: If the feed does not exist.
            UpdateNotFound: If the feed has no such update.
            NotUpdateAuthor: If the requester did not author the update.
        """
        async with self.locks.hold(LockKeys.feed(feed_id)):
            feed = await self.store.load_feed(feed_id)
            update = next((entry for entry in feed.entries if entry.guid == guid), None)
            if update is None:
                raise UpdateNotFound(f"Update {guid} not found in feed {feed_id}")
            if update.author.url != author_url:
                raise NotUpdateAuthor(f"Update {guid} belongs to another author")

            await self.store.delete_update(feed_id, guid)

        logger.info("Deleted update", extra={"feed_id": feed_id, "guid": guid})

    async def follow_remote(self, topic: str, hub: str) -> Subscription:
        """
        Follow a remote feed through a hub.

        A local mirror feed for the topic receives the pushed entries; it is
        created on first follow and reused afterwards.

        Args:
            topic: Remote feed URL.
            hub: Hub endpoint URL.

        Returns:
            The verified subscription.
        """
        async with self.locks.hold(LockKeys.mirror(topic)):
            feed = await self.store.find_feed_by_url(topic)
            if feed is None:
                feed = await self.store.create_feed(
                    Feed(
                        id=str(uuid.uuid4()),
                        url=topic,
                        title=topic,
                        secret=generate_secret(),
                        hubs=[hub],
                    )
                )
                logger.info("Created mirror feed", extra={"feed_id": feed.id, "topic": topic})

        if hub not in feed.hubs:
            async with self.locks.hold(LockKeys.feed(feed.id)):
                feed = await self.store.load_feed(feed.id)
                if hub not in feed.hubs:
                    feed.hubs.append(hub)
                    await self.store.save_feed(feed)

        return await self.subscriptions.follow(feed, topic, hub)
