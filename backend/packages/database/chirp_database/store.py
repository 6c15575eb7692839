"""
SQL-backed feed store.

Implements the federation engine's store contract with one short
transaction per operation.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chirp_core import get_logger
from chirp_core.exceptions import FeedNotFound, StorageUnavailable
from chirp_core.schemas import AuthorProfile, Feed, Subscription, Update

from .models import Entry as EntryModel
from .models import Feed as FeedModel
from .models import Subscription as SubscriptionModel

logger = get_logger(__name__)

SAVE_ATTEMPTS = 3


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_update(entry: EntryModel) -> Update:
    return Update(
        guid=entry.guid,
        text=entry.text,
        author=AuthorProfile(name=entry.author_name, url=entry.author_url),
        published=_utc(entry.published_at),
    )


def _to_entry(feed_id: str, update: Update) -> EntryModel:
    return EntryModel(
        feed_id=feed_id,
        guid=update.guid,
        text=update.text,
        author_name=update.author.name,
        author_url=update.author.url,
        published_at=_utc(update.published),
    )


def _to_feed(model: FeedModel, entries: list[EntryModel]) -> Feed:
    author = None
    if model.author_url is not None:
        author = AuthorProfile(name=model.author_name or "", url=model.author_url)
    return Feed(
        id=model.id,
        url=model.url,
        title=model.title,
        secret=model.secret,
        hubs=list(model.hubs or []),
        author=author,
        entries=[_to_update(entry) for entry in entries],
    )


class SqlFeedStore:
    """Feed store on SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """
        Initialize SQL feed store.

        Args:
            session_factory: Async session factory.
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (OperationalError, InterfaceError) as e:
            logger.exception("Feed store unavailable")
            raise StorageUnavailable(str(e)) from e

    async def _entries(self, session: AsyncSession, feed_id: str) -> list[EntryModel]:
        stmt = (
            select(EntryModel)
            .where(EntryModel.feed_id == feed_id)
            .order_by(EntryModel.published_at.desc(), EntryModel.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def load_feed(self, feed_id: str) -> Feed:
        async with self._session() as session:
            model = await session.get(FeedModel, feed_id)
            if model is None:
                raise FeedNotFound(feed_id)
            return _to_feed(model, await self._entries(session, feed_id))

    async def find_feed_by_url(self, url: str) -> Feed | None:
        async with self._session() as session:
            result = await session.execute(select(FeedModel).where(FeedModel.url == url))
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _to_feed(model, await self._entries(session, model.id))

    async def create_feed(self, feed: Feed) -> Feed:
        async with self._session() as session:
            session.add(
                FeedModel(
                    id=feed.id,
                    url=feed.url,
                    title=feed.title,
                    secret=feed.secret,
                    hubs=list(feed.hubs),
                    author_name=feed.author.name if feed.author else None,
                    author_url=feed.author.url if feed.author else None,
                )
            )
            # Flush the feed row before its entries reference it.
            try:
                await session.flush()
                session.add_all(_to_entry(feed.id, update) for update in feed.entries)
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise ValueError(f"Feed already exists: {feed.url}") from e
        return feed

    async def _stored_guids(self, session: AsyncSession, feed_id: str) -> set[str]:
        result = await session.execute(select(EntryModel.guid).where(EntryModel.feed_id == feed_id))
        return set(result.scalars().all())

    async def save_feed(self, feed: Feed) -> None:
        # Another process may insert the same guid between our read and commit.
        for attempt in range(1, SAVE_ATTEMPTS + 1):
            try:
                await self._save_feed(feed)
                return
            except IntegrityError:
                if attempt == SAVE_ATTEMPTS:
                    raise
                logger.info(
                    "Concurrent entry insert, retrying save",
                    extra={"feed_id": feed.id, "attempt": attempt},
                )

    async def _save_feed(self, feed: Feed) -> None:
        async with self._session() as session:
            model = await session.get(FeedModel, feed.id)
            if model is None:
                raise FeedNotFound(feed.id)

            model.url = feed.url
            model.title = feed.title
            model.hubs = list(feed.hubs)

            stored = await self._stored_guids(session, feed.id)
            session.add_all(
                _to_entry(feed.id, update) for update in feed.entries if update.guid not in stored
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise

    async def delete_update(self, feed_id: str, guid: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                delete(EntryModel).where(EntryModel.feed_id == feed_id, EntryModel.guid == guid)
            )
            await session.commit()
            return bool(result.rowcount)

    async def get_subscription(self, feed_id: str, topic: str, hub: str) -> Subscription | None:
        async with self._session() as session:
            model = await self._get_subscription_model(session, feed_id, topic, hub)
            return Subscription.model_validate(model) if model else None

    async def find_subscriptions(self, feed_id: str, topic: str) -> list[Subscription]:
        async with self._session() as session:
            stmt = (
                select(SubscriptionModel)
                .where(SubscriptionModel.feed_id == feed_id, SubscriptionModel.topic == topic)
                .order_by(SubscriptionModel.created_at)
            )
            result = await session.execute(stmt)
            return [Subscription.model_validate(model) for model in result.scalars().all()]

    async def list_subscriptions(self, feed_id: str) -> list[Subscription]:
        async with self._session() as session:
            stmt = (
                select(SubscriptionModel)
                .where(SubscriptionModel.feed_id == feed_id)
                .order_by(SubscriptionModel.created_at)
            )
            result = await session.execute(stmt)
            return [Subscription.model_validate(model) for model in result.scalars().all()]

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        async with self._session() as session:
            model = await self._get_subscription_model(session, *subscription.key)
            if model is None:
                if await session.get(FeedModel, subscription.feed_id) is None:
                    raise FeedNotFound(subscription.feed_id)
                model = SubscriptionModel(
                    feed_id=subscription.feed_id,
                    topic=subscription.topic,
                    hub=subscription.hub,
                )
                session.add(model)

            model.state = subscription.state.value
            model.verify_token = subscription.verify_token
            model.requested_at = subscription.requested_at
            model.verified_at = subscription.verified_at
            model.lease_seconds = subscription.lease_seconds
            await session.commit()
            await session.refresh(model)
            return Subscription.model_validate(model)

    async def _get_subscription_model(
        self, session: AsyncSession, feed_id: str, topic: str, hub: str
    ) -> SubscriptionModel | None:
        stmt = select(SubscriptionModel).where(
            SubscriptionModel.feed_id == feed_id,
            SubscriptionModel.topic == topic,
            SubscriptionModel.hub == hub,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
