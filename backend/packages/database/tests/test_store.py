"""Tests for the SQL feed store."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from chirp_core.exceptions import FeedNotFound
from chirp_core.schemas import AuthorProfile, Feed, Subscription, SubscriptionState

BOB = AuthorProfile(name="Bob", url="http://test/users/bob")


def _feed(feed_id: str = "f1", **kwargs) -> Feed:
    fields = {
        "url": f"http://test/feeds/{feed_id}",
        "title": "Bob's updates",
        "secret": "s3cr3t",
        "hubs": ["http://hub.example/"],
        "author": BOB,
        **kwargs,
    }
    return Feed(id=feed_id, **fields)


class TestFeeds:
    """Test feed persistence."""

    @pytest.mark.asyncio
    async def test_create_and_load(self, sql_store, update_factory):
        """Test a created feed loads back with its entries, newest first."""
        entries = [
            update_factory("urn:x:2", minutes_ago=0),
            update_factory("urn:x:1", minutes_ago=3),
        ]
        await sql_store.create_feed(_feed(entries=entries))

        feed = await sql_store.load_feed("f1")

        assert feed.url == "http://test/feeds/f1"
        assert feed.secret == "s3cr3t"
        assert feed.hubs == ["http://hub.example/"]
        assert feed.author == BOB
        assert [entry.guid for entry in feed.entries] == ["urn:x:2", "urn:x:1"]
        assert feed.entries[0].published == entries[0].published
        assert feed.entries[0].published.tzinfo is not None

    @pytest.mark.asyncio
    async def test_mirror_has_no_author(self, sql_store):
        """Test feeds without an owner load with author None."""
        await sql_store.create_feed(_feed(author=None))
        assert (await sql_store.load_feed("f1")).author is None

    @pytest.mark.asyncio
    async def test_duplicate_url(self, sql_store):
        """Test creating a second feed with the same URL fails."""
        await sql_store.create_feed(_feed("f1", url="http://test/feeds/same"))
        with pytest.raises(ValueError):
            await sql_store.create_feed(_feed("f2", url="http://test/feeds/same"))

    @pytest.mark.asyncio
    async def test_load_missing(self, sql_store):
        """Test loading an unknown feed raises FeedNotFound."""
        with pytest.raises(FeedNotFound):
            await sql_store.load_feed("missing")

    @pytest.mark.asyncio
    async def test_find_by_url(self, sql_store):
        """Test feeds are found by exact URL."""
        await sql_store.create_feed(_feed())

        assert (await sql_store.find_feed_by_url("http://test/feeds/f1")).id == "f1"
        assert await sql_store.find_feed_by_url("http://test/feeds/f1/") is None

    @pytest.mark.asyncio
    async def test_save_is_append_only(self, sql_store, update_factory):
        """Test saving inserts new entries and never rewrites stored ones."""
        await sql_store.create_feed(_feed(entries=[update_factory("urn:x:1", text="original")]))

        feed = await sql_store.load_feed("f1")
        feed.entries = [
            update_factory("urn:x:2", minutes_ago=0),
            update_factory("urn:x:1", text="rewritten", minutes_ago=5),
        ]
        feed.hubs = ["http://hub.example/", "http://hub2.example/"]
        await sql_store.save_feed(feed)

        stored = await sql_store.load_feed("f1")
        assert [(entry.guid, entry.text) for entry in stored.entries] == [
            ("urn:x:2", "hello"),
            ("urn:x:1", "original"),
        ]
        assert stored.hubs == ["http://hub.example/", "http://hub2.example/"]

    @pytest.mark.asyncio
    async def test_save_retries_after_concurrent_insert(
        self, sql_store, update_factory, monkeypatch
    ):
        """Test an entry another writer inserted mid-save is skipped on retry."""
        await sql_store.create_feed(_feed(entries=[update_factory("urn:x:1", text="theirs")]))
        stored_guids = sql_store._stored_guids
        reads: list[str] = []

        async def read_before_other_writer(session, feed_id):
            reads.append(feed_id)
            if len(reads) == 1:
                return set()
            return await stored_guids(session, feed_id)

        monkeypatch.setattr(sql_store, "_stored_guids", read_before_other_writer)
        feed = await sql_store.load_feed("f1")
        feed.entries = [
            update_factory("urn:x:2", minutes_ago=0),
            update_factory("urn:x:1", text="ours", minutes_ago=5),
        ]

        await sql_store.save_feed(feed)

        stored = await sql_store.load_feed("f1")
        assert [(entry.guid, entry.text) for entry in stored.entries] == [
            ("urn:x:2", "hello"),
            ("urn:x:1", "theirs"),
        ]
        assert len(reads) == 2

    @pytest.mark.asyncio
    async def test_save_gives_up_after_repeated_conflicts(
        self, sql_store, update_factory, monkeypatch
    ):
        """Test a conflict that never clears is raised after the last attempt."""
        await sql_store.create_feed(_feed(entries=[update_factory("urn:x:1")]))

        async def always_stale(session, feed_id):
            return set()

        monkeypatch.setattr(sql_store, "_stored_guids", always_stale)
        feed = await sql_store.load_feed("f1")

        with pytest.raises(IntegrityError):
            await sql_store.save_feed(feed)

        assert [entry.guid for entry in (await sql_store.load_feed("f1")).entries] == ["urn:x:1"]

    @pytest.mark.asyncio
    async def test_delete_update(self, sql_store, update_factory):
        """Test deleting an entry reports whether it existed."""
        await sql_store.create_feed(_feed(entries=[update_factory("urn:x:1")]))

        assert await sql_store.delete_update("f1", "urn:x:1") is True
        assert await sql_store.delete_update("f1", "urn:x:1") is False
        assert (await sql_store.load_feed("f1")).entries == []


class TestSubscriptions:
    """Test subscription persistence."""

    @pytest.mark.asyncio
    async def test_upsert_by_key(self, sql_store):
        """Test saving the same key twice updates one row."""
        await sql_store.create_feed(_feed())
        subscription = Subscription(
            feed_id="f1",
            topic="http://remote.example/feeds/1",
            hub="http://hub.example/",
            state=SubscriptionState.PENDING,
            verify_token="tok-1",
            requested_at=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        )

        saved = await sql_store.save_subscription(subscription)
        assert saved.id is not None

        subscription.state = SubscriptionState.SUBSCRIBED
        subscription.verify_token = "tok-2"
        subscription.lease_seconds = 3600
        await sql_store.save_subscription(subscription)

        [stored] = await sql_store.list_subscriptions("f1")
        assert stored.id == saved.id
        assert stored.state is SubscriptionState.SUBSCRIBED
        assert stored.verify_token == "tok-2"
        assert stored.lease_seconds == 3600

    @pytest.mark.asyncio
    async def test_find_by_topic(self, sql_store):
        """Test subscriptions are found per topic across hubs."""
        await sql_store.create_feed(_feed())
        topic = "http://remote.example/feeds/1"
        for hub in ("http://hub-a.example/", "http://hub-b.example/"):
            await sql_store.save_subscription(Subscription(feed_id="f1", topic=topic, hub=hub))
        await sql_store.save_subscription(
            Subscription(feed_id="f1", topic="http://elsewhere/", hub="http://hub-a.example/")
        )

        found = await sql_store.find_subscriptions("f1", topic)

        hubs = sorted(sub.hub for sub in found)
        assert hubs == ["http://hub-a.example/", "http://hub-b.example/"]
        assert await sql_store.get_subscription("f1", topic, "http://hub-c.example/") is None

    @pytest.mark.asyncio
    async def test_subscription_needs_feed(self, sql_store):
        """Test a subscription for an unknown feed is refused."""
        with pytest.raises(FeedNotFound):
            await sql_store.save_subscription(
                Subscription(feed_id="missing", topic="http://t/", hub="http://h/")
            )
