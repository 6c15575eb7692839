"""Global pytest fixtures for testing."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from chirp_api.dependencies import get_hub_client, get_redis_pool, get_store
from chirp_api.main import create_app
from chirp_core.config import FederationConfig, Settings
from chirp_core.exceptions import FeedNotFound
from chirp_core.locks import KeyedLock
from chirp_core.schemas import AuthorProfile, Feed, Subscription, Update
from chirp_database import Base, SqlFeedStore

TEST_BASE_URL = "http://test"
TEST_API_TOKEN = "test-api-token"


class MockArqRedis:
    """Mock ArqRedis for testing."""

    def __init__(self):
        self.enqueued_jobs: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_enqueue = False

    async def enqueue_job(self, func_name: str, *args: Any, **kwargs: Any) -> SimpleNamespace:
        """Mock enqueue_job that records calls without actually queuing."""
        if self.fail_enqueue:
            raise ConnectionError("redis down")
        self.enqueued_jobs.append((func_name, args))
        return SimpleNamespace(job_id=f"job-{len(self.enqueued_jobs)}")

    def reset(self) -> None:
        """Reset all recorded state."""
        self.enqueued_jobs.clear()
        self.fail_enqueue = False


class InMemoryFeedStore:
    """
    Feed store held in dictionaries, yielding to the loop on every call.

    ``save_feed`` replaces the stored feed wholesale, so unserialized
    read-merge-write cycles lose entries.
    """

    def __init__(self) -> None:
        self.feeds: dict[str, Feed] = {}
        self.subscriptions: dict[tuple[str, str, str], Subscription] = {}
        self.save_count = 0

    async def load_feed(self, feed_id: str) -> Feed:
        await asyncio.sleep(0)
        feed = self.feeds.get(feed_id)
        if feed is None:
            raise FeedNotFound(feed_id)
        return feed.model_copy(deep=True)

    async def find_feed_by_url(self, url: str) -> Feed | None:
        await asyncio.sleep(0)
        for feed in self.feeds.values():
            if feed.url == url:
                return feed.model_copy(deep=True)
        return None

    async def create_feed(self, feed: Feed) -> Feed:
        await asyncio.sleep(0)
        if feed.id in self.feeds or any(f.url == feed.url for f in self.feeds.values()):
            raise ValueError(f"Feed already exists: {feed.url}")
        self.feeds[feed.id] = feed.model_copy(deep=True)
        return feed

    async def save_feed(self, feed: Feed) -> None:
        await asyncio.sleep(0)
        if feed.id not in self.feeds:
            raise FeedNotFound(feed.id)
        self.feeds[feed.id] = feed.model_copy(deep=True)
        self.save_count += 1

    async def delete_update(self, feed_id: str, guid: str) -> bool:
        await asyncio.sleep(0)
        feed = self.feeds[feed_id]
        before = len(feed.entries)
        feed.entries = [entry for entry in feed.entries if entry.guid != guid]
        return len(feed.entries) < before

    async def get_subscription(self, feed_id: str, topic: str, hub: str) -> Subscription | None:
        await asyncio.sleep(0)
        subscription = self.subscriptions.get((feed_id, topic, hub))
        return subscription.model_copy() if subscription else None

    async def find_subscriptions(self, feed_id: str, topic: str) -> list[Subscription]:
        await asyncio.sleep(0)
        return [
            sub.model_copy()
            for key, sub in self.subscriptions.items()
            if key[0] == feed_id and key[1] == topic
        ]

    async def list_subscriptions(self, feed_id: str) -> list[Subscription]:
        await asyncio.sleep(0)
        return [sub.model_copy() for key, sub in self.subscriptions.items() if key[0] == feed_id]

    async def save_subscription(self, subscription: Subscription) -> Subscription:
        await asyncio.sleep(0)
        if subscription.feed_id not in self.feeds:
            raise FeedNotFound(subscription.feed_id)
        self.subscriptions[subscription.key] = subscription.model_copy()
        return subscription.model_copy()


class FakeHub:
    """Scriptable hub served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[dict[str, list[str]]] = []
        self.status_code = 202
        self.error: Exception | None = None
        self.on_request: Callable[[dict[str, list[str]]], Awaitable[None]] | None = None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        form = parse_qs(request.content.decode())
        self.requests.append(form)
        if self.on_request is not None:
            await self.on_request(form)
        return httpx.Response(self.status_code)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def last(self, name: str) -> str:
        """Get a parameter of the most recent request."""
        return self.requests[-1][name][0]


def make_update(guid: str, text: str = "hello", minutes_ago: int = 0) -> Update:
    """Build an update with a fixed author and a deterministic timestamp."""
    published = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return Update(
        guid=guid,
        text=text,
        author=AuthorProfile(name="Alice", url="http://remote.example/users/alice"),
        published=published,
    )


@pytest.fixture
def update_factory() -> Callable[..., Update]:
    """Factory for updates with deterministic timestamps."""
    return make_update


@pytest.fixture
def federation_config() -> FederationConfig:
    """Federation config with short handshake timeouts."""
    return FederationConfig(
        base_url=TEST_BASE_URL,
        hub_timeout=2.0,
        verification_timeout=0.2,
        verification_poll_interval=0.01,
    )


@pytest.fixture
def locks() -> KeyedLock:
    """Fresh lock registry."""
    return KeyedLock()


@pytest.fixture
def memory_store() -> InMemoryFeedStore:
    """In-memory feed store."""
    return InMemoryFeedStore()


@pytest.fixture
def fake_hub() -> FakeHub:
    """Scriptable hub."""
    return FakeHub()


@pytest.fixture
def mock_redis() -> MockArqRedis:
    """Mock task queue pool."""
    return MockArqRedis()


@pytest_asyncio.fixture
async def local_feed(memory_store: InMemoryFeedStore) -> Feed:
    """Local feed with a known secret and no entries."""
    feed = Feed(
        id="feed-1",
        url=f"{TEST_BASE_URL}/feeds/feed-1",
        title="Bob's updates",
        secret="s3cr3t",
        hubs=["http://hub.example/"],
        author=AuthorProfile(name="Bob", url=f"{TEST_BASE_URL}/users/bob"),
    )
    return await memory_store.create_feed(feed)


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a fresh SQLite database."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'chirp_test.db'}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlFeedStore:
    """SQL feed store on the test database."""
    return SqlFeedStore(session_factory)


@pytest.fixture
def test_settings() -> Settings:
    """Application settings for API tests."""
    return Settings(
        public_base_url=TEST_BASE_URL,
        api_token=TEST_API_TOKEN,
        verification_timeout=0.5,
        hub_timeout=2.0,
        default_hubs=["http://hub.example/"],
    )


@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    sql_store: SqlFeedStore,
    fake_hub: FakeHub,
    mock_redis: MockArqRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with store, hub and redis overrides."""
    app = create_app(test_settings)

    async def override_get_hub_client():
        async with fake_hub.client() as hub_client:
            yield hub_client

    async def override_get_redis_pool():
        return mock_redis

    app.dependency_overrides[get_store] = lambda: sql_store
    app.dependency_overrides[get_hub_client] = override_get_hub_client
    app.dependency_overrides[get_redis_pool] = override_get_redis_pool

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=TEST_BASE_URL) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Management API auth headers."""
    return {"Authorization": f"Bearer {TEST_API_TOKEN}"}
