"""
Subscription client.

Drives the subscriber side of the hub handshake: send the subscribe request,
then wait for the push receiver to record the hub's verification challenge.
"""

import asyncio
from datetime import datetime, timezone

import httpx

from chirp_core import get_logger
from chirp_core.config import FederationConfig
from chirp_core.exceptions import HubUnreachable, SubscriptionRejected, VerificationTimeout
from chirp_core.locks import KeyedLock, LockKeys
from chirp_core.schemas import Feed, HubMode, Subscription, SubscriptionState
from chirp_core.signature import generate_verify_token
from chirp_core.store import FeedStore

logger = get_logger(__name__)


class SubscriptionClient:
    """Subscribe local feeds to remote topics through hubs."""

    def __init__(
        self,
        config: FederationConfig,
        store: FeedStore,
        locks: KeyedLock,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize subscription client.

        Args:
            config: Federation configuration.
            store: Feed store.
            locks: Lock registry shared with the push receiver.
            client: Optional HTTP client for hub requests.
        """
        self.config = config
        self.store = store
        self.locks = locks
        self.client = client

    async def follow(self, feed: Feed, topic: str, hub: str) -> Subscription:
        """
        Subscribe a local feed to a remote topic.

        Following an already subscribed pair returns the existing subscription.
        Following a pair with a pending handshake supersedes its verify token.

        Args:
            feed: Local feed that receives the pushes.
            topic: Remote feed URL.
            hub: Hub endpoint URL.

        Returns:
            The verified subscription.

        Raises:
            HubUnreachable: If the hub could not be reached.
            SubscriptionRejected: If the hub refused or verification failed.
            VerificationTimeout: If the hub never sent its challenge.
        """
        async with self.locks.hold(LockKeys.subscription(feed.id, topic, hub)):
            subscription = await self.store.get_subscription(feed.id, topic, hub)
            if subscription and subscription.state is SubscriptionState.SUBSCRIBED:
                logger.info(
                    "Already subscribed",
                    extra={"feed_id": feed.id, "topic": topic, "hub": hub},
                )
                return subscription

            if subscription is None:
                subscription = Subscription(feed_id=feed.id, topic=topic, hub=hub)

            token = generate_verify_token()
            subscription.verify_token = token
            subscription.state = SubscriptionState.PENDING
            subscription.requested_at = datetime.now(timezone.utc)
            subscription.verified_at = None
            subscription = await self.store.save_subscription(subscription)

        try:
            await self._send(HubMode.SUBSCRIBE, feed, topic, hub, token)
        except (HubUnreachable, SubscriptionRejected):
            await self._abandon(feed.id, topic, hub, token)
            raise

        return await self._await_verification(feed.id, topic, hub, token)

    async def unfollow(self, feed: Feed, topic: str, hub: str) -> Subscription:
        """
        Unsubscribe a local feed from a remote topic.

        The subscription is marked unsubscribed locally before the hub is told,
        so a hub failure still leaves the feed unsubscribed.

        Raises:
            SubscriptionRejected: If no such subscription exists.
            HubUnreachable: If the hub could not be reached.
        """
        async with self.locks.hold(LockKeys.subscription(feed.id, topic, hub)):
            subscription = await self.store.get_subscription(feed.id, topic, hub)
            if subscription is None:
                raise SubscriptionRejected(f"Not subscribed to {topic} via {hub}")

            token = generate_verify_token()
            subscription.verify_token = token
            subscription.state = SubscriptionState.UNSUBSCRIBED
            subscription.verified_at = None
            subscription = await self.store.save_subscription(subscription)

        await self._send(HubMode.UNSUBSCRIBE, feed, topic, hub, token)
        logger.info("Unsubscribed", extra={"feed_id": feed.id, "topic": topic, "hub": hub})
        return subscription

    async def _send(self, mode: HubMode, feed: Feed, topic: str, hub: str, token: str) -> None:
        data: dict[str, str | list[str] | int] = {
            "hub.mode": mode.value,
            "hub.callback": self.config.feed_url(feed.id),
            "hub.topic": topic,
            "hub.verify": ["sync", "async"],
            "hub.verify_token": token,
        }
        if mode is HubMode.SUBSCRIBE:
            data["hub.secret"] = feed.secret
            # If not provided, let the hub decide.
            if self.config.lease_seconds is not None:
                data["hub.lease_seconds"] = self.config.lease_seconds

        try:
            if self.client is not None:
                response = await self.client.post(hub, data=data, timeout=self.config.hub_timeout)
            else:
                async with httpx.AsyncClient(
                    timeout=self.config.hub_timeout,
                    headers={"User-Agent": self.config.user_agent},
                ) as client:
                    response = await client.post(hub, data=data)
        except httpx.HTTPError as e:
            logger.warning(
                "Hub request failed",
                extra={"hub": hub, "topic": topic, "mode": mode.value, "error": str(e)},
            )
            raise HubUnreachable(hub, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                "Hub refused request",
                extra={"hub": hub, "topic": topic, "status_code": response.status_code},
            )
            raise SubscriptionRejected(
                f"Hub {hub} refused {mode.value} for {topic}: "
                f"{response.status_code} {response.text[:200]}"
            )

    async def _await_verification(
        self, feed_id: str, topic: str, hub: str, token: str
    ) -> Subscription:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.verification_timeout

        while True:
            subscription = await self.store.get_subscription(feed_id, topic, hub)
            if subscription is None:
                raise SubscriptionRejected(f"Subscription to {topic} via {hub} disappeared")
            if subscription.state is SubscriptionState.SUBSCRIBED:
                logger.info(
                    "Subscription verified",
                    extra={"feed_id": feed_id, "topic": topic, "hub": hub},
                )
                return subscription
            if subscription.state is SubscriptionState.UNSUBSCRIBED:
                raise SubscriptionRejected(f"Hub verification failed for {topic} via {hub}")

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.config.verification_poll_interval, remaining))

        await self._abandon(feed_id, topic, hub, token)
        logger.warning(
            "Hub never verified subscription",
            extra={"feed_id": feed_id, "topic": topic, "hub": hub},
        )
        raise VerificationTimeout(f"No verification from {hub} for {topic}")

    async def _abandon(self, feed_id: str, topic: str, hub: str, token: str) -> None:
        # Only the handshake that owns the token may be abandoned.
        async with self.locks.hold(LockKeys.subscription(feed_id, topic, hub)):
            subscription = await self.store.get_subscription(feed_id, topic, hub)
            if (
                subscription is not None
                and subscription.state is SubscriptionState.PENDING
                and subscription.verify_token == token
            ):
                subscription.state = SubscriptionState.UNSUBSCRIBED
                await self.store.save_subscription(subscription)
