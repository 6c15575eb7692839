"""
Hub notifier.

Tells a feed's hubs that its content changed so they can fetch the new
document and redistribute it to subscribers.
"""

import asyncio

import httpx

from chirp_core import get_logger
from chirp_core.config import FederationConfig
from chirp_core.schemas import Feed, HubPingResult, PingOutcome

logger = get_logger(__name__)


class HubNotifier:
    """Publish pings to hubs, one request per hub, concurrently."""

    def __init__(self, config: FederationConfig, client: httpx.AsyncClient | None = None) -> None:
        """
        Initialize hub notifier.

        Args:
            config: Federation configuration.
            client: Optional HTTP client; a short-lived one is created per call otherwise.
        """
        self.config = config
        self.client = client

    async def notify_hubs(self, feed: Feed) -> list[HubPingResult]:
        """
        Ping every hub registered on a feed.

        Failures are recorded, never raised.

        Args:
            feed: Feed whose content changed.

        Returns:
            One result per hub, in hub order.
        """
        if not feed.hubs:
            return []

        if self.client is not None:
            return await self._ping_all(self.client, feed)

        async with httpx.AsyncClient(
            timeout=self.config.hub_timeout,
            headers={"User-Agent": self.config.user_agent},
        ) as client:
            return await self._ping_all(client, feed)

    async def _ping_all(self, client: httpx.AsyncClient, feed: Feed) -> list[HubPingResult]:
        results = await asyncio.gather(*(self.ping(client, hub, feed.url) for hub in feed.hubs))
        succeeded = sum(1 for result in results if result.outcome is PingOutcome.SUCCESS)
        logger.info(
            "Notified hubs",
            extra={"feed_id": feed.id, "hubs": len(results), "succeeded": succeeded},
        )
        return list(results)

    async def ping(self, client: httpx.AsyncClient, hub: str, topic: str) -> HubPingResult:
        """
        Send one publish ping naming the updated topic.

        Args:
            client: HTTP client.
            hub: Hub endpoint URL.
            topic: Canonical URL of the updated feed.

        Returns:
            Recorded ping outcome.
        """
        try:
            response = await client.post(
                hub,
                data={"hub.mode": "publish", "hub.url": topic},
                timeout=self.config.hub_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Hub ping timed out", extra={"hub": hub, "topic": topic})
            return HubPingResult(hub=hub, topic=topic, outcome=PingOutcome.TIMEOUT, error=str(e))
        except httpx.HTTPError as e:
            logger.warning("Hub ping failed", extra={"hub": hub, "topic": topic, "error": str(e)})
            return HubPingResult(hub=hub, topic=topic, outcome=PingOutcome.FAILURE, error=str(e))

        if response.is_success:
            return HubPingResult(
                hub=hub, topic=topic, outcome=PingOutcome.SUCCESS, status_code=response.status_code
            )

        logger.warning(
            "Hub rejected ping",
            extra={"hub": hub, "topic": topic, "status_code": response.status_code},
        )
        return HubPingResult(
            hub=hub,
            topic=topic,
            outcome=PingOutcome.FAILURE,
            status_code=response.status_code,
            error=response.text[:500] or None,
        )
