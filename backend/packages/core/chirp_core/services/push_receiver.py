"""
Push receiver.

Server side of a local feed endpoint: answers hub verification challenges,
merges authenticated content pushes, and serves the feed document.
"""

import hmac
from datetime import datetime, timezone

from chirp_atom import MalformedDocumentError, decode, encode

from chirp_core import get_logger
from chirp_core.config import FederationConfig
from chirp_core.exceptions import MalformedDocument, UnauthenticatedPush
from chirp_core.locks import KeyedLock, LockKeys
from chirp_core.schemas import (
    AuthorProfile,
    ChallengeRequest,
    ChallengeResponse,
    HubMode,
    MergeResult,
    PushRequest,
    Subscription,
    SubscriptionState,
    Update,
)
from chirp_core.signature import authenticate
from chirp_core.store import FeedStore

logger = get_logger(__name__)

# Failures never say which part mismatched.
_NOT_FOUND = ChallengeResponse(status_code=404)


class PushReceiver:
    """Hub-facing logic for ``/feeds/{id}``."""

    def __init__(self, config: FederationConfig, store: FeedStore, locks: KeyedLock) -> None:
        """
        Initialize push receiver.

        Args:
            config: Federation configuration.
            store: Feed store.
            locks: Lock registry shared with the subscription client and feed service.
        """
        self.config = config
        self.store = store
        self.locks = locks

    async def handle_challenge(self, feed_id: str, request: ChallengeRequest) -> ChallengeResponse:
        """
        Answer a hub verification challenge.

        The challenge is echoed only when the claimed topic equals the
        subscription's topic exactly and the claimed token is the latest one
        issued for it. A mismatch changes no state: a pending handshake is
        abandoned only when its follower gives up waiting.

        Args:
            feed_id: Local feed identifier from the callback path.
            request: Parsed challenge parameters.

        Returns:
            200 with the echoed challenge, or a bare 404.
        """
        candidates = await self.store.find_subscriptions(feed_id, request.topic)
        if not candidates:
            logger.warning(
                "Challenge for unknown subscription",
                extra={"feed_id": feed_id, "topic": request.topic},
            )
            return _NOT_FOUND

        for candidate in candidates:
            async with self.locks.hold(LockKeys.subscription(*candidate.key)):
                subscription = await self.store.get_subscription(*candidate.key)
                if subscription is None or not _token_matches(subscription, request.verify_token):
                    continue
                if await self._confirm(subscription, request):
                    return ChallengeResponse(status_code=200, body=request.challenge)
                return _NOT_FOUND

        logger.warning(
            "Challenge verification failed",
            extra={"feed_id": feed_id, "topic": request.topic, "mode": request.mode.value},
        )
        return _NOT_FOUND

    async def _confirm(self, subscription: Subscription, request: ChallengeRequest) -> bool:
        if request.mode is HubMode.UNSUBSCRIBE:
            confirmed = subscription.state is SubscriptionState.UNSUBSCRIBED
            logger.info(
                "Unsubscribe challenge",
                extra={
                    "feed_id": subscription.feed_id,
                    "hub": subscription.hub,
                    "confirmed": confirmed,
                },
            )
            return confirmed

        # An abandoned handshake stays abandoned.
        if subscription.state is SubscriptionState.UNSUBSCRIBED:
            return False

        subscription.state = SubscriptionState.SUBSCRIBED
        subscription.verified_at = datetime.now(timezone.utc)
        if request.lease_seconds is not None:
            subscription.lease_seconds = request.lease_seconds
        await self.store.save_subscription(subscription)
        logger.info(
            "Subscription verified by hub",
            extra={
                "feed_id": subscription.feed_id,
                "topic": subscription.topic,
                "hub": subscription.hub,
            },
        )
        return True

    async def handle_push(self, feed_id: str, request: PushRequest) -> MergeResult:
        """
        Merge a signed content push into a feed.

        The signature is checked before the body is parsed. Merging is
        idempotent and append-only, and runs under the feed's writer lock.

        Args:
            feed_id: Local feed identifier from the callback path.
            request: Raw body and signature header.

        Returns:
            Counts of added and skipped entries.

        Raises:
            FeedNotFound: If the feed does not exist.
            UnauthenticatedPush: If the signature is missing or invalid.
            MalformedDocument: If the body cannot be decoded.
        """
        feed = await self.store.load_feed(feed_id)

        try:
            authenticate(feed.secret, request.body, request.signature)
        except UnauthenticatedPush as e:
            logger.warning(
                "Rejected unauthenticated push",
                extra={"feed_id": feed_id, "reason": str(e), "size": len(request.body)},
            )
            raise

        try:
            decoded = decode(request.body)
        except MalformedDocumentError as e:
            logger.warning("Rejected malformed push", extra={"feed_id": feed_id, "error": str(e)})
            raise MalformedDocument(str(e)) from e

        updates = [
            Update(
                guid=entry.guid,
                text=entry.text,
                author=AuthorProfile(name=entry.author_name, url=entry.author_url),
                published=entry.published,
            )
            for entry in decoded
        ]

        async with self.locks.hold(LockKeys.feed(feed_id)):
            feed = await self.store.load_feed(feed_id)
            added = feed.merge(updates)
            if added:
                await self.store.save_feed(feed)

        result = MergeResult(feed_id=feed_id, added=len(added), skipped=len(updates) - len(added))
        logger.info(
            "Merged push",
            extra={"feed_id": feed_id, "added": result.added, "skipped": result.skipped},
        )
        return result

    async def render_feed(self, feed_id: str) -> bytes:
        """
        Render the current feed document.

        Raises:
            FeedNotFound: If the feed does not exist.
        """
        feed = await self.store.load_feed(feed_id)
        return encode(feed, self.config.base_url, limit=self.config.document_entry_limit)


def _token_matches(subscription: Subscription, claimed: str) -> bool:
    if not subscription.verify_token or not claimed:
        return False
    return hmac.compare_digest(subscription.verify_token.encode(), claimed.encode())
