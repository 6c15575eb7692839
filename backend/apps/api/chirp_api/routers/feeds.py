"""
Feeds management router.

Provides endpoints for local feeds, posting updates, and following remote
feeds through hubs.
"""

from typing import Annotated

from arq.connections import ArqRedis
from fastapi import APIRouter, Depends, HTTPException, status

from chirp_core.exceptions import (
    FeedNotFound,
    HubUnreachable,
    NotUpdateAuthor,
    SubscriptionRejected,
    UpdateNotFound,
    VerificationTimeout,
)
from chirp_core.schemas import (
    CreateFeedRequest,
    FeedResponse,
    FollowRequest,
    PingStatusResponse,
    PostUpdateRequest,
    SubscriptionResponse,
    UpdateResponse,
)
from chirp_core.services import FeedService

from ..dependencies import get_feed_service, get_redis_pool
from ..hub_pings import build_ping_status, enqueue_hub_notification

router = APIRouter()


def _subscription_error(e: Exception) -> HTTPException:
    if isinstance(e, FeedNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, VerificationTimeout):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(e))
    if isinstance(e, HubUnreachable):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_feed(
    data: CreateFeedRequest,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> FeedResponse:
    """
    Create a local feed for an author.

    Args:
        data: Author identity and optional title and hubs.
        feed_service: Feed service.

    Returns:
        Created feed.
    """
    author = feed_service.resolve_author(data.username, data.name)
    feed = await feed_service.create_feed(author, title=data.title, hubs=data.hubs)
    return FeedResponse.from_feed(feed)


@router.post("/follow")
async def follow_remote(
    data: FollowRequest,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> SubscriptionResponse:
    """
    Follow a remote feed into a local mirror feed.

    Args:
        data: Remote topic and hub.
        feed_service: Feed service.

    Returns:
        Verified subscription.

    Raises:
        HTTPException: If the hub is unreachable, refuses, or never verifies.
    """
    try:
        subscription = await feed_service.follow_remote(data.topic, data.hub)
    except (SubscriptionRejected, HubUnreachable) as e:
        raise _subscription_error(e)
    return SubscriptionResponse.model_validate(subscription)


@router.get("/{feed_id}")
async def get_feed(
    feed_id: str,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> FeedResponse:
    """
    Get a feed summary.

    Raises:
        HTTPException: If the feed is not found.
    """
    try:
        feed = await feed_service.get_feed(feed_id)
    except FeedNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return FeedResponse.from_feed(feed)


@router.post("/{feed_id}/updates", status_code=status.HTTP_201_CREATED)
async def post_update(
    feed_id: str,
    data: PostUpdateRequest,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
    redis: Annotated[ArqRedis, Depends(get_redis_pool)],
) -> UpdateResponse:
    """
    Post an update and queue hub notification.

    The post succeeds once the update is stored, whatever happens to the
    hub fan-out.

    Args:
        feed_id: Feed identifier.
        data: Update text and author identity.
        feed_service: Feed service.
        redis: Task queue pool.

    Returns:
        Created update with the notification job id, if queued.

    Raises:
        HTTPException: If the feed is not found.
    """
    try:
        update = await feed_service.post_update(feed_id, data.text, data.username, data.name)
    except FeedNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    job_id = await enqueue_hub_notification(redis, feed_id)
    return UpdateResponse(
        guid=update.guid,
        text=update.text,
        author=update.author,
        published=update.published,
        ping_job_id=job_id,
    )


@router.delete("/{feed_id}/updates/{guid}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_update(
    feed_id: str,
    guid: str,
    author_url: str,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> None:
    """
    Delete an update on behalf of its author.

    Raises:
        HTTPException: If not found, or the requester is not the author.
    """
    try:
        await feed_service.delete_update(feed_id, guid, author_url)
    except (FeedNotFound, UpdateNotFound) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NotUpdateAuthor as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.post("/{feed_id}/follow")
async def follow(
    feed_id: str,
    data: FollowRequest,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> SubscriptionResponse:
    """
    Subscribe an existing local feed to a remote topic.

    Raises:
        HTTPException: If the feed is unknown or the handshake fails.
    """
    try:
        feed = await feed_service.get_feed(feed_id)
        subscription = await feed_service.subscriptions.follow(feed, data.topic, data.hub)
    except (FeedNotFound, SubscriptionRejected, HubUnreachable) as e:
        raise _subscription_error(e)
    return SubscriptionResponse.model_validate(subscription)


@router.post("/{feed_id}/unfollow")
async def unfollow(
    feed_id: str,
    data: FollowRequest,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> SubscriptionResponse:
    """
    Unsubscribe a local feed from a remote topic.

    Raises:
        HTTPException: If the feed or subscription is unknown, or the hub fails.
    """
    try:
        feed = await feed_service.get_feed(feed_id)
        subscription = await feed_service.subscriptions.unfollow(feed, data.topic, data.hub)
    except SubscriptionRejected as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (FeedNotFound, HubUnreachable) as e:
        raise _subscription_error(e)
    return SubscriptionResponse.model_validate(subscription)


@router.get("/{feed_id}/subscriptions")
async def list_subscriptions(
    feed_id: str,
    feed_service: Annotated[FeedService, Depends(get_feed_service)],
) -> list[SubscriptionResponse]:
    """
    List the subscriptions of a feed.

    Raises:
        HTTPException: If the feed is not found.
    """
    try:
        await feed_service.get_feed(feed_id)
    except FeedNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    subscriptions = await feed_service.store.list_subscriptions(feed_id)
    return [SubscriptionResponse.model_validate(sub) for sub in subscriptions]


@router.get("/{feed_id}/pings/{job_id}")
async def get_ping_status(
    feed_id: str,
    job_id: str,
    redis: Annotated[ArqRedis, Depends(get_redis_pool)],
) -> PingStatusResponse:
    """
    Get the status and per-hub outcomes of a hub notification job.
    """
    return await build_ping_status(redis, feed_id, job_id)
