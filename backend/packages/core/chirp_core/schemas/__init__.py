"""
Pydantic schemas for the federation engine and API.
"""

from .feed import (
    AuthorProfile,
    CreateFeedRequest,
    Feed,
    FeedResponse,
    MergeResult,
    PostUpdateRequest,
    Update,
    UpdateResponse,
    generate_update_id,
)
from .hub import HubPingResult, PingOutcome, PingStatusResponse
from .subscription import (
    ChallengeRequest,
    ChallengeResponse,
    FollowRequest,
    HubMode,
    PushRequest,
    Subscription,
    SubscriptionResponse,
    SubscriptionState,
)

__all__ = [
    # Feed
    "AuthorProfile",
    "CreateFeedRequest",
    "Feed",
    "FeedResponse",
    "MergeResult",
    "PostUpdateRequest",
    "Update",
    "UpdateResponse",
    "generate_update_id",
    # Hub
    "HubPingResult",
    "PingOutcome",
    "PingStatusResponse",
    # Subscription
    "ChallengeRequest",
    "ChallengeResponse",
    "FollowRequest",
    "HubMode",
    "PushRequest",
    "Subscription",
    "SubscriptionResponse",
    "SubscriptionState",
]
