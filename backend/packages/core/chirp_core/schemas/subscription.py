"""
Subscription and hub protocol schemas.

Typed request and response models for the subscriber side of the hub protocol.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionState(str, Enum):
    """Subscription handshake state."""

    UNSUBSCRIBED = "unsubscribed"
    PENDING = "pending_verification"
    SUBSCRIBED = "subscribed"


class HubMode(str, Enum):
    """hub.mode values a subscriber sends or is challenged with."""

    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class Subscription(BaseModel):
    """
    Subscription of a local feed to a remote topic through one hub.

    Keyed by (feed_id, topic, hub). ``verify_token`` holds the token of the
    latest handshake; earlier tokens are no longer honored.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    feed_id: str
    topic: str
    hub: str
    state: SubscriptionState = SubscriptionState.UNSUBSCRIBED
    verify_token: str | None = None
    requested_at: datetime | None = None
    verified_at: datetime | None = None
    lease_seconds: int | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.feed_id, self.topic, self.hub)


class ChallengeRequest(BaseModel):
    """
    Hub verification challenge (``GET /feeds/{id}?hub.challenge=...``).

    Built from the hub.* query parameters at the HTTP boundary.
    """

    challenge: str = Field(min_length=1)
    topic: str = ""
    verify_token: str = ""
    mode: HubMode = HubMode.SUBSCRIBE
    lease_seconds: int | None = None


class PushRequest(BaseModel):
    """Hub content delivery (``POST /feeds/{id}``)."""

    body: bytes
    signature: str | None = None


class ChallengeResponse(BaseModel):
    """Verification responder outcome."""

    status_code: int
    body: str = ""


class FollowRequest(BaseModel):
    """
    Follow or unfollow a remote topic through a hub.

    URLs are kept verbatim: the hub echoes the topic back and it is
    compared by exact string equality.
    """

    topic: str = Field(min_length=1, max_length=2000)
    hub: str = Field(min_length=1, max_length=2000)

    @field_validator("topic", "hub")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        if value.startswith("feed://"):
            # feed:// is a common alias for http:// in subscribe links
            value = "http://" + value[len("feed://") :]
        if not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value


class SubscriptionResponse(BaseModel):
    """Subscription response model."""

    model_config = ConfigDict(from_attributes=True)

    feed_id: str
    topic: str
    hub: str
    state: SubscriptionState
    requested_at: datetime | None
    verified_at: datetime | None
