"""
Federation error taxonomy.

Every per-request failure of the federation engine is one of these.
Only ``StorageUnavailable`` is treated as fatal by callers.
"""


class FederationError(Exception):
    """Base class for federation engine errors."""


class MalformedDocument(FederationError):
    """A feed document is not well-formed or lacks a required field."""


class UnauthenticatedPush(FederationError):
    """A pushed body carried a missing, unparsable or mismatched signature."""


class FeedNotFound(FederationError):
    """No feed exists with the requested identifier."""

    def __init__(self, feed_id: str):
        super().__init__(f"Feed not found: {feed_id}")
        self.feed_id = feed_id


class UpdateNotFound(FederationError):
    """No update exists with the requested identifier on the feed."""


class NotUpdateAuthor(FederationError):
    """Only the author of an update may delete it."""


class SubscriptionRejected(FederationError):
    """A subscription handshake did not reach the subscribed state."""


class VerificationTimeout(SubscriptionRejected):
    """The hub never answered the handshake with a verification challenge."""


class HubUnreachable(FederationError):
    """Transport failure while talking to a hub."""

    def __init__(self, hub: str, reason: str):
        super().__init__(f"Hub {hub} unreachable: {reason}")
        self.hub = hub
        self.reason = reason


class StorageUnavailable(FederationError):
    """The persistence store could not be reached."""
