"""
Service layer for federation business logic.
"""

from .feed_service import FeedService, ProfileResolver
from .hub_notifier import HubNotifier
from .push_receiver import PushReceiver
from .subscription_client import SubscriptionClient

__all__ = [
    "FeedService",
    "HubNotifier",
    "ProfileResolver",
    "PushReceiver",
    "SubscriptionClient",
]
