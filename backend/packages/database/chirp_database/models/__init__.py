"""
Database models package.

This module exports all SQLAlchemy models for the Chirp application.
"""

from .base import Base, TimestampMixin
from .entry import Entry
from .feed import Feed
from .subscription import Subscription

__all__ = [
    "Base",
    "TimestampMixin",
    "Feed",
    "Entry",
    "Subscription",
]
