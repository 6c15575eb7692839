"""
Chirp Database Package.

SQLAlchemy models, session management and the SQL-backed feed store.
"""

from .models import Base
from .store import SqlFeedStore

__all__ = ["Base", "SqlFeedStore"]
