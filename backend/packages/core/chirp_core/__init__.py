"""
Chirp Core Package.

This package contains the feed federation engine: schemas, services,
signature authentication and per-feed locking for the Chirp application.
"""

__version__ = "0.1.0"

from .logging_config import get_logger, init_logging

__all__ = ["init_logging", "get_logger"]
