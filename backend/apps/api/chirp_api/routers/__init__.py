"""
API routers package.
"""

from . import feeds, hub

__all__ = ["feeds", "hub"]
