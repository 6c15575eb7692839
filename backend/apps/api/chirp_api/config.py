"""
API application settings.
"""

from chirp_core.config import Settings

settings = Settings()

__all__ = ["Settings", "settings"]
