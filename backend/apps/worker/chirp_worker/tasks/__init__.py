"""
Task modules for background processing.

This package contains all background task implementations.
"""

from . import hub_notifier

__all__ = ["hub_notifier"]
