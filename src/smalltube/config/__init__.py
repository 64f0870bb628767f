"""Configuration package for SmallTube.

Re-exports the most commonly used configuration symbols so that
callers can write::

    from smalltube.config import get_settings, CacheTimeout
"""

from __future__ import annotations

from smalltube.config.settings import (
    CacheTimeout,
    Settings,
    ThumbnailQuality,
    get_settings,
)

__all__ = [
    "CacheTimeout",
    "Settings",
    "ThumbnailQuality",
    "get_settings",
]
