"""
Cache-aside reads over local snapshot tables.

Usage:
    from bluehorizon.core.cache import CacheStore, ProfileCache

    profiles = ProfileCache(CacheStore(db, "cache_profile"), notifier)
    snapshot = await profiles.read(identity, "alice.example.com", fetch_remote)
"""

from .store import CacheEntry, CacheStore, CACHE_TABLES
from .reader import (
    CacheAsideReader,
    TimelineCache,
    NotificationsCache,
    ProfileCache,
    ROOT_KEY,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "CACHE_TABLES",
    "CacheAsideReader",
    "TimelineCache",
    "NotificationsCache",
    "ProfileCache",
    "ROOT_KEY",
]
