"""
Cache-Aside Read Manager

Stale-while-revalidate reads for one cacheable resource type.

read(identity, key, fetch_remote):
- key not cacheable for this resource -> fetch directly, no cache
- cache hit -> return the cached snapshot at once; refresh in the
  background when the key is refreshable (save + publish, or log)
- cache miss -> fetch synchronously, save, return
- synchronous fetch failure -> cached entry for the exact key if one
  exists, otherwise the error propagates

Background refreshes are detached: the read path never awaits them.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Set, Union

from ..events import EventType, Notifier
from ..gateway import Identity
from ..observability import create_span, record_counter
from .store import CacheStore

logger = logging.getLogger(__name__)

ROOT_KEY = ""

FetchRemote = Callable[[], Awaitable[Any]]


class CacheAsideReader:
    """
    Base read manager. Subclasses decide which keys are cached and
    refreshed and what the update notification carries.

    Usage:
        timeline = TimelineCache(CacheStore(db, "cache_timeline"), notifier)
        snapshot = await timeline.read(identity, "", fetch_remote)
    """

    resource = "resource"
    event = EventType.TIMELINE_UPDATED

    def __init__(self, store: CacheStore, notifier: Notifier):
        self.store = store
        self._notifier = notifier
        self._refreshes: Set[asyncio.Task] = set()

    def is_cacheable(self, key: str) -> bool:
        return key == ROOT_KEY

    def refreshes(self, key: str) -> bool:
        return key == ROOT_KEY

    def event_payload(self, key: str, snapshot: Any) -> Any:
        return snapshot

    async def read(self, identity: Union[Identity, str], key: str, fetch_remote: FetchRemote) -> Any:
        owner = _owner(identity)
        attrs = {"cache.resource": self.resource}

        if not self.is_cacheable(key):
            return await fetch_remote()

        cached = await self.store.load(owner, key)
        if cached is not None:
            record_counter("cache_hits_total", attributes=attrs)
            if self.refreshes(key):
                self._spawn_refresh(owner, key, fetch_remote)
            return cached.snapshot

        record_counter("cache_misses_total", attributes=attrs)
        try:
            snapshot = await fetch_remote()
        except Exception as e:
            # A background refresh may have filled the slot meanwhile
            fallback = await self.store.load(owner, key)
            if fallback is None:
                raise
            record_counter("cache_fallbacks_total", attributes=attrs)
            logger.warning("Serving cached %s for key %r after fetch failure: %s", self.resource, key, e)
            return fallback.snapshot

        await self.store.save(owner, key, snapshot)
        return snapshot

    async def wait_for_refreshes(self) -> None:
        """Wait until in-flight background refreshes have finished."""
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes), return_exceptions=True)

    def _spawn_refresh(self, owner: str, key: str, fetch_remote: FetchRemote) -> None:
        task = asyncio.create_task(self._refresh(owner, key, fetch_remote))
        # Held only so the task is not garbage collected mid-flight
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)

    async def _refresh(self, owner: str, key: str, fetch_remote: FetchRemote) -> None:
        with create_span("cache.refresh", {"cache.resource": self.resource, "cache.key": key}):
            try:
                snapshot = await fetch_remote()
            except Exception as e:
                record_counter("cache_refresh_failures_total", attributes={"cache.resource": self.resource})
                logger.warning("Background %s refresh failed: %s", self.resource, e)
                return

            try:
                await self.store.save(owner, key, snapshot)
            except Exception as e:
                logger.error("Background %s refresh could not be saved: %s", self.resource, e)

            self._notifier.publish(self.event, self.event_payload(key, snapshot))


class TimelineCache(CacheAsideReader):
    """Home timeline: only the cursor-less root page is cached."""

    resource = "timeline"
    event = EventType.TIMELINE_UPDATED


class NotificationsCache(CacheAsideReader):
    """Notifications: every cursor is cached, only the root is refreshed."""

    resource = "notifications"
    event = EventType.NOTIFICATIONS_UPDATED

    def is_cacheable(self, key: str) -> bool:
        return True


class ProfileCache(CacheAsideReader):
    """Profiles by handle: every handle is cached and refreshed."""

    resource = "profile"
    event = EventType.PROFILE_UPDATED

    def is_cacheable(self, key: str) -> bool:
        return True

    def refreshes(self, key: str) -> bool:
        return True

    def event_payload(self, key: str, snapshot: Any) -> Any:
        return {"handle": key, "snapshot": snapshot}


def _owner(identity: Union[Identity, str]) -> str:
    return identity.did if isinstance(identity, Identity) else str(identity)
