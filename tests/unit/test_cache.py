"""
Tests for the cache-aside read managers.
"""

import asyncio

import pytest

from bluehorizon.core.cache import (
    CacheStore,
    NotificationsCache,
    ProfileCache,
    TimelineCache,
)
from bluehorizon.core.errors import NetworkTransient
from bluehorizon.core.events import EventType

OWNER = "did:plc:alice123"


class ScriptedFetch:
    """fetch_remote stand-in: returns or raises its outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0
        self.release = None

    async def __call__(self):
        self.calls += 1
        if self.release is not None:
            await self.release.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def timeline(db, notifier, clock):
    return TimelineCache(CacheStore(db, "cache_timeline", clock), notifier)


@pytest.fixture
def notifications(db, notifier, clock):
    return NotificationsCache(CacheStore(db, "cache_notifications", clock), notifier)


@pytest.fixture
def profiles(db, notifier, clock):
    return ProfileCache(CacheStore(db, "cache_profile", clock), notifier)


class TestCacheStore:
    """Snapshot rows."""

    def test_unknown_table_rejected(self, db):
        with pytest.raises(ValueError):
            CacheStore(db, "drafts")

    @pytest.mark.asyncio
    async def test_upsert_last_writer_wins(self, db, clock):
        store = CacheStore(db, "cache_timeline", clock)
        await store.save(OWNER, "", {"v": 1})
        clock.advance(5)
        await store.save(OWNER, "", {"v": 2})

        entry = await store.load(OWNER, "")
        assert entry.snapshot == {"v": 2}
        assert entry.cached_at == clock()

    @pytest.mark.asyncio
    async def test_rows_scoped_by_owner(self, db):
        store = CacheStore(db, "cache_profile")
        await store.save(OWNER, "bob.test", {"handle": "bob.test"})
        assert await store.load("did:plc:other", "bob.test") is None


class TestCacheMiss:
    """Reads with nothing cached."""

    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self, timeline):
        fetch = ScriptedFetch({"feed": [1]})

        assert await timeline.read(OWNER, "", fetch) == {"feed": [1]}
        assert (await timeline.store.load(OWNER, "")).snapshot == {"feed": [1]}

    @pytest.mark.asyncio
    async def test_miss_with_failing_fetch_propagates(self, timeline):
        with pytest.raises(NetworkTransient):
            await timeline.read(OWNER, "", ScriptedFetch(NetworkTransient("offline")))

    @pytest.mark.asyncio
    async def test_failing_fetch_falls_back_to_entry_written_meanwhile(self, timeline):
        """The slot is filled by a concurrent refresh while the miss fetch is failing."""

        async def fetch_remote():
            await timeline.store.save(OWNER, "", {"feed": ["from refresh"]})
            raise NetworkTransient("offline")

        assert await timeline.read(OWNER, "", fetch_remote) == {"feed": ["from refresh"]}


class TestCacheHit:
    """Stale-while-revalidate."""

    @pytest.mark.asyncio
    async def test_hit_returns_cached_and_refreshes(self, timeline, events):
        await timeline.store.save(OWNER, "", {"feed": ["stale"]})
        fetch = ScriptedFetch({"feed": ["fresh"]})

        result = await timeline.read(OWNER, "", fetch)
        assert result == {"feed": ["stale"]}

        await timeline.wait_for_refreshes()

        assert fetch.calls == 1
        assert (await timeline.store.load(OWNER, "")).snapshot == {"feed": ["fresh"]}
        assert events.named(EventType.TIMELINE_UPDATED) == [{"feed": ["fresh"]}]

    @pytest.mark.asyncio
    async def test_hit_does_not_wait_for_refresh(self, timeline):
        """The cached payload comes back unchanged while the refresh is still in flight."""
        await timeline.store.save(OWNER, "", {"feed": ["stale"]})
        fetch = ScriptedFetch({"feed": ["fresh"]})
        fetch.release = asyncio.Event()

        result = await asyncio.wait_for(timeline.read(OWNER, "", fetch), timeout=1)
        assert result == {"feed": ["stale"]}
        assert (await timeline.read(OWNER, "", ScriptedFetch({"feed": []}))) == {"feed": ["stale"]}

        fetch.release.set()
        await timeline.wait_for_refreshes()

    @pytest.mark.asyncio
    async def test_refresh_failure_only_logs(self, timeline, events):
        await timeline.store.save(OWNER, "", {"feed": ["stale"]})

        await timeline.read(OWNER, "", ScriptedFetch(NetworkTransient("offline")))
        await timeline.wait_for_refreshes()

        assert (await timeline.store.load(OWNER, "")).snapshot == {"feed": ["stale"]}
        assert events.named(EventType.TIMELINE_UPDATED) == []

    @pytest.mark.asyncio
    async def test_fallback_after_prior_success(self, profiles):
        """A failing fetch after a cached success yields the cached payload."""
        await profiles.read(OWNER, "alice.test", ScriptedFetch({"handle": "alice.test"}))

        # Hit path, the background refresh fails and is only logged
        result = await profiles.read(OWNER, "alice.test", ScriptedFetch(NetworkTransient("offline")))
        await profiles.wait_for_refreshes()

        assert result == {"handle": "alice.test"}


class TestProfileScenario:
    """Miss on alice, then served from cache."""

    @pytest.mark.asyncio
    async def test_second_read_served_from_cache(self, profiles, events):
        snapshot = {"handle": "alice", "displayName": "Alice"}
        first = ScriptedFetch(snapshot)

        assert await profiles.read(OWNER, "alice", first) == snapshot
        assert first.calls == 1

        refresh = ScriptedFetch({"handle": "alice", "displayName": "Alice 2"})
        refresh.release = asyncio.Event()

        assert await profiles.read(OWNER, "alice", refresh) == snapshot

        refresh.release.set()
        await profiles.wait_for_refreshes()

        assert refresh.calls == 1
        assert events.named(EventType.PROFILE_UPDATED) == [
            {"handle": "alice", "snapshot": {"handle": "alice", "displayName": "Alice 2"}}
        ]


class TestPagination:
    """Cursor handling per resource type."""

    @pytest.mark.asyncio
    async def test_timeline_cursor_pages_not_cached(self, timeline):
        fetch = ScriptedFetch({"feed": ["page2"]}, NetworkTransient("offline"))

        assert await timeline.read(OWNER, "cursor-2", fetch) == {"feed": ["page2"]}
        assert await timeline.store.load(OWNER, "cursor-2") is None

        with pytest.raises(NetworkTransient):
            await timeline.read(OWNER, "cursor-2", fetch)

    @pytest.mark.asyncio
    async def test_notifications_cursor_cached_without_refresh(self, notifications, events):
        await notifications.read(OWNER, "cursor-2", ScriptedFetch({"notifications": ["n2"]}))

        second = ScriptedFetch({"notifications": ["other"]})
        result = await notifications.read(OWNER, "cursor-2", second)
        await notifications.wait_for_refreshes()

        assert result == {"notifications": ["n2"]}
        assert second.calls == 0
        assert events.named(EventType.NOTIFICATIONS_UPDATED) == []

    @pytest.mark.asyncio
    async def test_notifications_root_refreshes(self, notifications, events):
        await notifications.read(OWNER, "", ScriptedFetch({"notifications": ["old"]}))
        await notifications.read(OWNER, "", ScriptedFetch({"notifications": ["new"]}))
        await notifications.wait_for_refreshes()

        assert events.named(EventType.NOTIFICATIONS_UPDATED) == [{"notifications": ["new"]}]
