"""
Timeline and profile reads, served through the snapshot caches, and
the uncached author feed.
"""

from typing import TYPE_CHECKING, Any, Optional

from ..core.cache import ROOT_KEY
from ..core.gateway import ResourceType
from ..core.observability import traced

if TYPE_CHECKING:
    from ..app import Application


def normalize_handle(handle: str) -> str:
    return handle.strip().lower()


@traced("commands.get_timeline")
async def get_timeline(ctx: "Application", cursor: Optional[str] = None, limit: int = 50) -> Any:
    """
    Home timeline. The root page is served stale-while-revalidate;
    continuation pages always go to the network and are not cached.
    """
    identity = ctx.session.current_identity()

    async def fetch_remote():
        async with ctx.session.acquire() as gateway:
            return await gateway.fetch(ResourceType.TIMELINE, {"limit": limit, "cursor": cursor})

    return await ctx.timeline_cache.read(identity, cursor or ROOT_KEY, fetch_remote)


@traced("commands.get_profile")
async def get_profile(ctx: "Application", handle: str) -> Any:
    identity = ctx.session.current_identity()
    key = normalize_handle(handle)

    async def fetch_remote():
        async with ctx.session.acquire() as gateway:
            return await gateway.fetch(ResourceType.PROFILE, {"actor": key})

    return await ctx.profile_cache.read(identity, key, fetch_remote)


AUTHOR_FEED_FILTERS = {
    "posts": "posts_no_replies",
    "replies": "posts_with_replies",
}


@traced("commands.get_author_feed")
async def get_author_feed(
    ctx: "Application",
    actor: str,
    cursor: Optional[str] = None,
    limit: int = 50,
    view: str = "posts",
) -> Any:
    """
    Posts by one author. Never cached: every page goes to the network.

    The "replies" view asks for posts with replies and keeps only the
    replies themselves.
    """
    params = {
        "actor": normalize_handle(actor),
        "limit": max(1, min(limit, 100)),
        "cursor": cursor,
        "filter": AUTHOR_FEED_FILTERS.get(view, AUTHOR_FEED_FILTERS["posts"]),
        "includePins": False,
    }

    async with ctx.session.acquire() as gateway:
        data = await gateway.fetch(ResourceType.AUTHOR_FEED, params)

    if view == "replies" and isinstance(data, dict):
        feed = [item for item in data.get("feed", []) if _is_reply(item)]
        data = {**data, "feed": feed}
    return data


def _is_reply(item: Any) -> bool:
    record = (item.get("post") or {}).get("record") or {}
    return "reply" in record
