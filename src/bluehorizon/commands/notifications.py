"""
Notification reads.
"""

from typing import TYPE_CHECKING, Any, Optional

from ..core.cache import ROOT_KEY
from ..core.errors import InternalError
from ..core.gateway import ResourceType
from ..core.observability import traced

if TYPE_CHECKING:
    from ..app import Application


@traced("commands.get_notifications")
async def get_notifications(ctx: "Application", cursor: Optional[str] = None, limit: int = 50) -> Any:
    """Notification list; every page is cached, the root page refreshes in the background."""
    identity = ctx.session.current_identity()

    async def fetch_remote():
        async with ctx.session.acquire() as gateway:
            return await gateway.fetch(ResourceType.NOTIFICATIONS, {"limit": limit, "cursor": cursor})

    return await ctx.notifications_cache.read(identity, cursor or ROOT_KEY, fetch_remote)


async def get_unread_count(ctx: "Application") -> int:
    async with ctx.session.acquire() as gateway:
        data = await gateway.fetch(ResourceType.UNREAD_COUNT, {})

    try:
        return int(data["count"])
    except (KeyError, TypeError, ValueError) as e:
        raise InternalError(f"malformed unread count response: {data!r}") from e


async def mark_notifications_read(ctx: "Application") -> None:
    async with ctx.session.acquire() as gateway:
        await gateway.update_seen()
