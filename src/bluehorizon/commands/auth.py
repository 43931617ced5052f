"""
Session commands.
"""

from typing import TYPE_CHECKING, Optional

from ..core.gateway import Identity

if TYPE_CHECKING:
    from ..app import Application


async def login(
    ctx: "Application",
    identifier: str,
    password: str,
    service_url: Optional[str] = None,
) -> Identity:
    """Log in; queued posts are swept right after the session is established."""
    return await ctx.session.login(identifier.strip(), password, service_url)


async def resume_session(ctx: "Application") -> Identity:
    return await ctx.session.resume()


async def logout(ctx: "Application") -> None:
    await ctx.session.logout()
