"""
Post commands

Write path: immediate delivery under the gateway lock, falling back to
the outbox for retryable failures. Drafts are cleared once the post is
sent or durably queued, and kept when the failure needs user action.
"""

import logging
from typing import TYPE_CHECKING, Literal, Optional

from pydantic import BaseModel

from ..core.drafts import Draft, PostPayload, draft_context_key
from ..core.errors import BlueHorizonError, is_retryable
from ..core.observability import traced

if TYPE_CHECKING:
    from ..app import Application

logger = logging.getLogger(__name__)


class PostResult(BaseModel):
    """Outcome of create_post."""

    status: Literal["sent", "queued"]
    outbox_id: Optional[str] = None


@traced("commands.create_post")
async def create_post(ctx: "Application", payload: PostPayload) -> PostResult:
    """
    Publish a post, or queue it for retry.

    Raises:
        NotAuthenticated: no identity to own the post
        CredentialFailure, InternalError: surfaced, draft kept
        StorageFailure: the post could not be queued
    """
    identity = ctx.session.current_identity()

    try:
        async with ctx.session.acquire() as gateway:
            await gateway.send_mutation(payload.model_dump())
    except BlueHorizonError as e:
        if not is_retryable(e):
            raise

        entry_id = await ctx.outbox.enqueue(identity, payload, str(e))
        await _clear_draft_quietly(ctx, payload)
        return PostResult(status="queued", outbox_id=entry_id)

    await _clear_draft_quietly(ctx, payload)
    return PostResult(status="sent")


async def save_post_draft(ctx: "Application", payload: PostPayload) -> Optional[Draft]:
    """Save the composition; an empty one clears the draft instead."""
    return await ctx.drafts.save(payload.context_key, payload)


async def get_post_draft(
    ctx: "Application",
    reply_to: Optional[str] = None,
    quote_uri: Optional[str] = None,
) -> Optional[Draft]:
    return await ctx.drafts.load(draft_context_key(reply_to, quote_uri))


async def clear_post_draft(
    ctx: "Application",
    reply_to: Optional[str] = None,
    quote_uri: Optional[str] = None,
) -> None:
    await ctx.drafts.clear(draft_context_key(reply_to, quote_uri))


async def _clear_draft_quietly(ctx: "Application", payload: PostPayload) -> None:
    # The post itself already succeeded or is queued
    try:
        await ctx.drafts.clear(payload.context_key)
    except BlueHorizonError as e:
        logger.warning("Failed to clear draft %s: %s", payload.context_key, e)
