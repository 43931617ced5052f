"""
Draft Store

Usage:
    from bluehorizon.core.drafts import DraftStore, PostPayload

    drafts = DraftStore(db)
    await drafts.save(payload.context_key, payload)
"""

from .models import (
    Draft,
    ImageInput,
    PostPayload,
    NEW_POST_CONTEXT,
    draft_context_key,
    decode_post_payload,
)
from .store import DraftStore

__all__ = [
    "Draft",
    "ImageInput",
    "PostPayload",
    "NEW_POST_CONTEXT",
    "draft_context_key",
    "decode_post_payload",
    "DraftStore",
]
