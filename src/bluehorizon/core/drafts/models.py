"""
Draft Models

Composition payloads and the context key that identifies a draft slot.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..database import from_timestamp

NEW_POST_CONTEXT = "post:new"


class ImageInput(BaseModel):
    """An image attached to a composition."""

    path: str
    alt: str = ""
    mime_type: Optional[str] = None


class PostPayload(BaseModel):
    """Arguments of a "publish a post" mutation."""

    text: str = ""
    reply_to: Optional[str] = None
    quote_uri: Optional[str] = None
    quote_cid: Optional[str] = None
    images: List[ImageInput] = Field(default_factory=list)

    @property
    def context_key(self) -> str:
        return draft_context_key(self.reply_to, self.quote_uri)

    def is_empty(self) -> bool:
        """No text and no attachments."""
        return not self.text.strip() and not self.images


def draft_context_key(reply_to: Optional[str] = None, quote_uri: Optional[str] = None) -> str:
    """
    Derive the draft slot for a composition target.

    Replying wins over quoting; anything else is a new post.
    """
    if reply_to:
        return f"reply:{reply_to}"
    if quote_uri:
        return f"quote:{quote_uri}"
    return NEW_POST_CONTEXT


class Draft(BaseModel):
    """The stored composition for one context key."""

    context_key: str
    payload: PostPayload
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Draft":
        return cls(
            context_key=row["context_key"],
            payload=PostPayload.model_validate_json(row["payload"]),
            created_at=from_timestamp(row["created_at"]),
            updated_at=from_timestamp(row["updated_at"]),
        )


def decode_post_payload(raw: str) -> Dict[str, Any]:
    """Outbox decoder for queued posts; raises ValueError when malformed."""
    return PostPayload.model_validate_json(raw).model_dump()
