"""
Event Models
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class Notification(BaseModel):
    """A single published notification."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    payload: Any = None
    created_at: datetime = Field(default_factory=_utcnow)
