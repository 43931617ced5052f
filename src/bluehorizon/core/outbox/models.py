"""
Outbox Models

QueuedMutation rows and the status state machine that guards them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..database import from_timestamp
from ..errors import InvalidTransition


class MutationStatus(str, Enum):
    """Status of a queued mutation."""
    QUEUED = "queued"
    RETRYING = "retrying"  # Delivery attempt in progress
    SENT = "sent"
    FAILED = "failed"  # Abandoned, never retried again


# Valid status transitions. Terminal statuses have none.
STATUS_TRANSITIONS: Dict[MutationStatus, List[MutationStatus]] = {
    MutationStatus.QUEUED: [MutationStatus.RETRYING, MutationStatus.FAILED],
    # retrying -> retrying re-claims a row left behind by an interrupted sweep
    MutationStatus.RETRYING: [
        MutationStatus.RETRYING,
        MutationStatus.QUEUED,
        MutationStatus.SENT,
        MutationStatus.FAILED,
    ],
    MutationStatus.SENT: [],
    MutationStatus.FAILED: [],
}

ACTIVE_STATUSES = (MutationStatus.QUEUED, MutationStatus.RETRYING)
TERMINAL_STATUSES = (MutationStatus.SENT, MutationStatus.FAILED)


def transition(current: MutationStatus, target: MutationStatus) -> MutationStatus:
    """Return target if current may move to it, otherwise raise InvalidTransition."""
    current = MutationStatus(current)
    target = MutationStatus(target)
    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidTransition(current.value, target.value)
    return target


class QueuedMutation(BaseModel):
    """A durable record of one pending write."""

    id: str
    owner_identity: str
    payload: str
    status: MutationStatus = MutationStatus.QUEUED
    attempts: int = 0
    next_retry_at: datetime
    last_error: str = ""
    created_at: datetime
    updated_at: datetime
    sent_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QueuedMutation":
        return cls(
            id=row["id"],
            owner_identity=row["owner_identity"],
            payload=row["payload"],
            status=MutationStatus(row["status"]),
            attempts=row["attempts"],
            next_retry_at=from_timestamp(row["next_retry_at"]),
            last_error=row["last_error"] or "",
            created_at=from_timestamp(row["created_at"]),
            updated_at=from_timestamp(row["updated_at"]),
            sent_at=from_timestamp(row["sent_at"]) if row.get("sent_at") else None,
        )
