"""
Outbox Writer

Durable row access for the outbox table: enqueue, status transitions,
and read-only inspection for audit/debugging.

Rows are never deleted. Every status change goes through the state
machine in models.transition() and is applied as a compare-and-set on
the current status, so a row that reached a terminal status can never
be moved again.
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from ..database import DatabaseAdapter, to_timestamp, utcnow
from ..errors import InternalError, InvalidTransition
from ..events import EventType, Notifier
from ..gateway import Identity
from ..observability import record_counter
from .models import ACTIVE_STATUSES, MutationStatus, QueuedMutation, transition

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_UNSET = object()


def _owner(identity: Union[Identity, str]) -> str:
    return identity.did if isinstance(identity, Identity) else str(identity)


def encode_payload(payload: Union[BaseModel, Dict[str, Any], str]) -> str:
    """Serialize a mutation payload to text."""
    if isinstance(payload, BaseModel):
        return payload.model_dump_json()
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload)
    except (TypeError, ValueError) as e:
        raise InternalError(f"retry payload encode failed: {e}") from e


class OutboxWriter:
    """
    Writes and transitions queued mutations.

    Usage:
        writer = OutboxWriter(db, notifier)
        entry_id = await writer.enqueue(identity, payload, str(error))
    """

    def __init__(self, db: DatabaseAdapter, notifier: Notifier, clock: Clock = utcnow):
        self._db = db
        self._notifier = notifier
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def enqueue(
        self,
        identity: Union[Identity, str],
        payload: Union[BaseModel, Dict[str, Any], str],
        failure_reason: str,
    ) -> str:
        """
        Durably queue a mutation whose immediate delivery failed.

        The row starts as queued with attempts=1 and is eligible immediately.

        Returns:
            The new entry id

        Raises:
            StorageFailure: the row could not be written
        """
        entry_id = str(uuid4())
        now = to_timestamp(self.now())

        await self._db.execute(
            """
            INSERT INTO outbox (
                id, owner_identity, payload, status, attempts, next_retry_at,
                last_error, created_at, updated_at, sent_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, NULL)
            """,
            entry_id,
            _owner(identity),
            encode_payload(payload),
            MutationStatus.QUEUED.value,
            1,
            now,
            failure_reason or "",
            now,
            now,
        )

        logger.info("Queued mutation %s for retry: %s", entry_id, failure_reason)
        record_counter("outbox_enqueued_total")
        self._notifier.publish(EventType.MUTATION_QUEUED, {"id": entry_id})

        return entry_id

    async def get(self, entry_id: str) -> Optional[QueuedMutation]:
        row = await self._db.fetchrow("SELECT * FROM outbox WHERE id = $1", entry_id)
        return QueuedMutation.from_row(row) if row else None

    async def select_due(
        self,
        identity: Union[Identity, str],
        now: datetime,
        limit: int,
    ) -> List[QueuedMutation]:
        """Active rows whose retry time has come, oldest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM outbox
            WHERE owner_identity = $1
              AND status IN ($2, $3)
              AND next_retry_at <= $4
            ORDER BY created_at ASC, rowid ASC
            LIMIT $5
            """,
            _owner(identity),
            ACTIVE_STATUSES[0].value,
            ACTIVE_STATUSES[1].value,
            to_timestamp(now),
            limit,
        )
        return [QueuedMutation.from_row(row) for row in rows]

    async def transition(
        self,
        entry: QueuedMutation,
        target: MutationStatus,
        *,
        attempts: Optional[int] = None,
        next_retry_at: Optional[datetime] = None,
        last_error: Optional[str] = None,
        sent_at: Any = _UNSET,
    ) -> QueuedMutation:
        """
        Move an entry to a new status.

        Raises:
            InvalidTransition: the move is not allowed, or the stored row
                no longer has the status the caller saw
        """
        transition(entry.status, target)

        if attempts is not None and attempts < entry.attempts:
            raise InternalError(f"attempts may not decrease ({entry.attempts} -> {attempts})")

        now = self.now()
        updated = entry.model_copy(update={
            "status": target,
            "attempts": entry.attempts if attempts is None else attempts,
            "next_retry_at": entry.next_retry_at if next_retry_at is None else next_retry_at,
            "last_error": entry.last_error if last_error is None else last_error,
            "sent_at": entry.sent_at if sent_at is _UNSET else sent_at,
            "updated_at": now,
        })

        changed = await self._db.execute(
            """
            UPDATE outbox
            SET status = $1,
                attempts = $2,
                next_retry_at = $3,
                last_error = $4,
                sent_at = $5,
                updated_at = $6
            WHERE id = $7 AND status = $8
            """,
            updated.status.value,
            updated.attempts,
            to_timestamp(updated.next_retry_at),
            updated.last_error,
            to_timestamp(updated.sent_at) if updated.sent_at else None,
            to_timestamp(now),
            entry.id,
            MutationStatus(entry.status).value,
        )

        if changed == 0:
            stored = await self.get(entry.id)
            current = stored.status.value if stored else "missing"
            raise InvalidTransition(current, MutationStatus(target).value)

        return updated

    async def list_entries(
        self,
        identity: Union[Identity, str],
        status: Optional[MutationStatus] = None,
        limit: int = 100,
    ) -> List[QueuedMutation]:
        """Entries for one identity, newest first."""
        if status is not None:
            rows = await self._db.fetch(
                """
                SELECT * FROM outbox
                WHERE owner_identity = $1 AND status = $2
                ORDER BY created_at DESC
                LIMIT $3
                """,
                _owner(identity),
                MutationStatus(status).value,
                limit,
            )
        else:
            rows = await self._db.fetch(
                """
                SELECT * FROM outbox
                WHERE owner_identity = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                _owner(identity),
                limit,
            )
        return [QueuedMutation.from_row(row) for row in rows]

    async def get_stats(self, identity: Union[Identity, str]) -> Dict[str, int]:
        """Count of entries per status."""
        rows = await self._db.fetch(
            """
            SELECT status, COUNT(*) AS count
            FROM outbox
            WHERE owner_identity = $1
            GROUP BY status
            """,
            _owner(identity),
        )

        stats = {status.value: 0 for status in MutationStatus}
        for row in rows:
            stats[row["status"]] = row["count"]

        return stats
