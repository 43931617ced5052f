"""
Draft Store

Single-slot persistence of in-progress compositions, keyed by context.
Saving an empty composition clears the slot instead of storing it.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from ..database import DatabaseAdapter, to_timestamp, utcnow
from .models import Draft, PostPayload

logger = logging.getLogger(__name__)


class DraftStore:
    """
    Usage:
        drafts = DraftStore(db)
        await drafts.save(payload.context_key, payload)
        draft = await drafts.load("post:new")
        await drafts.clear("post:new")
    """

    def __init__(self, db: DatabaseAdapter, clock: Callable[[], datetime] = utcnow):
        self._db = db
        self._clock = clock

    async def save(self, context_key: str, payload: PostPayload) -> Optional[Draft]:
        """
        Upsert the draft for a context.

        Returns:
            The stored draft, or None when the payload was empty and the
            slot was cleared instead
        """
        if payload.is_empty():
            await self.clear(context_key)
            return None

        now = to_timestamp(self._clock())
        await self._db.execute(
            """
            INSERT INTO drafts (context_key, payload, created_at, updated_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT(context_key) DO UPDATE SET
                payload = excluded.payload,
                updated_at = excluded.updated_at
            """,
            context_key,
            payload.model_dump_json(),
            now,
            now,
        )
        logger.debug("Saved draft %s", context_key)
        return await self.load(context_key)

    async def load(self, context_key: str) -> Optional[Draft]:
        row = await self._db.fetchrow(
            "SELECT * FROM drafts WHERE context_key = $1",
            context_key,
        )
        if row is None:
            return None
        try:
            return Draft.from_row(row)
        except ValidationError as e:
            # An unreadable draft is treated as absent; the next save replaces it
            logger.warning("Discarding unreadable draft %s: %s", context_key, e)
            return None

    async def clear(self, context_key: str) -> None:
        await self._db.execute("DELETE FROM drafts WHERE context_key = $1", context_key)
