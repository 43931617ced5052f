"""
Snapshot cache tables.

One table per resource type, keyed by (owner_identity, key). Writes are
blind upserts: the last writer wins.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from ..database import DatabaseAdapter, from_timestamp, to_timestamp, utcnow
from ..errors import InternalError

logger = logging.getLogger(__name__)

CACHE_TABLES = ("cache_timeline", "cache_notifications", "cache_profile")


@dataclass
class CacheEntry:
    """A materialized snapshot of one remote read."""

    owner_identity: str
    key: str
    snapshot: Any
    cached_at: datetime


class CacheStore:
    """Row access for a single cache table."""

    def __init__(
        self,
        db: DatabaseAdapter,
        table: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        if table not in CACHE_TABLES:
            raise ValueError(f"Unknown cache table: {table}")
        self.table = table
        self._db = db
        self._clock = clock

    async def load(self, owner_identity: str, key: str) -> Optional[CacheEntry]:
        row = await self._db.fetchrow(
            f"SELECT * FROM {self.table} WHERE owner_identity = $1 AND key = $2",
            owner_identity,
            key,
        )
        if row is None:
            return None

        try:
            snapshot = json.loads(row["payload"])
        except ValueError:
            logger.warning("Ignoring undecodable %s entry for key %r", self.table, key)
            return None

        return CacheEntry(
            owner_identity=row["owner_identity"],
            key=row["key"],
            snapshot=snapshot,
            cached_at=from_timestamp(row["cached_at"]),
        )

    async def save(self, owner_identity: str, key: str, snapshot: Any) -> None:
        try:
            payload = json.dumps(snapshot)
        except (TypeError, ValueError) as e:
            raise InternalError(f"{self.table} snapshot encode failed: {e}") from e

        await self._db.execute(
            f"""
            INSERT INTO {self.table} (owner_identity, key, payload, cached_at)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT(owner_identity, key) DO UPDATE SET
                payload = excluded.payload,
                cached_at = excluded.cached_at
            """,
            owner_identity,
            key,
            payload,
            to_timestamp(self._clock()),
        )
