"""
Embedded persistence layer.

Usage:
    from bluehorizon.core.database import DatabaseAdapter, DatabaseConfig

    db = DatabaseAdapter(DatabaseConfig(settings.db_path))
    await db.connect()

    rows = await db.fetch("SELECT * FROM outbox WHERE owner_identity = $1", did)
    await db.execute("DELETE FROM drafts WHERE context_key = $1", key)
"""

from .adapter import (
    DatabaseAdapter,
    DatabaseConfig,
    MIGRATIONS_DIR,
)
from .timestamps import utcnow, to_timestamp, from_timestamp

__all__ = [
    "DatabaseAdapter",
    "DatabaseConfig",
    "MIGRATIONS_DIR",
    "utcnow",
    "to_timestamp",
    "from_timestamp",
]
