"""
Outbox

Durable queue of user writes whose immediate delivery failed, retried
with exponential backoff until sent or abandoned.

Usage:
    from bluehorizon.core.outbox import OutboxWriter, OutboxProcessor

    writer = OutboxWriter(db, notifier)
    entry_id = await writer.enqueue(identity, payload, str(error))

    processor = OutboxProcessor(writer, session, notifier)
    await processor.sweep()
"""

from .models import (
    MutationStatus,
    QueuedMutation,
    STATUS_TRANSITIONS,
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    transition,
)
from .backoff import backoff_seconds, calculate_next_retry
from .writer import OutboxWriter, encode_payload
from .processor import OutboxProcessor, decode_json_object

__all__ = [
    "MutationStatus",
    "QueuedMutation",
    "STATUS_TRANSITIONS",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "transition",
    "backoff_seconds",
    "calculate_next_retry",
    "OutboxWriter",
    "encode_payload",
    "OutboxProcessor",
    "decode_json_object",
]
