"""
Outbox Processor

Sweeps the outbox and re-delivers queued mutations through the remote
gateway, with exponential backoff and an attempt limit.

One sweep:
- no authenticated identity -> no-op
- select up to batch_size due rows (queued/retrying, next_retry_at <= now),
  oldest first
- hold the gateway lock for the whole batch
- per row: malformed payload -> failed; otherwise retrying, then
  sent on success, or queued with backoff / failed at the attempt limit

Gateway failures are recorded per row and never abort the batch.
Storage failures propagate and abort the rest of the batch.
"""

import asyncio
import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..errors import InvalidTransition, NotAuthenticated
from ..events import EventType, Notifier
from ..gateway import Identity, RemoteGateway
from ..observability import create_span, record_counter, record_histogram
from ..session import SessionManager
from .backoff import calculate_next_retry
from .models import MutationStatus, QueuedMutation
from .writer import OutboxWriter

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_ATTEMPTS = 8

PayloadDecoder = Callable[[str], Dict[str, Any]]


def decode_json_object(raw: str) -> Dict[str, Any]:
    """Default payload decoder: the payload must be a JSON object."""
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"expected a JSON object, got {type(value).__name__}")
    return value


class OutboxProcessor:
    """
    Delivers queued mutations.

    Usage:
        processor = OutboxProcessor(writer, session, notifier)
        delivered = await processor.sweep()
    """

    def __init__(
        self,
        writer: OutboxWriter,
        session: SessionManager,
        notifier: Notifier,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        decoder: PayloadDecoder = decode_json_object,
    ):
        self.writer = writer
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self._session = session
        self._notifier = notifier
        self._decode = decoder
        # One sweep at a time per process
        self._sweep_lock = asyncio.Lock()

    async def sweep(self, identity: Optional[Identity] = None) -> int:
        """
        Attempt delivery of due entries for the given (or current) identity.

        Returns:
            Number of rows processed
        """
        if identity is None:
            try:
                identity = self._session.current_identity()
            except NotAuthenticated:
                return 0

        async with self._sweep_lock:
            started = time.monotonic()
            with create_span("outbox.sweep", {"outbox.owner": identity.did}) as span:
                entries = await self.writer.select_due(identity, self.writer.now(), self.batch_size)
                span.set_attribute("outbox.selected", len(entries))
                if not entries:
                    return 0

                try:
                    async with self._session.acquire() as gateway:
                        for entry in entries:
                            await self._deliver_entry(gateway, entry)
                except NotAuthenticated:
                    logger.debug("Session ended before outbox sweep could run")
                    return 0
                finally:
                    record_histogram("outbox_sweep_duration_seconds", time.monotonic() - started)

        return len(entries)

    async def _deliver_entry(self, gateway: RemoteGateway, entry: QueuedMutation) -> None:
        """Deliver a single outbox entry."""
        try:
            payload = self._decode(entry.payload)
        except (ValueError, TypeError) as e:
            await self.writer.transition(
                entry,
                MutationStatus.FAILED,
                attempts=entry.attempts + 1,
                next_retry_at=self.writer.now(),
                last_error=f"Invalid retry payload: {e}",
            )
            record_counter("outbox_failed_total", attributes={"reason": "malformed"})
            logger.error("Outbox entry %s has a malformed payload, marked failed: %s", entry.id, e)
            return

        try:
            entry = await self.writer.transition(entry, MutationStatus.RETRYING)
        except InvalidTransition as e:
            logger.warning("Skipping outbox entry %s: %s", entry.id, e)
            return

        try:
            await gateway.send_mutation(payload)
        except Exception as e:
            await self._record_failure(entry, e)
            return

        await self.writer.transition(entry, MutationStatus.SENT, sent_at=self.writer.now())
        record_counter("outbox_sent_total")
        logger.info("Delivered outbox entry %s", entry.id)
        self._notifier.publish(EventType.MUTATION_SENT, {"id": entry.id})

    async def _record_failure(self, entry: QueuedMutation, error: Exception) -> None:
        attempts = entry.attempts + 1
        now = self.writer.now()

        if attempts >= self.max_attempts:
            # next_retry_at stays a valid timestamp even once failed
            await self.writer.transition(
                entry,
                MutationStatus.FAILED,
                attempts=attempts,
                next_retry_at=now,
                last_error=str(error),
            )
            record_counter("outbox_failed_total", attributes={"reason": "max_attempts"})
            logger.error("Outbox entry %s abandoned after %d attempts: %s", entry.id, attempts, error)
            return

        # Delay is keyed on the failures recorded before this one: 30s, 60s, ...
        next_retry: datetime = calculate_next_retry(entry.attempts, now)
        await self.writer.transition(
            entry,
            MutationStatus.QUEUED,
            attempts=attempts,
            next_retry_at=next_retry,
            last_error=str(error),
        )
        record_counter("outbox_retry_total")
        logger.warning(
            "Outbox entry %s failed (attempt %d), retry at %s: %s",
            entry.id, attempts, next_retry.isoformat(), error
        )
