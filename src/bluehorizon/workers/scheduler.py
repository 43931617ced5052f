"""
Background Scheduler

Timer-driven background work running beside foreground commands:
- outbox sweep every sweep_interval seconds
- an immediate out-of-cycle sweep after every (re)established session,
  only while the scheduler is started
- unread counter poll every unread_poll_interval seconds, published
  as "unread-count" whenever a session exists

The scheduler holds no payload state. Each tick only calls into the
outbox processor or the gateway; their owners synchronize access.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Set

from ..core.errors import NotAuthenticated
from ..core.events import EventType, Notifier
from ..core.gateway import Identity, ResourceType
from ..core.outbox import OutboxProcessor
from ..core.session import SessionManager

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 20.0
DEFAULT_UNREAD_POLL_INTERVAL = 180.0


class Scheduler:
    """
    Usage:
        scheduler = Scheduler(processor, session, notifier)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        processor: OutboxProcessor,
        session: SessionManager,
        notifier: Notifier,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        unread_poll_interval: float = DEFAULT_UNREAD_POLL_INTERVAL,
    ):
        self.processor = processor
        self.sweep_interval = sweep_interval
        self.unread_poll_interval = unread_poll_interval
        self._session = session
        self._notifier = notifier
        self._running = False
        self._loops: List[asyncio.Task] = []
        self._triggered: Set[asyncio.Task] = set()

        session.on_connected(self._on_connected)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return

        self._running = True
        self._loops = [
            asyncio.create_task(self._every(self.sweep_interval, self.run_sweep, "outbox sweep")),
            asyncio.create_task(self._every(self.unread_poll_interval, self.poll_unread_count, "unread poll")),
        ]
        logger.info(
            "Scheduler started (sweep every %ss, unread poll every %ss)",
            self.sweep_interval, self.unread_poll_interval
        )

    async def stop(self) -> None:
        self._running = False
        tasks = self._loops + list(self._triggered)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loops = []
        logger.info("Scheduler stopped")

    def trigger_sweep_now(self) -> asyncio.Task:
        """Run an out-of-cycle sweep without waiting for it."""
        task = asyncio.create_task(self._guarded(self.run_sweep, "triggered outbox sweep"))
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        return task

    async def wait_for_triggered(self) -> None:
        """Wait until out-of-cycle sweeps have finished."""
        while self._triggered:
            await asyncio.gather(*list(self._triggered), return_exceptions=True)

    async def run_sweep(self) -> int:
        return await self.processor.sweep()

    async def poll_unread_count(self) -> Optional[int]:
        """Publish the unread counter; no-op without a session."""
        try:
            async with self._session.acquire() as gateway:
                data = await gateway.fetch(ResourceType.UNREAD_COUNT, {})
        except NotAuthenticated:
            return None

        count = int(data.get("count", 0))
        self._notifier.publish(EventType.UNREAD_COUNT, {"count": count})
        return count

    def _on_connected(self, identity: Identity) -> None:
        if not self._running:
            return
        logger.info("Session established for %s, sweeping outbox", identity.handle)
        self.trigger_sweep_now()

    async def _every(self, interval: float, tick: Callable[[], Awaitable], name: str) -> None:
        # First tick runs immediately
        while self._running:
            await self._guarded(tick, name)
            await asyncio.sleep(interval)

    async def _guarded(self, tick: Callable[[], Awaitable], name: str) -> None:
        try:
            await tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
