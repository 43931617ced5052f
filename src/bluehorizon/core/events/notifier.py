"""
Notifier

In-process publish/subscribe used by the outbox, the read caches and the
scheduler to tell observers that state changed.

Publishing is fire-and-forget: handler failures are logged and never
reach the publisher. Async handlers are scheduled as detached tasks.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Set, Union

from ..observability import record_counter
from .models import Notification
from .taxonomy import EventType, validate_event_type

logger = logging.getLogger(__name__)

Handler = Callable[[Notification], Any]


class Notifier:
    """
    Routes notifications to subscribed handlers by name.

    Usage:
        notifier = Notifier()
        notifier.subscribe(EventType.MUTATION_SENT, on_sent)

        notifier.publish(EventType.MUTATION_SENT, {"id": entry_id})
    """

    def __init__(self):
        self._subs: Dict[str, List[Handler]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, name: Union[EventType, str], handler: Handler) -> None:
        self._subs.setdefault(_name(name), []).append(handler)

    def unsubscribe(self, name: Union[EventType, str], handler: Handler) -> bool:
        handlers = self._subs.get(_name(name))
        if not handlers:
            return False
        try:
            handlers.remove(handler)
        except ValueError:
            return False
        if not handlers:
            del self._subs[_name(name)]
        return True

    def publish(self, name: Union[EventType, str], payload: Any = None) -> Notification:
        """Deliver a notification to every handler subscribed to its name."""
        event_name = _name(name)
        if not validate_event_type(event_name):
            logger.warning(f"Unknown event type: {event_name} - publishing anyway")

        notification = Notification(name=event_name, payload=payload)
        record_counter("notifications_published_total", attributes={"event": event_name})

        for handler in list(self._subs.get(event_name, [])):
            try:
                result = handler(notification)
            except Exception:
                logger.exception("Notification handler failed: %s", event_name)
                continue

            if inspect.isawaitable(result):
                self._spawn(result, event_name)

        return notification

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, awaitable, event_name: str) -> None:
        async def _run():
            try:
                await awaitable
            except Exception:
                logger.exception("Async notification handler failed: %s", event_name)

        task = asyncio.ensure_future(_run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


def _name(name: Union[EventType, str]) -> str:
    return name.value if isinstance(name, EventType) else str(name)
