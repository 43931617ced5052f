"""Background workers."""

from .scheduler import Scheduler, DEFAULT_SWEEP_INTERVAL, DEFAULT_UNREAD_POLL_INTERVAL

__all__ = [
    "Scheduler",
    "DEFAULT_SWEEP_INTERVAL",
    "DEFAULT_UNREAD_POLL_INTERVAL",
]
