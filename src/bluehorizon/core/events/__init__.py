"""
Blue Horizon Event System

Usage:
    from bluehorizon.core.events import Notifier, EventType

    notifier = Notifier()
    notifier.subscribe(EventType.TIMELINE_UPDATED, render_timeline)
    notifier.publish(EventType.TIMELINE_UPDATED, snapshot)
"""

from .taxonomy import EventType, ALL_EVENT_TYPES, validate_event_type
from .models import Notification
from .notifier import Notifier, Handler

__all__ = [
    "EventType",
    "ALL_EVENT_TYPES",
    "validate_event_type",
    "Notification",
    "Notifier",
    "Handler",
]
