"""
Blue Horizon Event Taxonomy

Names of the notifications published to observers (the GUI shell).
Names are kebab-case and carry no domain prefix, matching what the
shell listens for.
"""

from enum import Enum
from typing import Dict


class EventType(str, Enum):
    """Notifications published by the outbox, the read caches and the scheduler."""
    MUTATION_QUEUED = "mutation-queued"
    MUTATION_SENT = "mutation-sent"
    TIMELINE_UPDATED = "timeline-updated"
    NOTIFICATIONS_UPDATED = "notifications-updated"
    PROFILE_UPDATED = "profile-updated"
    UNREAD_COUNT = "unread-count"


ALL_EVENT_TYPES: Dict[str, str] = {e.value: e.name for e in EventType}


def validate_event_type(event_type: str) -> bool:
    """Check if event type is valid."""
    return event_type in ALL_EVENT_TYPES
