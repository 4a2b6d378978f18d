"""
Domain event system.

Services publish events after commit; listeners subscribe by exact name or
wildcard pattern. Event names used by the engine live in `events.py`.
"""

from .bus import EventBus, matches
from .types import CallbackType, EventListener, EventPayload, ListenerPriority

__all__ = [
    "CallbackType",
    "EventBus",
    "EventListener",
    "EventPayload",
    "ListenerPriority",
    "matches",
]
