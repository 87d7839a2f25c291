"""
Animochi event system: in-process async pub/sub.
"""

from animochi.core.event.bus import (
    CallbackType,
    EventBus,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventListener",
    "EventPayload",
    "CallbackType",
    "ListenerPriority",
]
