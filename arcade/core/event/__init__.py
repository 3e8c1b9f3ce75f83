"""In-process domain event bus."""

from arcade.core.event.bus import (
    EventBus,
    EventListener,
    EventPayload,
    ListenerFailure,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventListener",
    "EventPayload",
    "ListenerFailure",
    "ListenerPriority",
]
