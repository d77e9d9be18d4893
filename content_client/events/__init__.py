"""
Session lifecycle events.
"""
from content_client.events.emitter import emit_event
from content_client.events.event_schemas import (
    EventType,
    IdentityUpdatedEvent,
    SessionEndedEvent,
    SessionRestoredEvent,
    SessionStartedEvent,
)

__all__ = [
    "emit_event",
    "EventType",
    "IdentityUpdatedEvent",
    "SessionEndedEvent",
    "SessionRestoredEvent",
    "SessionStartedEvent",
]
