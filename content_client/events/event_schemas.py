"""
Pydantic schemas for the session lifecycle events.

Each transition of a SessionManager produces one of these. They are handed to
in-process listeners (so views can reset their state) and published as JSON
on the Redis channel configured by SESSION_EVENTS_CHANNEL.
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

EndReason = Literal["logout", "expired", "rejected", "invalid", "account_deleted"]


class BaseEvent(BaseModel):
    """Base event schema with common fields."""

    event: str
    namespace: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SessionStartedEvent(BaseEvent):
    """Emitted after login or registration."""
    event: Literal["session.started"] = "session.started"
    user_id: Optional[str] = None
    username: Optional[str] = None


class SessionRestoredEvent(BaseEvent):
    """Emitted when a persisted session survives validation at start-up."""
    event: Literal["session.restored"] = "session.restored"
    user_id: Optional[str] = None
    username: Optional[str] = None


class SessionEndedEvent(BaseEvent):
    """Emitted whenever the session is destroyed, whatever the cause."""
    event: Literal["session.ended"] = "session.ended"
    user_id: Optional[str] = None
    reason: EndReason


class IdentityUpdatedEvent(BaseEvent):
    """Emitted when profile fields of the signed-in user change."""
    event: Literal["session.identity_updated"] = "session.identity_updated"
    user_id: Optional[str] = None
    changed_fields: list[str] = []


EventType = (
    SessionStartedEvent
    | SessionRestoredEvent
    | SessionEndedEvent
    | IdentityUpdatedEvent
)
