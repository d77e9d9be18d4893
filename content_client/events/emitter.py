"""
Event emitter using Redis pub/sub.

Publishes session lifecycle events so other processes sharing the same
storage (for instance a second window of the client) can react to them.
"""
import logging

from redis.asyncio import Redis

from content_client.events.event_schemas import EventType
from content_client.redis_client import get_redis
from content_client.settings import settings

logger = logging.getLogger(__name__)


async def emit_event(event: EventType, r: Redis | None = None) -> bool:
    """
    Publish an event on the session events channel.

    Args:
        event: Event object (must be a subclass of BaseEvent)
        r: Redis client, the shared connection is used when omitted

    Returns:
        True if the event was published, False otherwise

    Note:
        Failures are logged and swallowed. Publishing is a notification, a
        broken channel must not block a login or a logout.
    """
    if not settings.SESSION_EVENTS_ENABLED:
        return False
    try:
        redis = await get_redis(r)
        payload = event.model_dump_json()
        subscribers = await redis.publish(settings.SESSION_EVENTS_CHANNEL, payload)
        logger.info(
            f"Emitted event: {event.event} to {subscribers} subscriber(s) "
            f"(namespace: {event.namespace})"
        )
        return True
    except Exception as e:
        logger.warning(
            f"Failed to emit event: {event.event} (namespace: {event.namespace}): {e}"
        )
        return False
