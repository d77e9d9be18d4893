"""
Durable storage for the session record.

The three keys (``token``, ``user``, ``lastActive``) are written together in
one pipeline and removed together in one DELETE, so storage never holds a
token without its user or the other way round.
"""
import json
import logging

import pydantic
from redis.asyncio import Redis

from content_client.redis_client import get_redis
from content_client.schemas.session import SessionRecord
from content_client.schemas.user import Identity

logger = logging.getLogger(__name__)

TOKEN_FIELD = "token"
USER_FIELD = "user"
LAST_ACTIVE_FIELD = "lastActive"


def make_session_keys(namespace: str) -> tuple[str, str, str]:
    return (
        f"{namespace}:{TOKEN_FIELD}",
        f"{namespace}:{USER_FIELD}",
        f"{namespace}:{LAST_ACTIVE_FIELD}",
    )


async def save_session(
    record: SessionRecord, namespace: str, r: Redis | None = None
) -> None:
    r = await get_redis(r)
    token_key, user_key, last_active_key = make_session_keys(namespace)
    payload = json.dumps(record.identity.to_storage(), ensure_ascii=False)
    pipe = r.pipeline()
    pipe.set(token_key, record.credential)
    pipe.set(user_key, payload)
    pipe.set(last_active_key, str(record.last_active_ms))
    await pipe.execute()


async def load_session(namespace: str, r: Redis | None = None) -> SessionRecord | None:
    """
    Read the persisted record as a whole.

    Returns None when nothing is stored or when what is stored is not a
    complete, readable record.
    """
    r = await get_redis(r)
    token, user_raw, last_active_raw = await r.mget(list(make_session_keys(namespace)))
    if not token or not user_raw:
        if token or user_raw:
            logger.warning("Incomplete session record found under %r", namespace)
        return None
    try:
        identity = Identity.model_validate(json.loads(user_raw))
        last_active_ms = int(last_active_raw) if last_active_raw else None
    except (ValueError, pydantic.ValidationError):
        logger.warning("Unreadable session record found under %r", namespace)
        return None
    return SessionRecord(
        credential=token, identity=identity, last_active_ms=last_active_ms
    )


async def touch_last_active(
    namespace: str, last_active_ms: int, r: Redis | None = None
) -> bool:
    """
    Update only the activity timestamp of an existing record.

    Uses SET XX so a late write can never recreate ``lastActive`` after the
    record has been cleared.
    """
    r = await get_redis(r)
    _, _, last_active_key = make_session_keys(namespace)
    return bool(await r.set(last_active_key, str(last_active_ms), xx=True))


async def clear_session(namespace: str, r: Redis | None = None) -> None:
    r = await get_redis(r)
    await r.delete(*make_session_keys(namespace))
