import logging

from redis.asyncio import Redis, from_url

from content_client.settings import settings

logger = logging.getLogger(__name__)

_redis: Redis | None = None


def _build_redis_url() -> str:
    """Build a Redis URL from configured settings with sensible defaults."""
    if settings.REDIS_URL:
        return str(settings.REDIS_URL)

    host = settings.REDIS_HOST or "localhost"
    port = settings.REDIS_PORT or 6379
    db = settings.REDIS_DB or 0
    return f"redis://{host}:{port}/{db}"


REDIS_URL = _build_redis_url()


def create_redis() -> Redis:
    """Open a connection of its own, the caller closes it."""
    return from_url(
        REDIS_URL,
        decode_responses=True,
    )


async def init_redis() -> Redis:
    """Return the shared session-storage connection, creating it lazily."""
    global _redis
    if _redis is None:
        _redis = create_redis()
        logger.debug("Session storage connection created")
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def get_redis(r: Redis | None = None) -> Redis:
    """Prefer an explicitly supplied client, fall back to the shared one."""
    if r is not None:
        return r
    return await init_redis()
