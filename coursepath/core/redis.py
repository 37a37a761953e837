# ruff: noqa: PLW0603
"""Optional Redis client.

CoursePath only uses Redis to serialize certificate issuance for one learner
and course. The service runs without it; the certificates table's
``IF NOT EXISTS`` insert still guarantees a single certificate.
"""

from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import RedisError

from coursepath.config.settings import Settings, get_settings
from coursepath.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis(settings: Settings | None = None) -> redis.Redis:
    """Create the shared client and check it answers.

    Raises:
        RedisError: Redis did not answer the initial ping
    """
    global _redis_client

    settings = settings or get_settings()
    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )
    try:
        await client.ping()
    except RedisError:
        await client.aclose()
        raise

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url)
    return client


async def shutdown_redis() -> None:
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("redis_disconnected")


def get_redis() -> redis.Redis | None:
    return _redis_client


async def redis_available() -> bool:
    """True when the shared client exists and answers a ping."""
    if _redis_client is None:
        return False
    try:
        return bool(await _redis_client.ping())
    except RedisError as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


def certificate_lock_key(user_id: UUID, course_id: UUID) -> str:
    """Lock name serializing certificate issuance for one learner and course."""
    return f"locks:certificate:{user_id}:{course_id}"
