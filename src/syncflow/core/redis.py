"""Optional Redis client.

Redis only carries derived state here (progress snapshots and their fan-out),
so every caller must cope with `get_redis()` returning None.
"""

from redis.asyncio import ConnectionPool, Redis
from redis.asyncio.client import PubSub

from src.syncflow.core.config import get_settings
from src.syncflow.core.logging import get_logger

logger = get_logger(__name__)

_pool: ConnectionPool | None = None
_redis: Redis | None = None
_connection_attempted: bool = False


async def get_redis() -> Redis | None:
    """Get the shared Redis client, connecting lazily on first use.

    A failed connection is not retried until `close_redis()` resets state.
    """
    global _pool, _redis, _connection_attempted

    if _redis is not None:
        return _redis
    if _connection_attempted:
        return None

    _connection_attempted = True
    settings = get_settings()
    if not settings.redis_url:
        logger.info("Redis not configured (REDIS_URL not set)")
        return None

    try:
        _pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=settings.redis_pool_size,
            decode_responses=True,
        )
        _redis = Redis(connection_pool=_pool)
        await _redis.ping()  # type: ignore[misc]
        logger.info("Redis connected", url=settings.redis_url.split("@")[-1])
        return _redis
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Progress mirroring disabled.")
        await _discard()
        return None


async def open_pubsub() -> PubSub | None:
    """Dedicated pub/sub handle, or None without Redis."""
    redis = await get_redis()
    if redis is None:
        return None
    return redis.pubsub(ignore_subscribe_messages=True)


async def _discard() -> None:
    global _pool, _redis
    if _redis:
        await _redis.aclose()
    if _pool:
        await _pool.disconnect()
    _redis = None
    _pool = None


async def close_redis() -> None:
    """Close the pool. Called during application and worker shutdown."""
    global _connection_attempted
    if _redis:
        logger.info("Redis connection closed")
    await _discard()
    _connection_attempted = False


def reset_redis_state() -> None:
    """Forget the client without closing it (tests swap event loops)."""
    global _pool, _redis, _connection_attempted
    _redis = None
    _pool = None
    _connection_attempted = False
