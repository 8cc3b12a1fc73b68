"""Redis-backed mirror of live execution progress.

Snapshots are cached so that late subscribers (or another process) can read
the latest state, and published so API processes can fan them out to
WebSocket clients. When Redis is unavailable every function degrades to a no-op.
"""

import json
from typing import Any
from uuid import UUID

from src.syncflow.core.config import get_settings
from src.syncflow.core.logging import get_logger
from src.syncflow.core.redis import get_redis

logger = get_logger(__name__)

PREFIX_EXECUTION = "workflow:execution"
PROGRESS_CHANNEL_PATTERN = f"{PREFIX_EXECUTION}:*:events"


def progress_key(execution_id: UUID | str) -> str:
    return f"{PREFIX_EXECUTION}:{execution_id}:progress"


def progress_channel(execution_id: UUID | str) -> str:
    return f"{PREFIX_EXECUTION}:{execution_id}:events"


async def cache_progress(execution_id: UUID | str, snapshot: dict[str, Any]) -> bool:
    """Store the latest snapshot for an execution.

    Returns:
        True if written to Redis, False if Redis unavailable
    """
    redis = await get_redis()
    if not redis:
        return False
    ttl = get_settings().progress_cache_ttl_seconds
    await redis.setex(progress_key(execution_id), ttl, json.dumps(snapshot, default=str))
    return True


async def get_cached_progress(execution_id: UUID | str) -> dict[str, Any] | None:
    """Read the latest snapshot, or None if missing or Redis unavailable."""
    redis = await get_redis()
    if not redis:
        return None
    raw = await redis.get(progress_key(execution_id))
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning(f"Discarding corrupt progress cache entry for {execution_id}")
        return None
    return data if isinstance(data, dict) else None


async def clear_progress(execution_id: UUID | str) -> None:
    redis = await get_redis()
    if redis:
        await redis.delete(progress_key(execution_id))


async def publish_progress(execution_id: UUID | str, message: dict[str, Any]) -> int:
    """Publish a progress message to other processes.

    Returns:
        Number of receivers reported by Redis (0 if Redis unavailable)
    """
    redis = await get_redis()
    if not redis:
        return 0
    receivers = await redis.publish(progress_channel(execution_id), json.dumps(message, default=str))
    return int(receivers)
