"""Redis connection pool used for realtime notification push."""

from __future__ import annotations

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


def user_channel(user_id: object) -> str:
    """Pub/sub channel a user's client subscribes to."""
    return f"ws:user:{user_id}"


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_optional_redis() -> redis.Redis | None:
    """Get the Redis client, or None when push delivery is not configured."""
    return _pool


async def publish_to_user(client: Any, user_id: object, event: str, data: dict[str, Any]) -> bool:
    """Publish an event to a user's channel. Returns False if delivery failed."""
    payload = json.dumps({"event": event, "data": data}, default=str)
    try:
        await client.publish(user_channel(user_id), payload)
    except Exception:
        logger.warning("Failed to push %s to user %s", event, user_id, exc_info=True)
        return False
    return True
