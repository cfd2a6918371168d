"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator
from typing import Any

from senpai.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[Any, None]:
    """Yield the Redis client, or None when push delivery is not configured."""
    yield get_optional_redis()
