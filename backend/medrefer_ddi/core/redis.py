"""Redis connection management and alert fan-out."""

import json
from typing import Any

from redis import Redis

from medrefer_ddi.core.config import settings

# Lazily created on first use so the engine runs without Redis
_redis_client: Redis | None = None


def get_redis() -> Redis:
    """Get or create the shared Redis client.

    Returns:
        Redis client configured from ``settings.redis_url``.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


def publish_event(channel: str, payload: dict[str, Any]) -> int:
    """Publish a JSON payload on a Redis pub/sub channel.

    Args:
        channel: Channel name.
        payload: JSON-serializable message body.

    Returns:
        Number of Redis subscribers that received the message.
    """
    return int(get_redis().publish(channel, json.dumps(payload, default=str)))


def close_redis() -> None:
    """Close the Redis client during application shutdown."""
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


def ping_redis() -> bool:
    """Return True if Redis answers a ping."""
    try:
        return bool(get_redis().ping())
    except Exception:
        return False
