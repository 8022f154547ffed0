"""
Redis client singleton for live notification delivery.

Notifications are pushed to per-user pub/sub channels
(``<NOTIFICATION_CHANNEL_PREFIX>:<user_id>``) that the realtime gateway
subscribes to on behalf of connected clients. Delivery is fire-and-forget:
a user who is not connected simply misses the live push and reads the
persisted notification later.
"""

import json
import logging
from functools import lru_cache
from typing import Any
from uuid import UUID

import redis.asyncio as redis
from redis import ConnectionError as RedisConnectionError

from shared.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_redis_client() -> "redis.Redis[str]":
    """
    Get cached Redis client instance.

    - Connection pooling (max 20 connections)
    - Automatic retry on timeout for transient failures
    - Health check pings every 30 seconds

    Returns:
        Redis async client configured with connection pool and retry logic
    """
    settings = get_settings()

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )

        logger.info(
            f"Redis client initialized: {settings.REDIS_URL} "
            f"(max_connections=20, retry_on_timeout=True, health_check_interval=30s)"
        )
        return client

    except RedisConnectionError as e:
        logger.error(
            f"Redis connection failed: {e}. Live notifications unavailable.",
            exc_info=True,
        )
        raise


def user_channel(user_id: UUID | str) -> str:
    """Pub/sub channel a user's live notifications are published to."""
    return f"{get_settings().NOTIFICATION_CHANNEL_PREFIX}:{user_id}"


async def publish_to_channel(channel: str, message: dict[str, Any]) -> int:
    """
    Publish a message to a Redis pub/sub channel.

    Args:
        channel: Channel name
        message: Message dict to publish (JSON-serialized; non-JSON values such
            as UUIDs and datetimes are rendered with str())

    Returns:
        Number of subscribers that received the message

    Raises:
        RedisConnectionError: If Redis is unreachable
    """
    client = get_redis_client()
    json_message = json.dumps(message, default=str)

    try:
        receivers = await client.publish(channel, json_message)
    except RedisConnectionError as e:
        logger.error(f"Redis connection error while publishing to '{channel}': {e}")
        raise

    logger.debug(f"Message published to channel '{channel}': {json_message[:100]}")
    return receivers


async def close_redis_client() -> None:
    """
    Close Redis connection gracefully.

    Note:
        Should be called during application shutdown.
    """
    try:
        client = get_redis_client()
        await client.aclose()
        logger.info("Redis client closed")
    except Exception as e:
        logger.warning(f"Error closing Redis client: {e}")
