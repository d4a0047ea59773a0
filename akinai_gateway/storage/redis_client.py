"""
Redis connection helpers

A single client is created at startup and injected into every Redis-backed
component (credentials, rate-limit counters, subscriptions, delivery history,
usage log).
"""

import logging
from typing import Optional
import redis.asyncio as redis
from redis.asyncio import Redis

from akinai_gateway.config import Settings
from akinai_gateway.errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_PREFIX = "akinai"


def key(*parts: str) -> str:
    """Build a namespaced Redis key"""
    return ":".join((KEY_PREFIX,) + tuple(str(p) for p in parts))


def create_redis_client(settings: Settings) -> Redis:
    """
    Create the shared Redis client

    Raises:
        ConfigurationError: if no Redis URL is configured
    """
    if not settings.redis_url:
        raise ConfigurationError("REDIS_URL is not configured")

    return redis.from_url(settings.redis_url, decode_responses=True)


async def health_check(client: Optional[Redis]) -> bool:
    """Check Redis connection health"""
    if client is None:
        return False

    try:
        await client.ping()
        return True
    except Exception as e:
        logger.warning("Redis health check failed: %s", e)
        return False


async def close_client(client: Optional[Redis]):
    """Close the shared client"""
    if client is not None:
        await client.aclose()
