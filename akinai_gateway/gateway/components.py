"""Construction and wiring of the gateway's collaborators"""

import logging
from dataclasses import dataclass
from typing import Optional
import httpx
from redis.asyncio import Redis

from akinai_gateway.config import Settings
from akinai_gateway.rate_limiter.counters import InMemoryCounterStore, RedisCounterStore
from akinai_gateway.rate_limiter.limiter import RateLimiter
from akinai_gateway.storage.redis_client import close_client, create_redis_client
from akinai_gateway.tenancy.credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    RedisCredentialStore,
)
from akinai_gateway.tenancy.resolver import CredentialResolver
from akinai_gateway.usage.recorder import InMemoryUsageRecorder, RedisUsageRecorder, UsageRecorder
from akinai_gateway.webhooks.delivery import DeliveryWorker, create_http_client
from akinai_gateway.webhooks.dispatcher import EventDispatcher
from akinai_gateway.webhooks.recorder import (
    DeliveryRecorder,
    InMemoryDeliveryRecorder,
    RedisDeliveryRecorder,
)
from akinai_gateway.webhooks.retry import RetryScheduler
from akinai_gateway.webhooks.subscriptions import (
    InMemorySubscriptionStore,
    RedisSubscriptionStore,
    SubscriptionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class GatewayComponents:
    """Every component the gateway and the webhook engine need"""
    settings: Settings
    credentials: CredentialStore
    resolver: CredentialResolver
    rate_limiter: RateLimiter
    usage: UsageRecorder
    subscriptions: SubscriptionStore
    deliveries: DeliveryRecorder
    dispatcher: EventDispatcher
    http_client: httpx.AsyncClient
    redis: Optional[Redis] = None

    async def aclose(self):
        """Stop background work, then release connections"""
        await self.dispatcher.shutdown()
        await self.usage.drain()
        await self.http_client.aclose()
        await close_client(self.redis)


def build_components(
    settings: Settings,
    redis_client: Optional[Redis] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GatewayComponents:
    """
    Build components for the configured storage backend

    Raises:
        ConfigurationError: redis backend without a Redis URL
    """
    http_client = http_client or create_http_client()

    if settings.storage_backend == "redis":
        redis_client = redis_client or create_redis_client(settings)
        credentials = RedisCredentialStore(redis_client)
        counters = RedisCounterStore(redis_client)
        usage = RedisUsageRecorder(redis_client)
        subscriptions = RedisSubscriptionStore(redis_client)
        deliveries = RedisDeliveryRecorder(redis_client, settings.delivery_history_limit)
    else:
        logger.warning("Using in-memory storage; data is lost on restart")
        credentials = InMemoryCredentialStore()
        counters = InMemoryCounterStore()
        usage = InMemoryUsageRecorder()
        subscriptions = InMemorySubscriptionStore()
        deliveries = InMemoryDeliveryRecorder()

    worker = DeliveryWorker(http_client, user_agent=settings.webhook_user_agent)
    scheduler = RetryScheduler(worker, deliveries)

    return GatewayComponents(
        settings=settings,
        credentials=credentials,
        resolver=CredentialResolver(credentials, cache_ttl=settings.credential_cache_ttl),
        rate_limiter=RateLimiter(counters, settings.plan_limits),
        usage=usage,
        subscriptions=subscriptions,
        deliveries=deliveries,
        dispatcher=EventDispatcher(subscriptions, scheduler, deliveries),
        http_client=http_client,
        redis=redis_client,
    )
