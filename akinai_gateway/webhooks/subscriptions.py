"""Webhook subscription storage and management"""

import logging
from typing import Any, Dict, Iterable, List, Optional
from redis.asyncio import Redis

from akinai_gateway.errors import SubscriptionNotFoundError
from akinai_gateway.models.webhook import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_TIMEOUT_MS,
    WebhookSubscription,
    utcnow,
)
from akinai_gateway.storage.redis_client import key
from akinai_gateway.webhooks.events import parse_event_type
from akinai_gateway.webhooks.signing import generate_secret

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "url", "event_types", "active", "max_attempts", "timeout_ms"}


class SubscriptionStore:
    """
    Subscription persistence

    Backends implement `_save`, `_load`, `_load_for_tenant` and `_remove`;
    the management operations are shared.
    """

    async def _save(self, subscription: WebhookSubscription):
        raise NotImplementedError

    async def _load(self, subscription_id: str) -> Optional[WebhookSubscription]:
        raise NotImplementedError

    async def _load_for_tenant(self, tenant_id: str) -> List[WebhookSubscription]:
        raise NotImplementedError

    async def _remove(self, subscription: WebhookSubscription):
        raise NotImplementedError

    @staticmethod
    def _event_types(values: Iterable[str]) -> set:
        return {parse_event_type(value).value for value in values}

    async def create(
        self,
        tenant_id: str,
        name: str,
        url: str,
        event_types: Iterable[str],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> WebhookSubscription:
        """Create an active subscription with a freshly generated secret"""
        subscription = WebhookSubscription(
            tenant_id=tenant_id,
            name=name,
            url=url,
            secret=generate_secret(),
            event_types=self._event_types(event_types),
            max_attempts=max_attempts,
            timeout_ms=timeout_ms,
        )
        await self._save(subscription)
        logger.info("Created webhook %s for tenant %s", subscription.id, tenant_id)
        return subscription

    async def get(self, subscription_id: str) -> Optional[WebhookSubscription]:
        return await self._load(subscription_id)

    async def require(self, subscription_id: str, tenant_id: Optional[str] = None) -> WebhookSubscription:
        """Load a subscription, optionally scoped to a tenant"""
        subscription = await self._load(subscription_id)
        if subscription is None or (tenant_id is not None and subscription.tenant_id != tenant_id):
            raise SubscriptionNotFoundError(subscription_id)
        return subscription

    async def list_for_tenant(self, tenant_id: str) -> List[WebhookSubscription]:
        """Tenant's subscriptions, newest first"""
        subscriptions = await self._load_for_tenant(tenant_id)
        return sorted(subscriptions, key=lambda s: s.created_at, reverse=True)

    async def find_active(self, tenant_id: str, event_type: str) -> List[WebhookSubscription]:
        """Active subscriptions of the tenant that include the event type"""
        return [s for s in await self._load_for_tenant(tenant_id) if s.subscribes_to(event_type)]

    async def update(self, subscription_id: str, **changes: Any) -> WebhookSubscription:
        subscription = await self.require(subscription_id)

        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        updates: Dict[str, Any] = {k: v for k, v in changes.items() if v is not None}
        if "event_types" in updates:
            updates["event_types"] = self._event_types(updates["event_types"])

        updated = WebhookSubscription.model_validate({
            **subscription.model_dump(),
            **updates,
            "updated_at": utcnow(),
        })
        await self._save(updated)
        return updated

    async def delete(self, subscription_id: str) -> bool:
        subscription = await self._load(subscription_id)
        if subscription is None:
            return False
        await self._remove(subscription)
        logger.info("Deleted webhook %s", subscription_id)
        return True

    async def regenerate_secret(self, subscription_id: str) -> str:
        """Replace the signing secret and return the new one"""
        subscription = await self.require(subscription_id)
        secret = generate_secret()
        await self._save(subscription.model_copy(update={"secret": secret, "updated_at": utcnow()}))
        return secret


class RedisSubscriptionStore(SubscriptionStore):
    """Subscriptions as JSON documents plus a per-tenant id set"""

    def __init__(self, client: Redis):
        self.client = client

    @staticmethod
    def _doc_key(subscription_id: str) -> str:
        return key("webhook", subscription_id)

    @staticmethod
    def _tenant_key(tenant_id: str) -> str:
        return key("webhooks", "tenant", tenant_id)

    async def _save(self, subscription: WebhookSubscription):
        await self.client.set(self._doc_key(subscription.id), subscription.model_dump_json())
        await self.client.sadd(self._tenant_key(subscription.tenant_id), subscription.id)

    async def _load(self, subscription_id: str) -> Optional[WebhookSubscription]:
        raw = await self.client.get(self._doc_key(subscription_id))
        if not raw:
            return None
        return WebhookSubscription.model_validate_json(raw)

    async def _load_for_tenant(self, tenant_id: str) -> List[WebhookSubscription]:
        ids = sorted(await self.client.smembers(self._tenant_key(tenant_id)))
        if not ids:
            return []
        docs = await self.client.mget([self._doc_key(i) for i in ids])
        return [WebhookSubscription.model_validate_json(doc) for doc in docs if doc]

    async def _remove(self, subscription: WebhookSubscription):
        await self.client.delete(self._doc_key(subscription.id))
        await self.client.srem(self._tenant_key(subscription.tenant_id), subscription.id)


class InMemorySubscriptionStore(SubscriptionStore):
    """Process-local subscriptions for development and tests"""

    def __init__(self):
        self.subscriptions: Dict[str, WebhookSubscription] = {}

    async def _save(self, subscription: WebhookSubscription):
        self.subscriptions[subscription.id] = subscription

    async def _load(self, subscription_id: str) -> Optional[WebhookSubscription]:
        return self.subscriptions.get(subscription_id)

    async def _load_for_tenant(self, tenant_id: str) -> List[WebhookSubscription]:
        return [s for s in self.subscriptions.values() if s.tenant_id == tenant_id]

    async def _remove(self, subscription: WebhookSubscription):
        self.subscriptions.pop(subscription.id, None)

    async def add(self, subscription: WebhookSubscription) -> WebhookSubscription:
        """Insert a prepared subscription as-is"""
        await self._save(subscription)
        return subscription
