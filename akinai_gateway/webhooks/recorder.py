"""Webhook delivery history"""

import logging
from collections import defaultdict
from typing import Dict, List
from redis.asyncio import Redis
from redis.exceptions import RedisError

from akinai_gateway.errors import PersistenceError
from akinai_gateway.models.webhook import (
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryStats,
    WebhookEnvelope,
    utcnow,
)
from akinai_gateway.storage.redis_client import key

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1000


def build_attempt(
    subscription_id: str,
    envelope: WebhookEnvelope,
    outcome: DeliveryOutcome,
    attempt_number: int,
) -> DeliveryAttempt:
    return DeliveryAttempt(
        subscription_id=subscription_id,
        event_type=envelope.event,
        envelope_id=envelope.id,
        payload=envelope.model_dump(mode="json"),
        attempt_number=attempt_number,
        http_status=outcome.http_status,
        response_excerpt=outcome.response_excerpt,
        delivered_at=utcnow() if outcome.success else None,
        error_message=outcome.error_message,
        duration_ms=outcome.duration_ms,
    )


class DeliveryRecorder:
    """
    Append-only attempt history

    `record` never raises. A failing backend is logged and the attempt is
    dropped from history; delivery itself carries on.
    """

    async def _append(self, attempt: DeliveryAttempt):
        raise NotImplementedError

    async def list_for_subscription(self, subscription_id: str, limit: int = 50) -> List[DeliveryAttempt]:
        """Most recent attempts first"""
        raise NotImplementedError

    async def record(
        self,
        subscription_id: str,
        envelope: WebhookEnvelope,
        outcome: DeliveryOutcome,
        attempt_number: int,
    ) -> None:
        try:
            attempt = build_attempt(subscription_id, envelope, outcome, attempt_number)
            await self._append(attempt)
        except Exception as e:
            logger.error(
                "Failed to log webhook delivery %s attempt %d for %s: %s",
                envelope.id,
                attempt_number,
                subscription_id,
                e,
            )

    async def stats(self, subscription_id: str) -> DeliveryStats:
        attempts = await self.list_for_subscription(subscription_id, limit=0)
        if not attempts:
            return DeliveryStats()

        successful = sum(1 for a in attempts if a.succeeded)
        return DeliveryStats(
            total_deliveries=len(attempts),
            successful_deliveries=successful,
            failed_deliveries=len(attempts) - successful,
            avg_duration_ms=round(sum(a.duration_ms for a in attempts) / len(attempts), 2),
            last_delivery_at=max(a.created_at for a in attempts),
        )


class RedisDeliveryRecorder(DeliveryRecorder):
    """Capped list of attempts per subscription, newest at the head"""

    def __init__(self, client: Redis, history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.client = client
        self.history_limit = history_limit

    @staticmethod
    def _key(subscription_id: str) -> str:
        return key("webhook", "deliveries", subscription_id)

    async def _append(self, attempt: DeliveryAttempt):
        history_key = self._key(attempt.subscription_id)
        try:
            await self.client.lpush(history_key, attempt.model_dump_json())
            await self.client.ltrim(history_key, 0, self.history_limit - 1)
        except RedisError as e:
            raise PersistenceError(f"delivery history write failed: {e}") from e

    async def list_for_subscription(self, subscription_id: str, limit: int = 50) -> List[DeliveryAttempt]:
        end = limit - 1 if limit > 0 else -1
        rows = await self.client.lrange(self._key(subscription_id), 0, end)
        return [DeliveryAttempt.model_validate_json(row) for row in rows]


class InMemoryDeliveryRecorder(DeliveryRecorder):
    """Process-local attempt history for development and tests"""

    def __init__(self):
        self.attempts: Dict[str, List[DeliveryAttempt]] = defaultdict(list)

    async def _append(self, attempt: DeliveryAttempt):
        self.attempts[attempt.subscription_id].append(attempt)

    async def list_for_subscription(self, subscription_id: str, limit: int = 50) -> List[DeliveryAttempt]:
        history = list(reversed(self.attempts.get(subscription_id, [])))
        return history[:limit] if limit > 0 else history

    def all_attempts(self) -> List[DeliveryAttempt]:
        return [a for history in self.attempts.values() for a in history]
