"""Retry scheduling for one subscription and one event"""

import asyncio
import logging
from typing import Awaitable, Callable

from akinai_gateway.models.webhook import WebhookEnvelope, WebhookSubscription
from akinai_gateway.webhooks.delivery import DeliveryWorker
from akinai_gateway.webhooks.recorder import DeliveryRecorder

logger = logging.getLogger(__name__)


def backoff_seconds(attempt: int) -> float:
    """1s, 2s, 4s, ... after attempts 1, 2, 3, ..."""
    return float(2 ** (attempt - 1))


class RetryScheduler:
    """Drives sequential delivery attempts with exponential backoff"""

    def __init__(
        self,
        worker: DeliveryWorker,
        recorder: DeliveryRecorder,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.worker = worker
        self.recorder = recorder
        self.sleep = sleep

    async def run(self, subscription: WebhookSubscription, envelope: WebhookEnvelope) -> bool:
        """
        Deliver until success or until `max_attempts` is exhausted

        Every attempt is recorded before deciding whether to retry. The
        subscription itself is never deactivated.

        Returns:
            True if an attempt succeeded
        """
        body = envelope.to_json()

        for attempt in range(1, subscription.max_attempts + 1):
            outcome = await self.worker.attempt(
                subscription.url,
                body,
                subscription.secret,
                subscription.timeout_ms,
            )
            await self.recorder.record(subscription.id, envelope, outcome, attempt)

            if outcome.success:
                logger.debug(
                    "Webhook %s delivered to %s on attempt %d",
                    envelope.id,
                    subscription.id,
                    attempt,
                )
                return True

            logger.debug(
                "Webhook %s attempt %d to %s failed: %s",
                envelope.id,
                attempt,
                subscription.id,
                outcome.error_message or f"status {outcome.http_status}",
            )
            if attempt < subscription.max_attempts:
                await self.sleep(backoff_seconds(attempt))

        logger.warning(
            "Webhook %s delivery to %s failed after %d attempts",
            envelope.id,
            subscription.id,
            subscription.max_attempts,
        )
        return False
