"""
Webhook event dispatch

`trigger` resolves the tenant's matching subscriptions and starts one
independent retry run per subscription as a background task. The caller
never waits for delivery.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Union
from pydantic import BaseModel

from akinai_gateway.models.webhook import (
    TEST_EVENT,
    PingEventData,
    SendTestResult,
    WebhookEnvelope,
    WebhookEventType,
    WebhookSubscription,
)
from akinai_gateway.webhooks.events import build_event_data, parse_event_type
from akinai_gateway.webhooks.recorder import DeliveryRecorder
from akinai_gateway.webhooks.retry import RetryScheduler
from akinai_gateway.webhooks.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)

TEST_MESSAGE = "This is a test webhook from Akinai"


class EventDispatcher:
    """Fan out domain events to webhook subscriptions"""

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        scheduler: RetryScheduler,
        recorder: DeliveryRecorder,
    ):
        self.subscriptions = subscriptions
        self.scheduler = scheduler
        self.recorder = recorder
        self._tasks: Set[asyncio.Task] = set()

    async def trigger(
        self,
        tenant_id: str,
        event_type: Union[str, WebhookEventType],
        payload: Union[BaseModel, Dict[str, Any]],
    ) -> int:
        """
        Trigger an event for a tenant

        Raises:
            UnknownEventTypeError: event type is not in the registry
            InvalidEventPayloadError: payload does not match the event's model

        Returns:
            Number of subscriptions a delivery run was started for
        """
        event = parse_event_type(event_type)
        data = build_event_data(event, payload)

        try:
            targets = await self.subscriptions.find_active(tenant_id, event.value)
        except Exception:
            logger.exception("Error fetching webhooks for tenant %s", tenant_id)
            return 0

        if not targets:
            return 0

        envelope = WebhookEnvelope(event=event.value, organization_id=tenant_id, data=data)
        for subscription in targets:
            self._spawn(subscription, envelope)

        logger.info(
            "Dispatching %s (%s) to %d webhook(s) for tenant %s",
            event.value,
            envelope.id,
            len(targets),
            tenant_id,
        )
        return len(targets)

    def _spawn(self, subscription: WebhookSubscription, envelope: WebhookEnvelope):
        task = asyncio.create_task(
            self.scheduler.run(subscription, envelope),
            name=f"webhook:{subscription.id}:{envelope.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Webhook delivery task %s crashed: %r", task.get_name(), error)

    async def send_test(self, subscription_id: str, tenant_id: Optional[str] = None) -> SendTestResult:
        """
        Deliver a single "test" event, without retries, and record it
        """
        subscription = await self.subscriptions.get(subscription_id)
        if subscription is None or (tenant_id is not None and subscription.tenant_id != tenant_id):
            return SendTestResult(success=False, message="Webhook not found")

        envelope = WebhookEnvelope(
            event=TEST_EVENT,
            organization_id=subscription.tenant_id,
            data=PingEventData(message=TEST_MESSAGE).model_dump(),
        )
        outcome = await self.scheduler.worker.attempt(
            subscription.url,
            envelope.to_json(),
            subscription.secret,
            subscription.timeout_ms,
        )
        await self.recorder.record(subscription.id, envelope, outcome, 1)

        if outcome.success:
            return SendTestResult(
                success=True,
                message=f"Webhook delivered successfully ({outcome.http_status})",
            )
        return SendTestResult(
            success=False,
            message=outcome.error_message or f"Failed with status {outcome.http_status}",
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for every running delivery to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self):
        """Cancel running deliveries; in-flight attempts are dropped unrecorded"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d pending webhook deliveries", len(tasks))
