"""Shared fixtures"""

import httpx
import pytest

from akinai_gateway.models.webhook import WebhookSubscription, WebhookEventType
from akinai_gateway.webhooks.delivery import DeliveryWorker
from akinai_gateway.webhooks.dispatcher import EventDispatcher
from akinai_gateway.webhooks.recorder import InMemoryDeliveryRecorder
from akinai_gateway.webhooks.retry import RetryScheduler
from akinai_gateway.webhooks.signing import generate_secret
from akinai_gateway.webhooks.subscriptions import InMemorySubscriptionStore

ORDER_PAYLOAD = {
    "order_id": "ord_1",
    "order_number": "A-1001",
    "customer_id": None,
    "customer_name": "Yamada Taro",
    "customer_email": "taro@example.com",
    "status": "paid",
    "payment_status": "succeeded",
    "total": 4500,
    "items": [
        {"product_id": "prod-1", "variant_id": "var-1", "product_name": "T-shirt", "quantity": 1, "unit_price": 4500},
    ],
}


class FakeSleep:
    """Records requested backoff delays without waiting"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)


class Endpoint:
    """Scripted webhook receiver for httpx.MockTransport"""

    def __init__(self, statuses=None, body="ok"):
        self.statuses = list(statuses or [200])
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.statuses) - 1)
        return httpx.Response(self.statuses[index], text=self.body)


def make_subscription(tenant_id="org_123", events=(WebhookEventType.ORDER_CREATED.value,), **overrides):
    fields = dict(
        tenant_id=tenant_id,
        name="orders",
        url="https://hooks.example.com/orders",
        secret=generate_secret(),
        event_types=set(events),
        max_attempts=3,
        timeout_ms=30000,
    )
    fields.update(overrides)
    return WebhookSubscription(**fields)


def make_engine(endpoint):
    """Dispatcher wired to in-memory stores and a mock transport"""
    client = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
    store = InMemorySubscriptionStore()
    recorder = InMemoryDeliveryRecorder()
    sleep = FakeSleep()
    scheduler = RetryScheduler(DeliveryWorker(client), recorder, sleep=sleep)
    dispatcher = EventDispatcher(store, scheduler, recorder)
    return dispatcher, store, recorder, sleep


@pytest.fixture
def fake_sleep():
    return FakeSleep()
