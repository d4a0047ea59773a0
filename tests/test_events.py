"""Tests for the event registry and delivery history"""

from unittest.mock import AsyncMock

import pytest

from akinai_gateway.errors import InvalidEventPayloadError, UnknownEventTypeError
from akinai_gateway.models.webhook import (
    DeliveryAttempt,
    DeliveryOutcome,
    InventoryEventData,
    WebhookEnvelope,
    WebhookEventType,
)
from akinai_gateway.webhooks.events import (
    PAYLOAD_MODELS,
    build_event_data,
    event_label,
    list_event_types,
    parse_event_type,
)
from akinai_gateway.webhooks.recorder import InMemoryDeliveryRecorder, RedisDeliveryRecorder

from conftest import ORDER_PAYLOAD


def test_every_event_type_has_a_payload_model():
    assert set(PAYLOAD_MODELS) == set(WebhookEventType)


def test_parse_event_type():
    assert parse_event_type("quote.accepted") is WebhookEventType.QUOTE_ACCEPTED
    with pytest.raises(UnknownEventTypeError):
        parse_event_type("invoice.created")


def test_build_event_data_accepts_model_or_dict():
    inventory = InventoryEventData(
        product_id="p1",
        variant_id="v1",
        product_name="Mug",
        variant_name="Blue",
        sku="MUG-BL",
        current_stock=2,
        threshold=5,
    )

    assert build_event_data("inventory.low_stock", inventory)["sku"] == "MUG-BL"
    data = build_event_data(WebhookEventType.ORDER_SHIPPED, ORDER_PAYLOAD)
    assert data["items"][0]["product_name"] == "T-shirt"

    with pytest.raises(InvalidEventPayloadError):
        build_event_data("order.shipped", inventory)
    with pytest.raises(InvalidEventPayloadError):
        build_event_data("customer.created", {"customer_id": "c1", "type": "robot", "name": "x", "email": "x"})


def test_listing_and_labels():
    listing = list_event_types()

    assert [c["category"] for c in listing] == ["order", "quote", "product", "customer", "inventory"]
    assert sum(len(c["events"]) for c in listing) == len(WebhookEventType)
    assert event_label("inventory.out_of_stock") == "Out of stock"
    assert event_label("something.else") == "something.else"


def make_envelope():
    return WebhookEnvelope(event="order.created", organization_id="org_123", data={"order_id": "ord_1"})


@pytest.mark.asyncio
async def test_delivery_stats_and_history_order():
    recorder = InMemoryDeliveryRecorder()
    envelope = make_envelope()
    await recorder.record("sub_1", envelope, DeliveryOutcome(success=False, http_status=500, duration_ms=30), 1)
    await recorder.record("sub_1", envelope, DeliveryOutcome(success=True, http_status=200, duration_ms=10), 2)

    history = await recorder.list_for_subscription("sub_1")
    assert [a.attempt_number for a in history] == [2, 1]
    assert len(await recorder.list_for_subscription("sub_1", limit=1)) == 1

    stats = await recorder.stats("sub_1")
    assert stats.total_deliveries == 2
    assert stats.successful_deliveries == 1
    assert stats.failed_deliveries == 1
    assert stats.avg_duration_ms == 20
    assert stats.last_delivery_at == history[0].created_at

    assert (await recorder.stats("sub_unknown")).total_deliveries == 0


@pytest.mark.asyncio
async def test_redis_delivery_history_is_capped():
    client = AsyncMock()
    recorder = RedisDeliveryRecorder(client, history_limit=100)

    await recorder.record("sub_1", make_envelope(), DeliveryOutcome(success=True, http_status=200), 1)

    key, raw = client.lpush.await_args.args
    assert key == "akinai:webhook:deliveries:sub_1"
    assert DeliveryAttempt.model_validate_json(raw).attempt_number == 1
    client.ltrim.assert_awaited_once_with("akinai:webhook:deliveries:sub_1", 0, 99)

    client.lrange.return_value = [raw]
    history = await recorder.list_for_subscription("sub_1", limit=0)
    client.lrange.assert_awaited_with("akinai:webhook:deliveries:sub_1", 0, -1)
    assert history[0].succeeded
