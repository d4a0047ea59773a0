"""Webhook event registry

Every triggerable event type is bound to one payload model. Anything outside
the registry, including the manual "test" event, is rejected at dispatch.
"""

from typing import Any, Dict, List, Type, Union
from pydantic import BaseModel, ValidationError

from akinai_gateway.errors import InvalidEventPayloadError, UnknownEventTypeError
from akinai_gateway.models.webhook import (
    CustomerEventData,
    InventoryEventData,
    OrderEventData,
    ProductEventData,
    QuoteEventData,
    WebhookEventType,
)

E = WebhookEventType

EVENT_CATEGORIES: Dict[str, Dict[str, Any]] = {
    "order": {
        "label": "Orders",
        "payload": OrderEventData,
        "events": {
            E.ORDER_CREATED: "Order created",
            E.ORDER_UPDATED: "Order updated",
            E.ORDER_SHIPPED: "Order shipped",
            E.ORDER_DELIVERED: "Order delivered",
            E.ORDER_CANCELLED: "Order cancelled",
        },
    },
    "quote": {
        "label": "Quotes",
        "payload": QuoteEventData,
        "events": {
            E.QUOTE_CREATED: "Quote created",
            E.QUOTE_SENT: "Quote sent",
            E.QUOTE_ACCEPTED: "Quote accepted",
            E.QUOTE_REJECTED: "Quote rejected",
            E.QUOTE_EXPIRED: "Quote expired",
        },
    },
    "product": {
        "label": "Products",
        "payload": ProductEventData,
        "events": {
            E.PRODUCT_CREATED: "Product created",
            E.PRODUCT_UPDATED: "Product updated",
            E.PRODUCT_DELETED: "Product deleted",
            E.PRODUCT_PUBLISHED: "Product published",
        },
    },
    "customer": {
        "label": "Customers",
        "payload": CustomerEventData,
        "events": {
            E.CUSTOMER_CREATED: "Customer created",
            E.CUSTOMER_UPDATED: "Customer updated",
        },
    },
    "inventory": {
        "label": "Inventory",
        "payload": InventoryEventData,
        "events": {
            E.INVENTORY_LOW_STOCK: "Low stock",
            E.INVENTORY_OUT_OF_STOCK: "Out of stock",
            E.INVENTORY_UPDATED: "Inventory updated",
        },
    },
}

PAYLOAD_MODELS: Dict[WebhookEventType, Type[BaseModel]] = {
    event_type: category["payload"]
    for category in EVENT_CATEGORIES.values()
    for event_type in category["events"]
}


def parse_event_type(value: Union[str, WebhookEventType]) -> WebhookEventType:
    """Raises UnknownEventTypeError for anything outside the registry"""
    try:
        return WebhookEventType(value)
    except ValueError:
        raise UnknownEventTypeError(f"Unknown webhook event type: {value!r}") from None


def build_event_data(
    event_type: Union[str, WebhookEventType],
    payload: Union[BaseModel, Dict[str, Any]],
) -> Dict[str, Any]:
    """
    Validate a payload against the model registered for its event type

    Returns:
        JSON-ready dict for the envelope `data` field
    """
    event_type = parse_event_type(event_type)
    model = PAYLOAD_MODELS[event_type]

    if isinstance(payload, BaseModel):
        if not isinstance(payload, model):
            raise InvalidEventPayloadError(
                f"{event_type.value} expects {model.__name__}, got {type(payload).__name__}"
            )
        return payload.model_dump(mode="json")

    try:
        return model.model_validate(payload).model_dump(mode="json")
    except ValidationError as e:
        raise InvalidEventPayloadError(f"Invalid payload for {event_type.value}: {e}") from e


def event_label(event_type: str) -> str:
    for category in EVENT_CATEGORIES.values():
        for candidate, label in category["events"].items():
            if candidate.value == event_type:
                return label
    return event_type


def list_event_types() -> List[Dict[str, Any]]:
    """Registry grouped by category, for clients building subscription forms"""
    return [
        {
            "category": name,
            "label": category["label"],
            "events": [
                {"type": event_type.value, "label": label}
                for event_type, label in category["events"].items()
            ],
        }
        for name, category in EVENT_CATEGORIES.items()
    ]
