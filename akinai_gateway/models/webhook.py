"""Webhook models"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Set
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_TIMEOUT_MS = 30000
TEST_EVENT = "test"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_ms(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class WebhookEventType(str, Enum):
    """Webhook event types"""
    ORDER_CREATED = "order.created"
    ORDER_UPDATED = "order.updated"
    ORDER_SHIPPED = "order.shipped"
    ORDER_DELIVERED = "order.delivered"
    ORDER_CANCELLED = "order.cancelled"

    QUOTE_CREATED = "quote.created"
    QUOTE_SENT = "quote.sent"
    QUOTE_ACCEPTED = "quote.accepted"
    QUOTE_REJECTED = "quote.rejected"
    QUOTE_EXPIRED = "quote.expired"

    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    PRODUCT_DELETED = "product.deleted"
    PRODUCT_PUBLISHED = "product.published"

    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"

    INVENTORY_LOW_STOCK = "inventory.low_stock"
    INVENTORY_OUT_OF_STOCK = "inventory.out_of_stock"
    INVENTORY_UPDATED = "inventory.updated"


# Event payloads

class LineItem(BaseModel):
    product_id: Optional[str] = None
    variant_id: Optional[str] = None
    product_name: str
    quantity: int = Field(..., ge=0)
    unit_price: float


class OrderEventData(BaseModel):
    """Payload for order.* events"""
    order_id: str
    order_number: str
    customer_id: Optional[str] = None
    customer_name: str
    customer_email: str
    status: str
    payment_status: str
    total: float
    items: List[LineItem] = Field(default_factory=list)


class QuoteEventData(BaseModel):
    """Payload for quote.* events"""
    quote_id: str
    quote_number: str
    customer_id: Optional[str] = None
    customer_name: str
    status: str
    total: float
    valid_until: str
    items: List[LineItem] = Field(default_factory=list)


class ProductVariantData(BaseModel):
    variant_id: str
    name: str
    sku: str
    price: float
    stock: int


class ProductEventData(BaseModel):
    """Payload for product.* events"""
    product_id: str
    name: str
    slug: str
    status: str
    variants: List[ProductVariantData] = Field(default_factory=list)


class CustomerEventData(BaseModel):
    """Payload for customer.* events"""
    customer_id: str
    type: str = Field(..., pattern="^(individual|business)$")
    name: str
    email: str
    company: Optional[str] = None


class InventoryEventData(BaseModel):
    """Payload for inventory.* events"""
    product_id: str
    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    current_stock: int
    threshold: int


class PingEventData(BaseModel):
    """Payload of the manual test event"""
    message: str


# Subscriptions

class WebhookSubscription(BaseModel):
    """Webhook subscription, including its signing secret"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tenant_id: str
    name: str = ""
    url: str
    secret: str
    event_types: Set[str] = Field(default_factory=set)
    active: bool = True
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, ge=1000, le=60000)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def subscribes_to(self, event_type: str) -> bool:
        return self.active and event_type in self.event_types

    def view(self) -> "WebhookSubscriptionView":
        return WebhookSubscriptionView(**self.model_dump(exclude={"secret"}))


class WebhookSubscriptionView(BaseModel):
    """Subscription as returned by read endpoints (secret omitted)"""
    id: str
    tenant_id: str
    name: str
    url: str
    event_types: List[str]
    active: bool
    max_attempts: int
    timeout_ms: int
    created_at: datetime
    updated_at: datetime

    @field_validator("event_types", mode="before")
    @classmethod
    def _sorted_event_types(cls, value: Any) -> Any:
        if isinstance(value, (set, frozenset)):
            return sorted(value)
        return value


# Delivery

class WebhookEnvelope(BaseModel):
    """
    Envelope sent to subscribers

    One envelope is built per triggering event and reused for every
    subscription and every attempt, so receivers can deduplicate on `id`.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event: str
    created_at: str = Field(default_factory=lambda: isoformat_ms(utcnow()))
    organization_id: str
    data: Dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Compact JSON body, the exact bytes that get signed"""
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"), ensure_ascii=False)


class DeliveryOutcome(BaseModel):
    """Result of a single HTTP delivery attempt"""
    success: bool
    http_status: Optional[int] = None
    response_excerpt: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: int = 0


class DeliveryAttempt(BaseModel):
    """Append-only record of one delivery attempt"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    subscription_id: str
    event_type: str
    envelope_id: str
    payload: Dict[str, Any]
    attempt_number: int = Field(..., ge=1)
    http_status: Optional[int] = None
    response_excerpt: Optional[str] = None
    delivered_at: Optional[datetime] = None
    error_message: Optional[str] = None
    duration_ms: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def succeeded(self) -> bool:
        return self.delivered_at is not None


class DeliveryStats(BaseModel):
    """Aggregate delivery statistics for a subscription"""
    total_deliveries: int = 0
    successful_deliveries: int = 0
    failed_deliveries: int = 0
    avg_duration_ms: float = 0.0
    last_delivery_at: Optional[datetime] = None


class SendTestResult(BaseModel):
    success: bool
    message: str
