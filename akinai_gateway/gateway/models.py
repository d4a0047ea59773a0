"""Pydantic models for API requests"""

from typing import List, Optional
from pydantic import BaseModel, Field

from akinai_gateway.models.webhook import DEFAULT_MAX_ATTEMPTS, DEFAULT_TIMEOUT_MS


class WebhookCreateRequest(BaseModel):
    """Webhook creation request"""
    name: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., pattern=r"^https?://", description="Endpoint receiving POSTed events")
    events: List[str] = Field(..., min_length=1, description="Subscribed event types")
    max_attempts: int = Field(DEFAULT_MAX_ATTEMPTS, ge=1, le=10)
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, ge=1000, le=60000)


class WebhookUpdateRequest(BaseModel):
    """Partial webhook update; omitted fields are left unchanged"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    url: Optional[str] = Field(None, pattern=r"^https?://")
    events: Optional[List[str]] = Field(None, min_length=1)
    active: Optional[bool] = None
    max_attempts: Optional[int] = Field(None, ge=1, le=10)
    timeout_ms: Optional[int] = Field(None, ge=1000, le=60000)
