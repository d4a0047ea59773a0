"""Public API routes for webhook management and usage"""

from fastapi import APIRouter, Depends, HTTPException, Query

from akinai_gateway.errors import SubscriptionNotFoundError
from akinai_gateway.gateway.components import GatewayComponents
from akinai_gateway.gateway.middleware import current_credential, request_components
from akinai_gateway.gateway.models import WebhookCreateRequest, WebhookUpdateRequest
from akinai_gateway.gateway.responses import api_success, api_success_paginated
from akinai_gateway.models.tenant import Credential
from akinai_gateway.models.webhook import WebhookSubscription
from akinai_gateway.webhooks.events import list_event_types

router = APIRouter(prefix="/api/v1", tags=["webhooks"])


async def _owned(
    components: GatewayComponents,
    webhook_id: str,
    credential: Credential,
) -> WebhookSubscription:
    try:
        return await components.subscriptions.require(webhook_id, credential.tenant_id)
    except SubscriptionNotFoundError:
        raise HTTPException(status_code=404, detail="Webhook not found") from None


@router.get("/webhooks")
async def list_webhooks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """List the tenant's webhooks"""
    subscriptions = await components.subscriptions.list_for_tenant(credential.tenant_id)
    start = (page - 1) * limit
    views = [s.view() for s in subscriptions[start:start + limit]]
    return api_success_paginated(views, page, limit, len(subscriptions))


@router.post("/webhooks")
async def create_webhook(
    body: WebhookCreateRequest,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Create a webhook; the response is the only place the secret is shown"""
    subscription = await components.subscriptions.create(
        credential.tenant_id,
        name=body.name,
        url=body.url,
        event_types=body.events,
        max_attempts=body.max_attempts,
        timeout_ms=body.timeout_ms,
    )
    return api_success({**subscription.view().model_dump(), "secret": subscription.secret}, status_code=201)


@router.get("/webhooks/{webhook_id}")
async def get_webhook(
    webhook_id: str,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Get a webhook"""
    subscription = await _owned(components, webhook_id, credential)
    return api_success(subscription.view())


@router.patch("/webhooks/{webhook_id}")
async def update_webhook(
    webhook_id: str,
    body: WebhookUpdateRequest,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Update a webhook"""
    await _owned(components, webhook_id, credential)
    changes = body.model_dump(exclude_unset=True)
    if "events" in changes:
        changes["event_types"] = changes.pop("events")
    updated = await components.subscriptions.update(webhook_id, **changes)
    return api_success(updated.view())


@router.delete("/webhooks/{webhook_id}")
async def delete_webhook(
    webhook_id: str,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Delete a webhook"""
    await _owned(components, webhook_id, credential)
    await components.subscriptions.delete(webhook_id)
    return api_success({"deleted": True})


@router.post("/webhooks/{webhook_id}/secret")
async def regenerate_secret(
    webhook_id: str,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Regenerate the signing secret"""
    await _owned(components, webhook_id, credential)
    secret = await components.subscriptions.regenerate_secret(webhook_id)
    return api_success({"secret": secret})


@router.post("/webhooks/{webhook_id}/test")
async def send_test_webhook(
    webhook_id: str,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Send a single test event"""
    result = await components.dispatcher.send_test(webhook_id, credential.tenant_id)
    if not result.success and result.message == "Webhook not found":
        raise HTTPException(status_code=404, detail=result.message)
    return api_success(result)


@router.get("/webhooks/{webhook_id}/deliveries")
async def list_deliveries(
    webhook_id: str,
    limit: int = Query(50, ge=1, le=200),
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Delivery attempts, newest first"""
    await _owned(components, webhook_id, credential)
    attempts = await components.deliveries.list_for_subscription(webhook_id, limit=limit)
    return api_success(attempts, meta={"count": len(attempts)})


@router.get("/webhooks/{webhook_id}/stats")
async def delivery_stats(
    webhook_id: str,
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """Delivery statistics"""
    await _owned(components, webhook_id, credential)
    return api_success(await components.deliveries.stats(webhook_id))


@router.get("/events")
async def event_types(credential: Credential = Depends(current_credential)):
    """Subscribable event types"""
    return api_success(list_event_types())


@router.get("/usage")
async def usage_stats(
    days: int = Query(30, ge=1, le=90),
    credential: Credential = Depends(current_credential),
    components: GatewayComponents = Depends(request_components),
):
    """API usage for the last `days` days"""
    return api_success(await components.usage.stats(credential.tenant_id, days))
