"""Admin endpoints for the webhook ledger.

Provides REST endpoints for:
- POST /admin/webhooks/retry - Queue a failed or abandoned event for retry
- GET /admin/webhooks/events - List ledger entries, newest first
- GET /admin/webhooks/events/{webhook_event_id} - Ledger entry with raw payload

All endpoints require an authenticated caller in the admin group.
"""

from fastapi import APIRouter, Body, Depends, Query
from starlette.concurrency import run_in_threadpool

from storefront.models.enums import WebhookEventStatus
from storefront.models.errors import MissingParameter, WebhookEventNotFound
from storefront.models.webhook_event import WebhookEvent, WebhookEventSummary
from storefront.services.event_ledger import EventLedger
from storefront.utils.logging import get_logger
from storefront_api.dependencies import get_event_ledger
from storefront_api.models.webhooks import (
    RetryWebhookRequest,
    RetryWebhookResponse,
    WebhookEventListResponse,
)
from storefront_api.security import Principal, require_admin

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/webhooks", tags=["admin"])


@router.post(
    "/retry",
    summary="Queue a webhook event for retry",
    response_model=RetryWebhookResponse,
    responses={
        400: {"description": "Missing webhookEventId or event is not failed/abandoned"},
        401: {"description": "Not signed in"},
        403: {"description": "Not an admin"},
        404: {"description": "Webhook event not found"},
    },
)
async def retry_webhook(
    body: RetryWebhookRequest | None = Body(default=None),
    admin: Principal = Depends(require_admin),
    ledger: EventLedger = Depends(get_event_ledger),
) -> RetryWebhookResponse:
    """Move a failed or abandoned event to retrying."""
    webhook_event_id = body.webhook_event_id if body else None
    if not webhook_event_id:
        raise MissingParameter(
            "Missing webhookEventId", details={"field": "webhookEventId"}
        )

    event = await run_in_threadpool(ledger.mark_retrying, webhook_event_id, admin.display_name)
    logger.info(
        "Admin %s queued webhook event %s for retry (attempt %d)",
        admin.display_name,
        event.webhook_event_id,
        event.retry_count,
    )
    return RetryWebhookResponse(webhook_event_id=event.webhook_event_id)


@router.get(
    "/events",
    summary="List webhook events",
    response_model=WebhookEventListResponse,
)
async def list_webhook_events(
    status: WebhookEventStatus | None = Query(default=None, description="Only this status"),
    limit: int = Query(default=50, ge=1, le=200),
    admin: Principal = Depends(require_admin),
    ledger: EventLedger = Depends(get_event_ledger),
) -> WebhookEventListResponse:
    """List ledger entries, newest first."""
    events = await run_in_threadpool(ledger.list_events, status, limit)
    summaries = [WebhookEventSummary.from_event(event) for event in events]
    return WebhookEventListResponse(events=summaries, count=len(summaries))


@router.get(
    "/events/{webhook_event_id}",
    summary="Get a webhook event",
    response_model=WebhookEvent,
    responses={404: {"description": "Webhook event not found"}},
)
async def get_webhook_event(
    webhook_event_id: str,
    admin: Principal = Depends(require_admin),
    ledger: EventLedger = Depends(get_event_ledger),
) -> WebhookEvent:
    """Return one ledger entry including its raw payload."""
    event = await run_in_threadpool(ledger.get_event, webhook_event_id)
    if event is None:
        raise WebhookEventNotFound(details={"webhook_event_id": webhook_event_id})
    return event
