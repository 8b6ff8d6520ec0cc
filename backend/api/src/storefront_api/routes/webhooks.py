"""Webhook endpoints for payment provider integrations.

Provides endpoints for:
- Stripe webhook events (checkout.session.completed)
- Coinbase Commerce webhook events (charge:confirmed, charge:resolved)

These endpoints do NOT require JWT authentication as they receive
signed payloads from external services.
"""

from collections.abc import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from starlette.concurrency import run_in_threadpool

from storefront.models.errors import MaterializationFailure, StorefrontError
from storefront.services.notification_service import NotificationService
from storefront.services.webhook_handler import WebhookHandler, WebhookOutcome
from storefront.utils.logging import get_logger
from storefront_api.dependencies import get_notification_service, get_webhook_handler
from storefront_api.models.webhooks import WebhookErrorResponse, WebhookResponse

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {
        "description": "Invalid signature, missing header, or malformed payload",
        "model": WebhookErrorResponse,
    },
    500: {
        "description": "Secret not configured or processing failed; provider will redeliver",
        "model": WebhookErrorResponse,
    },
}


async def _run_pipeline(
    provider: str,
    handle: Callable[[bytes, str | None], WebhookOutcome],
    payload: bytes,
    signature: str | None,
    background_tasks: BackgroundTasks,
    notifier: NotificationService,
) -> WebhookResponse:
    """Run the blocking pipeline off the event loop and build the ack."""
    try:
        outcome = await run_in_threadpool(handle, payload, signature)
    except StorefrontError:
        raise
    except Exception as e:
        logger.exception("Unexpected error processing %s webhook", provider)
        raise MaterializationFailure(details={"provider": provider}) from e

    if outcome.confirmation is not None:
        # Fire-and-forget: runs after the response is sent
        background_tasks.add_task(notifier.send_payment_confirmation, outcome.confirmation)

    return WebhookResponse(
        received=True,
        message=outcome.message,
        event_id=outcome.event_id,
        processing_result=outcome.result.value,
    )


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed: Records customer, order and payment

**No authentication required** - signature is verified using the Stripe webhook secret.

**Idempotent**: Redelivered events return 200 with 'Event already processed'.
""",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def handle_stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: WebhookHandler = Depends(get_webhook_handler),
    notifier: NotificationService = Depends(get_notification_service),
) -> WebhookResponse:
    """Handle incoming Stripe webhook events."""
    # Raw body: the signature covers the exact bytes
    payload = await request.body()
    return await _run_pipeline(
        "stripe",
        handler.handle_stripe,
        payload,
        request.headers.get("stripe-signature"),
        background_tasks,
        notifier,
    )


@router.post(
    "/webhooks/coinbase",
    summary="Receive Coinbase Commerce webhook events",
    description="""
Endpoint for Coinbase Commerce webhook events. Handles:
- charge:confirmed and charge:resolved: Records customer, order and payment

**No authentication required** - X-CC-Webhook-Signature is an HMAC-SHA256 of the body.

**Idempotent**: Redelivered events return 200 with 'Event already processed'.
""",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    responses=_ERROR_RESPONSES,
)
async def handle_coinbase_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: WebhookHandler = Depends(get_webhook_handler),
    notifier: NotificationService = Depends(get_notification_service),
) -> WebhookResponse:
    """Handle incoming Coinbase Commerce webhook events."""
    payload = await request.body()
    return await _run_pipeline(
        "coinbase",
        handler.handle_coinbase,
        payload,
        request.headers.get("x-cc-webhook-signature"),
        background_tasks,
        notifier,
    )
