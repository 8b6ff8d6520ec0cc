"""API models for webhook and admin webhook endpoints.

Domain models (WebhookEvent, WebhookEventSummary) live in storefront.models;
this module only holds HTTP request/response shapes.
"""

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.webhook_event import WebhookEventSummary


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the payment provider."""

    received: bool = True
    message: str | None = Field(
        default=None,
        examples=["Event already processed", "Payment already exists"],
    )
    event_id: str | None = Field(default=None, description="Provider event ID")
    processing_result: str | None = Field(
        default=None,
        description="ignored, already_processed, duplicate or processed",
    )


class WebhookErrorResponse(BaseModel):
    """Error response for webhook failures (documentation only)."""

    success: bool = False
    error: str
    error_code: str
    recovery: str | None = None


class RetryWebhookRequest(BaseModel):
    """Request to re-queue a failed webhook event."""

    model_config = ConfigDict(
        strict=True,
        populate_by_name=True,
        json_schema_extra={"examples": [{"webhookEventId": "WHE-4F2A9C1B7D3E5A60"}]},
    )

    webhook_event_id: str | None = Field(
        default=None,
        alias="webhookEventId",
        description="Ledger ID of the webhook event to retry",
    )


class RetryWebhookResponse(BaseModel):
    """Confirmation that an event was moved to retrying."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Webhook queued for retry"
    webhook_event_id: str = Field(..., alias="webhookEventId")


class WebhookEventListResponse(BaseModel):
    """Ledger entries, newest first."""

    events: list[WebhookEventSummary]
    count: int = Field(..., ge=0)
