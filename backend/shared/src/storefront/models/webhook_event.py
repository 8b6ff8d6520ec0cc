"""Webhook ledger entry model for idempotency and auditing."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentProvider, WebhookEventStatus


class RetryMetadata(BaseModel):
    """Who asked for a manual retry, and from which status."""

    model_config = ConfigDict(strict=True)

    triggered_by: str = Field(..., description="Admin email or subject")
    triggered_at: datetime = Field(..., description="When the retry was requested")
    previous_status: WebhookEventStatus = Field(
        ..., description="Status before the event was moved to retrying"
    )


class WebhookEvent(BaseModel):
    """One inbound provider notification, as recorded in the ledger.

    Used for:
    - Idempotency: prevent materializing the same provider event twice
    - Auditing: every delivery attempt gets its own entry
    - Replay: raw_payload is the exact request body that was verified
    """

    model_config = ConfigDict(strict=True)

    webhook_event_id: str = Field(..., description="Ledger-assigned ID")
    provider: PaymentProvider = Field(..., description="Provider that sent the event")
    provider_event_id: str = Field(
        ...,
        description="Provider event ID",
        examples=["evt_1ABC123DEF456"],
    )
    event_type: str = Field(
        ...,
        description="Provider event type",
        examples=["checkout.session.completed", "charge:confirmed"],
    )
    status: WebhookEventStatus = Field(..., description="Processing status")
    raw_payload: str = Field(..., description="Request body exactly as received")
    payload_hash: str = Field(..., description="SHA-256 hex digest of raw_payload")
    received_at: datetime
    updated_at: datetime
    error_message: str | None = Field(
        default=None,
        description="Error details if processing failed",
    )
    retry_count: int = Field(default=0, ge=0)
    retry_metadata: RetryMetadata | None = None


class WebhookEventSummary(BaseModel):
    """Ledger entry without the raw payload, for admin listings."""

    model_config = ConfigDict(strict=True)

    webhook_event_id: str
    provider: PaymentProvider
    provider_event_id: str
    event_type: str
    status: WebhookEventStatus
    received_at: datetime
    updated_at: datetime
    error_message: str | None = None
    retry_count: int = 0

    @classmethod
    def from_event(cls, event: WebhookEvent) -> "WebhookEventSummary":
        return cls(
            webhook_event_id=event.webhook_event_id,
            provider=event.provider,
            provider_event_id=event.provider_event_id,
            event_type=event.event_type,
            status=event.status,
            received_at=event.received_at,
            updated_at=event.updated_at,
            error_message=event.error_message,
            retry_count=event.retry_count,
        )
