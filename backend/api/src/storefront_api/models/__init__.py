"""API request/response models."""

from .webhooks import (
    RetryWebhookRequest,
    RetryWebhookResponse,
    WebhookErrorResponse,
    WebhookEventListResponse,
    WebhookResponse,
)

__all__ = [
    "RetryWebhookRequest",
    "RetryWebhookResponse",
    "WebhookErrorResponse",
    "WebhookEventListResponse",
    "WebhookResponse",
]
