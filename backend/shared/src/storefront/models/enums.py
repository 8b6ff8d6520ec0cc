"""Enumeration types for storefront data models."""

from enum import Enum


class PaymentProvider(str, Enum):
    """Payment providers that deliver webhooks."""

    STRIPE = "stripe"
    COINBASE = "coinbase"


class WebhookEventStatus(str, Enum):
    """Processing status of a ledger entry.

    received -> processing -> processed | skipped_duplicate | failed
    failed | abandoned -> retrying -> processed | skipped_duplicate | failed | abandoned
    """

    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"
    RETRYING = "retrying"
    ABANDONED = "abandoned"


# Statuses that mean the provider event has been fully handled
TERMINAL_SUCCESS_STATUSES = frozenset(
    {WebhookEventStatus.PROCESSED, WebhookEventStatus.SKIPPED_DUPLICATE}
)

# Statuses an administrator may move back to RETRYING
RETRYABLE_STATUSES = frozenset(
    {WebhookEventStatus.FAILED, WebhookEventStatus.ABANDONED}
)


class OrderStatus(str, Enum):
    """Status of an order."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


class PaymentStatus(str, Enum):
    """Status of a payment settlement."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
