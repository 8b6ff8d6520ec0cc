"""Pydantic models for storefront webhook ingestion."""

from .customer import Customer
from .enums import (
    RETRYABLE_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
    OrderStatus,
    PaymentProvider,
    PaymentStatus,
    WebhookEventStatus,
)
from .errors import (
    ERROR_MESSAGES,
    ERROR_RECOVERY,
    AdminRequired,
    AuthRequired,
    ConfigurationError,
    ErrorCode,
    ErrorResponse,
    InvalidSignature,
    InvalidStateTransition,
    MalformedPayload,
    MaterializationFailure,
    MissingParameter,
    StoreUnavailable,
    StorefrontError,
    WebhookEventNotFound,
)
from .order import Order
from .payment import MaterializationResult, Payment, PaymentConfirmation
from .provider_payloads import (
    CoinbaseCharge,
    CoinbaseMoney,
    CoinbasePayment,
    CoinbaseWebhookEvent,
    CoinbaseWebhookPayload,
    StripeCheckoutSession,
    StripeEventEnvelope,
)
from .webhook_event import RetryMetadata, WebhookEvent, WebhookEventSummary

__all__ = [
    # Enums
    "OrderStatus",
    "PaymentProvider",
    "PaymentStatus",
    "WebhookEventStatus",
    "RETRYABLE_STATUSES",
    "TERMINAL_SUCCESS_STATUSES",
    # Records
    "Customer",
    "Order",
    "Payment",
    "PaymentConfirmation",
    "MaterializationResult",
    # Ledger
    "RetryMetadata",
    "WebhookEvent",
    "WebhookEventSummary",
    # Provider payloads
    "CoinbaseCharge",
    "CoinbaseMoney",
    "CoinbasePayment",
    "CoinbaseWebhookEvent",
    "CoinbaseWebhookPayload",
    "StripeCheckoutSession",
    "StripeEventEnvelope",
    # Errors
    "ERROR_MESSAGES",
    "ERROR_RECOVERY",
    "AdminRequired",
    "AuthRequired",
    "ConfigurationError",
    "ErrorCode",
    "ErrorResponse",
    "InvalidSignature",
    "InvalidStateTransition",
    "MalformedPayload",
    "MaterializationFailure",
    "MissingParameter",
    "StoreUnavailable",
    "StorefrontError",
    "WebhookEventNotFound",
]
