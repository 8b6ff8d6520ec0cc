"""Services for webhook verification, ledger, and payment materialization."""

from .charge_materializer import (
    ChargeDetails,
    ChargeMaterializer,
    CoinbaseChargeMaterializer,
    StripeChargeMaterializer,
)
from .coinbase_service import CoinbaseService, get_coinbase_service
from .customer_resolver import CustomerResolver
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .event_ledger import EventLedger
from .notification_service import NotificationService, get_notification_service
from .payment_guard import PaymentGuard, correlation_key
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, get_stripe_service
from .webhook_handler import ProcessingResult, WebhookHandler, WebhookOutcome

__all__ = [
    "ChargeDetails",
    "ChargeMaterializer",
    "CoinbaseChargeMaterializer",
    "CoinbaseService",
    "CustomerResolver",
    "DynamoDBService",
    "EventLedger",
    "NotificationService",
    "PaymentGuard",
    "ProcessingResult",
    "SSMService",
    "SSMServiceError",
    "StripeChargeMaterializer",
    "StripeService",
    "WebhookHandler",
    "WebhookOutcome",
    "correlation_key",
    "get_coinbase_service",
    "get_dynamodb_service",
    "get_notification_service",
    "get_ssm_service",
    "get_stripe_service",
    "reset_dynamodb_service",
]
