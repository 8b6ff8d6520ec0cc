"""FastAPI dependency injection providers for shared services.

This module provides factory functions for service instances using @lru_cache
so each service is created once per process. Services are lazily
instantiated on first request.

Usage in routes:
    from storefront_api.dependencies import get_webhook_handler

    @router.post("/webhooks/stripe")
    async def handle(handler: WebhookHandler = Depends(get_webhook_handler)):
        ...

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── EventLedger
        ├── PaymentGuard
        └── WebhookHandler (ledger, guard, materializers, signature services)
    NotificationService (SES)

Testing:
    Use reset_services() to clear cached instances between tests.
"""

from functools import lru_cache

from storefront.services.event_ledger import EventLedger
from storefront.services.notification_service import (
    NotificationService,
    get_notification_service as _get_notification_service,
)
from storefront.services.webhook_handler import WebhookHandler


@lru_cache
def get_event_ledger() -> EventLedger:
    """Get cached EventLedger instance."""
    return EventLedger()


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    """Get cached WebhookHandler sharing the cached ledger."""
    return WebhookHandler(ledger=get_event_ledger())


def get_notification_service() -> NotificationService:
    """Get the shared NotificationService instance."""
    return _get_notification_service()


def reset_services() -> None:
    """Clear all cached service instances.

    Call this in test fixtures to ensure clean state between tests.
    Also resets the DynamoDB and SSM singletons and the provider
    signature services.

    Example:
        @pytest.fixture(autouse=True)
        def reset_state():
            yield
            reset_services()
    """
    from storefront.services.coinbase_service import get_coinbase_service
    from storefront.services.dynamodb import reset_dynamodb_service
    from storefront.services.ssm_service import reset_ssm_service
    from storefront.services.stripe_service import get_stripe_service

    get_event_ledger.cache_clear()
    get_webhook_handler.cache_clear()
    _get_notification_service.cache_clear()
    get_stripe_service.cache_clear()
    get_coinbase_service.cache_clear()

    reset_ssm_service()
    reset_dynamodb_service()
