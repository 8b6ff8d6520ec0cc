"""Webhook processing pipeline for Stripe and Coinbase Commerce.

Provides business logic for handling webhook events separate from
HTTP routing concerns. This enables:
- Unit testing without HTTP overhead
- Reuse by the retry worker, which re-runs stored events
- One ledger state machine for both providers

Pipeline: verify signature -> filter event type -> idempotency check ->
record ledger row -> processing -> duplicate guard -> materialize ->
processed | skipped_duplicate | failed.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from storefront.models.enums import PaymentProvider, WebhookEventStatus
from storefront.models.errors import MaterializationFailure, StorefrontError
from storefront.models.payment import PaymentConfirmation
from storefront.models.provider_payloads import CoinbaseWebhookPayload, StripeEventEnvelope
from storefront.models.webhook_event import WebhookEvent
from storefront.utils.logging import get_logger, log_webhook_event

from .charge_materializer import (
    DUPLICATE_PAYMENT_MESSAGE,
    ChargeMaterializer,
    CoinbaseChargeMaterializer,
    StripeChargeMaterializer,
)
from .coinbase_service import CoinbaseService, get_coinbase_service
from .event_ledger import EventLedger
from .payment_guard import PaymentGuard
from .stripe_service import StripeService, get_stripe_service

logger = get_logger(__name__)

# Event types that materialize a payment; everything else is acknowledged only
HANDLED_EVENT_TYPES: dict[PaymentProvider, frozenset[str]] = {
    PaymentProvider.STRIPE: frozenset({"checkout.session.completed"}),
    PaymentProvider.COINBASE: frozenset({"charge:confirmed", "charge:resolved"}),
}

ALREADY_PROCESSED_MESSAGE = "Event already processed"


class ProcessingResult(str, Enum):
    """What the pipeline did with one delivery."""

    IGNORED = "ignored"
    ALREADY_PROCESSED = "already_processed"
    DUPLICATE = "duplicate"
    PROCESSED = "processed"
    NOT_CLAIMED = "not_claimed"


class WebhookOutcome(BaseModel):
    """Result of handling one webhook delivery."""

    result: ProcessingResult
    event_id: str
    event_type: str
    webhook_event_id: str | None = None
    message: str | None = None
    confirmation: PaymentConfirmation | None = None


class WebhookHandler:
    """Runs verified provider events through the ledger and materializers."""

    def __init__(
        self,
        ledger: EventLedger | None = None,
        guard: PaymentGuard | None = None,
        materializers: dict[PaymentProvider, ChargeMaterializer] | None = None,
        stripe_service: StripeService | None = None,
        coinbase_service: CoinbaseService | None = None,
    ) -> None:
        self._ledger = ledger or EventLedger()
        self._guard = guard or PaymentGuard()
        self._materializers = materializers or {
            PaymentProvider.STRIPE: StripeChargeMaterializer(guard=self._guard),
            PaymentProvider.COINBASE: CoinbaseChargeMaterializer(guard=self._guard),
        }
        self._stripe = stripe_service or get_stripe_service()
        self._coinbase = coinbase_service or get_coinbase_service()

    def handle_stripe(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Verify and process a Stripe webhook body.

        Raises:
            ConfigurationError: Signing secret missing.
            InvalidSignature: Header missing or wrong.
            MalformedPayload: Body is not a Stripe event.
            StoreUnavailable: Ledger could not be read or written.
            MaterializationFailure: Records could not be written.
        """
        event = self._stripe.verify_webhook_signature(payload, signature)
        return self._handle(
            PaymentProvider.STRIPE, event.id, event.type, event.data_object, payload
        )

    def handle_coinbase(self, payload: bytes, signature: str | None) -> WebhookOutcome:
        """Verify and process a Coinbase Commerce webhook body.

        Raises the same errors as handle_stripe.
        """
        event = self._coinbase.verify_webhook_signature(payload, signature)
        return self._handle(
            PaymentProvider.COINBASE, event.id, event.type, event.data, payload
        )

    def reprocess(
        self,
        event: WebhookEvent,
        failure_status: WebhookEventStatus = WebhookEventStatus.FAILED,
    ) -> WebhookOutcome:
        """Re-run a stored event on its existing ledger row.

        The raw payload was verified when it was first received, so it is
        parsed again without a signature check. The row is claimed
        retrying -> processing first; when another run already claimed it
        nothing is done and the result is NOT_CLAIMED.

        Args:
            event: Ledger row in retrying status
            failure_status: Status to record if processing fails again

        Raises:
            MaterializationFailure: If processing failed again.
            StoreUnavailable: If the row could not be claimed.
        """
        if not self._ledger.claim_retry(event.webhook_event_id):
            return WebhookOutcome(
                result=ProcessingResult.NOT_CLAIMED,
                event_id=event.provider_event_id,
                event_type=event.event_type,
                webhook_event_id=event.webhook_event_id,
                message="Event already claimed by another run",
            )

        try:
            data_object = self._stored_data_object(event)
        except ValidationError as e:
            message = f"Stored payload is not a valid {event.provider.value} event: {e}"
            self._ledger.update_status(event.webhook_event_id, failure_status, message)
            raise MaterializationFailure(
                message, details={"webhook_event_id": event.webhook_event_id}
            ) from e

        return self._process(
            event.webhook_event_id,
            event.provider,
            event.provider_event_id,
            event.event_type,
            data_object,
            failure_status=failure_status,
        )

    @staticmethod
    def _stored_data_object(event: WebhookEvent) -> dict[str, Any]:
        if event.provider == PaymentProvider.STRIPE:
            return StripeEventEnvelope.model_validate_json(event.raw_payload).data_object
        return CoinbaseWebhookPayload.model_validate_json(event.raw_payload).event.data

    def _handle(
        self,
        provider: PaymentProvider,
        event_id: str,
        event_type: str,
        data_object: dict[str, Any],
        payload: bytes,
    ) -> WebhookOutcome:
        log_webhook_event(logger, provider.value, event_type, event_id, result="received")

        if event_type not in HANDLED_EVENT_TYPES[provider]:
            logger.info("Unhandled %s event type %s, skipping", provider.value, event_type)
            return WebhookOutcome(
                result=ProcessingResult.IGNORED,
                event_id=event_id,
                event_type=event_type,
                message=f"Event type '{event_type}' not handled",
            )

        if self._ledger.is_already_processed(provider, event_id):
            log_webhook_event(
                logger, provider.value, event_type, event_id, result="already_processed"
            )
            return WebhookOutcome(
                result=ProcessingResult.ALREADY_PROCESSED,
                event_id=event_id,
                event_type=event_type,
                message=ALREADY_PROCESSED_MESSAGE,
            )

        webhook_event_id = self._ledger.record_event(
            provider, event_id, event_type, payload.decode("utf-8")
        )
        self._ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSING)
        return self._process(webhook_event_id, provider, event_id, event_type, data_object)

    def _process(
        self,
        webhook_event_id: str,
        provider: PaymentProvider,
        event_id: str,
        event_type: str,
        data_object: dict[str, Any],
        failure_status: WebhookEventStatus = WebhookEventStatus.FAILED,
    ) -> WebhookOutcome:
        materializer = self._materializers[provider]

        def fail(message: str) -> MaterializationFailure:
            self._ledger.update_status(webhook_event_id, failure_status, message)
            log_webhook_event(
                logger,
                provider.value,
                event_type,
                event_id,
                webhook_event_id=webhook_event_id,
                result=failure_status.value,
                error=message,
            )
            return MaterializationFailure(
                details={"webhook_event_id": webhook_event_id, "reason": message}
            )

        try:
            details = materializer.extract(data_object)
        except ValueError as e:
            raise fail(f"Invalid {provider.value} payment object: {e}") from e

        try:
            duplicate = self._guard.exists_for_correlation_keys(details.correlation_keys)
        except StorefrontError as e:
            fail(e.message)
            raise

        if duplicate:
            return self._skip_duplicate(webhook_event_id, provider, event_id, event_type)

        result = materializer.materialize(details, event_id)
        if result.duplicate:
            return self._skip_duplicate(webhook_event_id, provider, event_id, event_type)
        if not result.success:
            raise fail(result.error or "Unknown processing error")

        self._ledger.update_status(webhook_event_id, WebhookEventStatus.PROCESSED)
        log_webhook_event(
            logger,
            provider.value,
            event_type,
            event_id,
            webhook_event_id=webhook_event_id,
            result=WebhookEventStatus.PROCESSED.value,
            payment_id=result.payment_id,
            order_id=result.order_id,
        )
        return WebhookOutcome(
            result=ProcessingResult.PROCESSED,
            event_id=event_id,
            event_type=event_type,
            webhook_event_id=webhook_event_id,
            confirmation=result.confirmation,
        )

    def _skip_duplicate(
        self,
        webhook_event_id: str,
        provider: PaymentProvider,
        event_id: str,
        event_type: str,
    ) -> WebhookOutcome:
        self._ledger.update_status(webhook_event_id, WebhookEventStatus.SKIPPED_DUPLICATE)
        log_webhook_event(
            logger,
            provider.value,
            event_type,
            event_id,
            webhook_event_id=webhook_event_id,
            result=WebhookEventStatus.SKIPPED_DUPLICATE.value,
        )
        return WebhookOutcome(
            result=ProcessingResult.DUPLICATE,
            event_id=event_id,
            event_type=event_type,
            webhook_event_id=webhook_event_id,
            message=DUPLICATE_PAYMENT_MESSAGE,
        )
