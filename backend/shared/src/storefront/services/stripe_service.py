"""Stripe webhook verification.

Uses the Stripe SDK to check the Stripe-Signature header against the raw
request body. The signing secret comes from STRIPE_WEBHOOK_SECRET or SSM.
"""

import logging
import os
from functools import lru_cache

import stripe
from pydantic import ValidationError

from storefront.models.errors import InvalidSignature, MalformedPayload
from storefront.models.provider_payloads import StripeEventEnvelope

from .ssm_service import get_webhook_secret

logger = logging.getLogger(__name__)

WEBHOOK_SECRET_ENV = "STRIPE_WEBHOOK_SECRET"


class StripeService:
    """Service for Stripe webhook signature validation.

    Usage:
        stripe_svc = get_stripe_service()
        event = stripe_svc.verify_webhook_signature(raw_body, signature_header)
    """

    def __init__(self, environment: str | None = None) -> None:
        """Initialize Stripe service.

        Args:
            environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.
        """
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")

    def _get_webhook_secret(self) -> str:
        """Get the webhook signing secret.

        Raises:
            ConfigurationError: If the secret is not configured.
        """
        return get_webhook_secret("stripe", WEBHOOK_SECRET_ENV, self._environment)

    def verify_webhook_signature(
        self, payload: bytes, signature: str | None
    ) -> StripeEventEnvelope:
        """Verify a webhook signature and parse the event envelope.

        Args:
            payload: Raw request body bytes, exactly as received.
            signature: Stripe-Signature header value.

        Returns:
            Parsed event envelope.

        Raises:
            ConfigurationError: If the signing secret is missing.
            InvalidSignature: If the header is missing or does not match.
            MalformedPayload: If the verified body is not a Stripe event.
        """
        webhook_secret = self._get_webhook_secret()

        if not signature:
            logger.warning("Webhook request missing Stripe-Signature header")
            raise InvalidSignature(
                "Missing Stripe-Signature header",
                details={"header": "stripe-signature"},
            )

        try:
            stripe.Webhook.construct_event(payload, signature, webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise InvalidSignature() from e
        except TypeError as e:
            # stripe's secure_compare rejects non-ASCII signature text
            logger.warning("Invalid webhook signature: %s", str(e))
            raise InvalidSignature() from e
        except ValueError as e:
            # Signature matched but the body is not JSON
            raise MalformedPayload(f"Invalid JSON payload: {e}") from e

        try:
            event = StripeEventEnvelope.model_validate_json(payload)
        except ValidationError as e:
            raise MalformedPayload(
                "Invalid Stripe event structure",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        logger.info("Webhook signature verified for event: %s", event.id)
        return event


@lru_cache(maxsize=1)
def get_stripe_service() -> StripeService:
    """Get the shared StripeService instance (singleton pattern)."""
    return StripeService()
