"""Coinbase Commerce webhook verification.

Coinbase signs the raw body with HMAC-SHA256 using the shared webhook
secret and sends the hex digest in the X-CC-Webhook-Signature header.
"""

import hashlib
import hmac
import logging
import os
from functools import lru_cache

from pydantic import ValidationError

from storefront.models.errors import InvalidSignature, MalformedPayload
from storefront.models.provider_payloads import CoinbaseWebhookEvent, CoinbaseWebhookPayload

from .ssm_service import get_webhook_secret

logger = logging.getLogger(__name__)

WEBHOOK_SECRET_ENV = "COINBASE_COMMERCE_WEBHOOK_SECRET"
SIGNATURE_HEADER = "X-CC-Webhook-Signature"


def compute_signature(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the payload, as Coinbase computes it."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


class CoinbaseService:
    """Service for Coinbase Commerce webhook signature validation."""

    def __init__(self, environment: str | None = None) -> None:
        self._environment = environment or os.environ.get("ENVIRONMENT", "dev")

    def _get_webhook_secret(self) -> str:
        return get_webhook_secret("coinbase", WEBHOOK_SECRET_ENV, self._environment)

    def verify_webhook_signature(
        self, payload: bytes, signature: str | None
    ) -> CoinbaseWebhookEvent:
        """Verify a webhook signature and return the nested event.

        Args:
            payload: Raw request body bytes, exactly as received.
            signature: X-CC-Webhook-Signature header value.

        Returns:
            The event object from the webhook body.

        Raises:
            ConfigurationError: If the shared secret is missing.
            InvalidSignature: If the header is missing or does not match.
            MalformedPayload: If the body has no valid event object.
        """
        webhook_secret = self._get_webhook_secret()

        if not signature:
            logger.warning("Webhook request missing %s header", SIGNATURE_HEADER)
            raise InvalidSignature(
                f"Missing {SIGNATURE_HEADER} header",
                details={"header": SIGNATURE_HEADER.lower()},
            )

        expected = compute_signature(payload, webhook_secret)
        # Header text may carry non-ASCII characters; compare as bytes
        if not hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8")):
            logger.warning("Invalid Coinbase webhook signature")
            raise InvalidSignature()

        try:
            body = CoinbaseWebhookPayload.model_validate_json(payload)
        except ValidationError as e:
            raise MalformedPayload(
                "Invalid payload structure: missing event",
                details={"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            ) from e

        logger.info("Webhook signature verified for event: %s", body.event.id)
        return body.event


@lru_cache(maxsize=1)
def get_coinbase_service() -> CoinbaseService:
    """Get the shared CoinbaseService instance (singleton pattern)."""
    return CoinbaseService()
