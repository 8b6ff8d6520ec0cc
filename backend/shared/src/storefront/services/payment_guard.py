"""Duplicate-payment guard.

A correlation key names one provider-side payment artifact, e.g.
stripe:session:cs_123 or coinbase:charge_code:ABCD1234. Each key is
claimed in the payment-keys table in the same transaction that writes the
Payment, so the claim is the authoritative duplicate check. The lookup
here lets the pipeline skip materialization early.
"""

from collections.abc import Iterable

from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.enums import PaymentProvider
from storefront.models.errors import StoreUnavailable
from storefront.utils.logging import get_logger

from .dynamodb import DynamoDBService, get_dynamodb_service
from .tables import PAYMENT_KEYS_TABLE

logger = get_logger(__name__)


def correlation_key(provider: PaymentProvider, kind: str, value: str) -> str:
    """Build a correlation key, e.g. stripe:session:cs_123."""
    return f"{provider.value}:{kind}:{value}"


class PaymentGuard:
    """Looks up correlation keys claimed by existing payments."""

    def __init__(self, db: DynamoDBService | None = None) -> None:
        self._db = db or get_dynamodb_service()

    def find_payment_id(self, key: str) -> str | None:
        """Return the payment that claimed this key, if any."""
        try:
            item = self._db.get_item(
                PAYMENT_KEYS_TABLE, {"correlation_key": key}, consistent_read=True
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreUnavailable(f"Failed to read payment keys: {e}") from e
        return item["payment_id"] if item else None

    def exists_for_correlation_keys(self, keys: Iterable[str]) -> bool:
        """Check whether any of the keys already belongs to a payment."""
        for key in keys:
            payment_id = self.find_payment_id(key)
            if payment_id:
                logger.info("Payment %s already recorded for %s", payment_id, key)
                return True
        return False
