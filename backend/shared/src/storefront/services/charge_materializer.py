"""Charge materializers: provider object -> Customer, Order and Payment.

Both providers share one write path. A variant only knows how to read
its provider's object into ChargeDetails; ChargeMaterializer resolves the
customer and commits Order, Payment and the correlation-key claims in a
single DynamoDB transaction, so either all of them exist or none do.
"""

import datetime as dt
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, Field

from storefront.models.enums import PaymentProvider
from storefront.models.order import Order
from storefront.models.payment import MaterializationResult, Payment, PaymentConfirmation
from storefront.models.provider_payloads import (
    CoinbaseCharge,
    CoinbaseMoney,
    StripeCheckoutSession,
    StripeCustomerDetails,
)
from storefront.utils.logging import get_logger, log_payment_operation

from .customer_resolver import CustomerResolver
from .dynamodb import DynamoDBService, get_dynamodb_service
from .payment_guard import PaymentGuard, correlation_key
from .tables import ORDERS_TABLE, PAYMENT_KEYS_TABLE, PAYMENTS_TABLE

logger = get_logger(__name__)

DUPLICATE_PAYMENT_MESSAGE = "Payment already exists"


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit decimal amount to minor units, rounding half up.

    Example:
        to_minor_units(Decimal("25.00")) -> 2500
    """
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _compact(values: dict[str, str | None]) -> dict[str, str | None]:
    return {key: value for key, value in values.items() if value is not None}


class ChargeDetails(BaseModel):
    """Provider-neutral view of a completed charge."""

    email: str
    name: str | None = None
    phone: str | None = None
    provider_customer_id: str | None = None
    order_amount: int = Field(..., ge=0)
    order_currency: str
    payment_amount: int = Field(..., ge=0)
    payment_currency: str
    provider_payment_id: str
    payment_method: str
    transaction_id: str
    transaction_url: str | None = None
    correlation_keys: list[str]
    order_metadata: dict[str, str | None] = Field(default_factory=dict)
    payment_metadata: dict[str, str | None] = Field(default_factory=dict)


class ChargeMaterializer:
    """Shared write path; subclasses implement extract()."""

    provider: PaymentProvider
    provider_label: str

    def __init__(
        self,
        db: DynamoDBService | None = None,
        resolver: CustomerResolver | None = None,
        guard: PaymentGuard | None = None,
    ) -> None:
        self._db = db or get_dynamodb_service()
        self._resolver = resolver or CustomerResolver(self._db)
        self._guard = guard or PaymentGuard(self._db)

    def extract(self, data_object: dict[str, Any]) -> ChargeDetails:
        """Read the provider object into ChargeDetails.

        Raises:
            ValueError: If the object lacks required fields (pydantic
                ValidationError is a ValueError).
        """
        raise NotImplementedError

    def materialize(
        self, details: ChargeDetails, provider_event_id: str
    ) -> MaterializationResult:
        """Resolve the customer and atomically write Order and Payment.

        Never raises; failures are returned with success=False. When the
        transaction loses to an existing payment for one of the
        correlation keys, duplicate is set and nothing is written.
        """
        customer_id: str | None = None
        try:
            customer_id = self._resolver.resolve(
                details.email,
                name=details.name,
                phone=details.phone,
                provider_customer_id=details.provider_customer_id,
            )

            now = dt.datetime.now(dt.UTC)
            order = Order(
                order_id=f"ORD-{uuid.uuid4().hex[:12].upper()}",
                customer_id=customer_id,
                total_amount=details.order_amount,
                currency=details.order_currency,
                provider=self.provider,
                metadata=details.order_metadata,
                created_at=now,
                updated_at=now,
            )
            payment = Payment(
                payment_id=f"PAY-{uuid.uuid4().hex[:12].upper()}",
                order_id=order.order_id,
                customer_id=customer_id,
                provider=self.provider,
                provider_payment_id=details.provider_payment_id,
                amount=details.payment_amount,
                currency=details.payment_currency,
                payment_method=details.payment_method,
                metadata=details.payment_metadata,
                created_at=now,
                updated_at=now,
            )

            items = [
                self._db.build_put(
                    ORDERS_TABLE,
                    order.model_dump(mode="json"),
                    condition_expression="attribute_not_exists(order_id)",
                ),
                self._db.build_put(
                    PAYMENTS_TABLE,
                    payment.model_dump(mode="json"),
                    condition_expression="attribute_not_exists(payment_id)",
                ),
            ]
            for key in details.correlation_keys:
                items.append(
                    self._db.build_put(
                        PAYMENT_KEYS_TABLE,
                        {
                            "correlation_key": key,
                            "payment_id": payment.payment_id,
                            "provider": self.provider.value,
                            "created_at": now.isoformat(),
                        },
                        condition_expression="attribute_not_exists(correlation_key)",
                    )
                )

            committed = self._db.transact_write(items)
            if not committed and self._guard.exists_for_correlation_keys(
                details.correlation_keys
            ):
                logger.warning(
                    "Payment for %s event %s already recorded, nothing written",
                    self.provider.value,
                    provider_event_id,
                )
                return MaterializationResult(
                    success=False,
                    duplicate=True,
                    customer_id=customer_id,
                    error=DUPLICATE_PAYMENT_MESSAGE,
                )
            if not committed:
                raise RuntimeError("Order/payment transaction was cancelled")

        except Exception as e:
            logger.exception(
                "Error materializing %s event %s", self.provider.value, provider_event_id
            )
            log_payment_operation(
                logger,
                "materialize",
                customer_id=customer_id,
                amount_cents=details.payment_amount,
                currency=details.payment_currency,
                error=str(e),
                provider=self.provider.value,
                event_id=provider_event_id,
            )
            return MaterializationResult(
                success=False,
                customer_id=customer_id,
                error=str(e) or e.__class__.__name__,
            )

        log_payment_operation(
            logger,
            "materialize",
            payment_id=payment.payment_id,
            order_id=order.order_id,
            customer_id=customer_id,
            amount_cents=payment.amount,
            currency=payment.currency,
            provider=self.provider.value,
            event_id=provider_event_id,
        )

        return MaterializationResult(
            success=True,
            customer_id=customer_id,
            order_id=order.order_id,
            payment_id=payment.payment_id,
            confirmation=PaymentConfirmation(
                to=details.email,
                customer_name=details.name,
                amount=details.payment_amount,
                currency=details.payment_currency,
                provider=self.provider_label,
                transaction_id=details.transaction_id,
                transaction_url=details.transaction_url,
            ),
        )


class StripeChargeMaterializer(ChargeMaterializer):
    """Materializes checkout.session.completed sessions."""

    provider = PaymentProvider.STRIPE
    provider_label = "Stripe"

    def extract(self, data_object: dict[str, Any]) -> ChargeDetails:
        session = StripeCheckoutSession.model_validate(data_object)
        metadata = session.metadata
        customer_details = session.customer_details or StripeCustomerDetails()

        # Metadata set at checkout creation wins over what Stripe collected
        email = metadata.get("customer_email") or customer_details.email
        name = metadata.get("customer_name") or customer_details.name
        phone = metadata.get("customer_phone") or customer_details.phone
        if not email:
            raise ValueError(f"Missing customer email in checkout session {session.id}")

        amount = session.amount_total or 0
        currency = (session.currency or "usd").lower()

        keys = [correlation_key(self.provider, "session", session.id)]
        if metadata.get("session_id"):
            keys.append(correlation_key(self.provider, "session", metadata["session_id"]))
        if metadata.get("payment_id"):
            keys.append(correlation_key(self.provider, "payment_ref", metadata["payment_id"]))
        if session.payment_intent_id:
            keys.append(
                correlation_key(self.provider, "payment_intent", session.payment_intent_id)
            )

        contact = _compact(
            {
                "offering_id": metadata.get("offeringId") or metadata.get("offering_id"),
                "transaction_id": metadata.get("transaction_id"),
                "customer_name": name,
                "customer_email": email,
                "customer_phone": phone,
            }
        )

        return ChargeDetails(
            email=email,
            name=name,
            phone=phone,
            provider_customer_id=session.customer_id,
            order_amount=amount,
            order_currency=currency,
            payment_amount=amount,
            payment_currency=currency,
            provider_payment_id=session.payment_intent_id or session.id,
            payment_method=session.payment_method_types[0]
            if session.payment_method_types
            else "unknown",
            transaction_id=session.id,
            correlation_keys=list(dict.fromkeys(keys)),
            order_metadata={**metadata, **contact, "session_id": session.id},
            payment_metadata=_compact(
                {
                    **metadata,
                    **contact,
                    "session_id": session.id,
                    "payment_intent_id": session.payment_intent_id,
                }
            ),
        )


class CoinbaseChargeMaterializer(ChargeMaterializer):
    """Materializes charge:confirmed and charge:resolved charges."""

    provider = PaymentProvider.COINBASE
    provider_label = "Coinbase"

    @staticmethod
    def settled_amount(charge: CoinbaseCharge) -> CoinbaseMoney:
        """Amount the charge settled at, by pricing type.

        fixed_price settles at the local price. no_price settles at the
        first payment, using its local value when the payload carries one and
        its crypto value otherwise, or zero USD when no payment has arrived.
        Anything else uses the first non-local pricing entry and falls back
        to the local price.

        Crypto amounts are stored in hundredths of the coin, so a value under
        0.005 of the coin records as 0.
        """
        local = charge.pricing.get("local")
        if charge.pricing_type == "fixed_price":
            settled = local
        elif charge.pricing_type == "no_price":
            first_value = charge.payments[0].value if charge.payments else None
            paid = (first_value.local or first_value.crypto) if first_value else None
            settled = paid or CoinbaseMoney(amount=Decimal("0"), currency="USD")
        else:
            crypto_key = next((key for key in charge.pricing if key != "local"), None)
            settled = charge.pricing[crypto_key] if crypto_key else local

        if settled is None:
            raise ValueError(f"Could not determine settled amount for charge {charge.code}")
        return settled

    def extract(self, data_object: dict[str, Any]) -> ChargeDetails:
        charge = CoinbaseCharge.model_validate(data_object)
        metadata = charge.metadata

        email = metadata.get("customer_email")
        name = metadata.get("customer_name")
        phone = metadata.get("customer_phone")
        if not email:
            raise ValueError(f"Missing customer email in Coinbase charge metadata for {charge.code}")

        local = charge.pricing.get("local")
        order_amount = to_minor_units(local.amount) if local else 0
        order_currency = local.currency.lower() if local else "usd"

        settled = self.settled_amount(charge)
        networks = [payment.network for payment in charge.payments if payment.network]

        contact = _compact(
            {
                "offering_id": metadata.get("offeringId") or metadata.get("offering_id"),
                "transaction_id": metadata.get("transaction_id"),
                "customer_name": name,
                "customer_email": email,
                "customer_phone": phone,
                "charge_id": charge.id,
                "charge_code": charge.code,
            }
        )

        return ChargeDetails(
            email=email,
            name=name,
            phone=phone,
            order_amount=order_amount,
            order_currency=order_currency,
            payment_amount=to_minor_units(settled.amount),
            payment_currency=settled.currency.upper(),
            provider_payment_id=charge.code,
            payment_method=", ".join(networks) if networks else "crypto",
            transaction_id=charge.code,
            transaction_url=charge.hosted_url,
            correlation_keys=[
                correlation_key(self.provider, "charge", charge.id),
                correlation_key(self.provider, "charge_code", charge.code),
            ],
            order_metadata={**metadata, **contact},
            payment_metadata=_compact({**metadata, **contact, "hosted_url": charge.hosted_url}),
        )
