"""Typed views of the provider webhook payloads we consume.

Provider JSON carries many fields we never read. These models ignore
unknown fields but fail loudly when a field the pipeline depends on is
missing or has the wrong shape, so bad payloads are rejected at the
boundary instead of deep inside materialization.
"""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _stringify_metadata(value: Any) -> dict[str, str | None]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("metadata must be an object")
    return {
        str(key): None if item is None else str(item)
        for key, item in value.items()
    }


# === Stripe ===


class StripeEventEnvelope(BaseModel):
    """Top-level Stripe event: {id, type, data: {object}}."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    data: dict[str, Any]

    @property
    def data_object(self) -> dict[str, Any]:
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}


class StripeCustomerDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str | None = None
    name: str | None = None
    phone: str | None = None


class StripeCheckoutSession(BaseModel):
    """The fields of a Checkout Session that materialization reads."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, examples=["cs_test_abc123"])
    amount_total: int | None = None
    currency: str | None = None
    customer: str | dict[str, Any] | None = None
    customer_details: StripeCustomerDetails | None = None
    metadata: dict[str, str | None] = Field(default_factory=dict)
    payment_intent: str | dict[str, Any] | None = None
    payment_method_types: list[str] = Field(default_factory=list)
    payment_status: str | None = None

    normalize_metadata = field_validator("metadata", mode="before")(_stringify_metadata)

    @property
    def customer_id(self) -> str | None:
        """Stripe customer ID whether or not the customer was expanded."""
        if isinstance(self.customer, dict):
            return self.customer.get("id")
        return self.customer

    @property
    def payment_intent_id(self) -> str | None:
        """PaymentIntent ID whether or not the intent was expanded."""
        if isinstance(self.payment_intent, dict):
            return self.payment_intent.get("id")
        return self.payment_intent


# === Coinbase Commerce ===


class CoinbaseMoney(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: Decimal
    currency: str


class CoinbasePaymentValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    local: CoinbaseMoney | None = None
    crypto: CoinbaseMoney | None = None


class CoinbasePayment(BaseModel):
    """One on-chain payment recorded against a charge."""

    model_config = ConfigDict(extra="ignore")

    network: str | None = None
    transaction_id: str | None = None
    status: str | None = None
    value: CoinbasePaymentValue | None = None


class CoinbaseCharge(BaseModel):
    """The charge object carried in event.data."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, examples=["ABCD1234"])
    pricing_type: str | None = Field(
        default=None, examples=["fixed_price", "no_price"]
    )
    pricing: dict[str, CoinbaseMoney] = Field(default_factory=dict)
    payments: list[CoinbasePayment] = Field(default_factory=list)
    metadata: dict[str, str | None] = Field(default_factory=dict)
    hosted_url: str | None = None

    normalize_metadata = field_validator("metadata", mode="before")(_stringify_metadata)

    @field_validator("pricing", mode="before")
    @classmethod
    def drop_null_pricing(cls, value: Any) -> Any:
        # no_price charges may carry null pricing entries
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: item for key, item in value.items() if item is not None}
        return value


class CoinbaseWebhookEvent(BaseModel):
    """The event object nested inside the Coinbase webhook body."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, examples=["charge:confirmed"])
    api_version: str | None = None
    created_at: str | None = None
    data: dict[str, Any]


class CoinbaseWebhookPayload(BaseModel):
    """Coinbase webhook body: {id, scheduled_for, event: {...}}."""

    model_config = ConfigDict(extra="ignore")

    event: CoinbaseWebhookEvent
