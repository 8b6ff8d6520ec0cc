"""Payment models for settlement records and pipeline results."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentProvider, PaymentStatus


class Payment(BaseModel):
    """The monetary settlement record for an Order.

    provider + provider_payment_id is the duplicate-detection key.
    """

    model_config = ConfigDict(strict=True)

    payment_id: str = Field(..., description="Unique payment ID")
    order_id: str = Field(..., description="Reference to Order")
    customer_id: str = Field(..., description="Reference to Customer")
    provider: PaymentProvider
    provider_payment_id: str = Field(
        ...,
        description="Stripe PaymentIntent ID or Coinbase charge code",
        examples=["pi_3ABC123DEF456", "ABCD1234"],
    )
    amount: int = Field(..., ge=0, description="Amount in minor units")
    currency: str = Field(..., description="Currency code")
    status: PaymentStatus = Field(default=PaymentStatus.SUCCEEDED)
    payment_method: str = Field(default="unknown", examples=["card", "bitcoin, ethereum"])
    metadata: dict[str, str | None] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class PaymentConfirmation(BaseModel):
    """Details for the customer confirmation email."""

    model_config = ConfigDict(strict=True)

    to: str
    customer_name: str | None = None
    amount: int = Field(..., description="Amount in minor units")
    currency: str
    provider: str = Field(..., examples=["Stripe", "Coinbase"])
    transaction_id: str = Field(..., description="Stripe session ID or Coinbase charge code")
    transaction_url: str | None = None
    subject: str | None = None


class MaterializationResult(BaseModel):
    """Outcome of turning a provider event into Customer/Order/Payment records.

    duplicate is set when the atomic write lost to an existing payment for
    the same correlation key; nothing was written in that case.
    """

    model_config = ConfigDict(strict=True)

    success: bool
    duplicate: bool = False
    customer_id: str | None = None
    order_id: str | None = None
    payment_id: str | None = None
    error: str | None = None
    confirmation: PaymentConfirmation | None = None
