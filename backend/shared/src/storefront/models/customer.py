"""Customer model for paying parties."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Customer(BaseModel):
    """A resolved identity for a paying party.

    Email is the resolution key; at most one Customer exists per email.
    Optional fields are gap-filled by later events, never overwritten.
    """

    model_config = ConfigDict(strict=True)

    customer_id: str = Field(..., description="Unique customer ID")
    email: str = Field(..., description="Resolution key", examples=["a@b.com"])
    name: str | None = Field(default=None, description="Full name")
    phone: str | None = Field(default=None, description="Contact phone")
    stripe_customer_id: str | None = Field(
        default=None,
        description="Stripe Customer ID (cus_xxx)",
        examples=["cus_ABC123"],
    )
    created_at: datetime
    updated_at: datetime
