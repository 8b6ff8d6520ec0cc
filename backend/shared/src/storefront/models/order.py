"""Order model for materialized checkouts."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import OrderStatus, PaymentProvider


class Order(BaseModel):
    """A purchase record tied to a single checkout.

    Amounts are stored in minor currency units (cents) and always come
    from the provider's session or charge object.
    """

    model_config = ConfigDict(strict=True)

    order_id: str = Field(..., description="Unique order ID")
    customer_id: str = Field(..., description="Reference to Customer")
    status: OrderStatus = Field(default=OrderStatus.PROCESSING)
    total_amount: int = Field(..., ge=0, description="Total in minor units")
    currency: str = Field(..., description="Currency code", examples=["usd"])
    provider: PaymentProvider
    metadata: dict[str, str | None] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
