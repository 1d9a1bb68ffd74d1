"""Cart line and invoice line item domain models.

All prices are stored in cents (integer) to avoid floating point issues.
$10.00 = 1000 cents. When `custom_price_cents` is set it replaces the
catalog rate everywhere: totals, the Stripe charge, and the custom flag.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.brand import Brand


class CartLine(BaseModel):
    """One line of the invoice wizard cart, before anything is persisted."""

    service_id: UUID | None = None  # None for ad-hoc items
    brand: Brand
    category: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)
    quantity: int = Field(..., ge=1)
    unit_price_cents: int = Field(..., ge=0)
    custom_price_cents: int | None = Field(None, ge=0)  # e.g. legacy $1,100 package
    # Filled from the catalog entry, never trusted from the caller
    stripe_price_id: str | None = None
    is_custom_item: bool = False


class InvoiceLineItem(BaseModel):
    """Full invoice line item entity as stored."""

    id: UUID
    invoice_id: UUID
    service_id: UUID | None
    brand: Brand
    category: str
    name: str
    description: str | None
    quantity: int
    unit_price_cents: int
    custom_price_cents: int | None
    stripe_price_id: str | None
    is_custom_item: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def effective_price_cents(self) -> int:
        """Unit price actually charged."""
        if self.custom_price_cents is not None:
            return self.custom_price_cents
        return self.unit_price_cents

    @property
    def total_cents(self) -> int:
        return self.effective_price_cents * self.quantity

    @property
    def total_dollars(self) -> float:
        """Line total in dollars for display."""
        return self.total_cents / 100
