"""Invoice domain models.

All amounts are stored in cents (integer) to avoid floating point issues.
$10.00 = 1000 cents.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.brand import Brand, BillingEntity
from core.models.line_item import CartLine


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status, mirroring Stripe's invoice states."""

    DRAFT = "draft"
    OPEN = "open"
    PAID = "paid"
    VOID = "void"
    UNCOLLECTIBLE = "uncollectible"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = {InvoiceStatus.PAID, InvoiceStatus.VOID, InvoiceStatus.UNCOLLECTIBLE}


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    invoice_number: str
    primary_brand: BillingEntity
    participating_brands: list[Brand]
    client_id: UUID
    stripe_invoice_id: str | None
    status: InvoiceStatus
    total_cents: int
    notes: str | None
    paid_at: datetime | None = None
    sent_at: datetime | None = None
    last_payment_error: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def total_dollars(self) -> float:
        """Total amount in dollars for display."""
        return self.total_cents / 100

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT


class CreateInvoiceRequest(BaseModel):
    """Input to invoice creation from the dashboard wizard."""

    client_id: UUID
    line_items: list[CartLine]
    notes: str | None = Field(None, max_length=2000)
    send_immediately: bool = False


class CreateInvoiceResult(BaseModel):
    """
    Outcome of invoice creation.

    Failures are reported here rather than raised, so `error` and
    `error_code` are set exactly when `success` is False.
    """

    success: bool
    invoice_id: UUID | None = None
    stripe_invoice_id: str | None = None
    invoice_number: str | None = None
    status: InvoiceStatus | None = None
    total_cents: int | None = None
    error: str | None = None
    error_code: str | None = None


class SendDraftResult(BaseModel):
    """Outcome of sending an existing draft."""

    success: bool
    error: str | None = None
    error_code: str | None = None
