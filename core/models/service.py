"""Service catalog domain models.

All prices are stored in cents (integer) to avoid floating point issues.
$10.00 = 1000 cents. `price_display` is free text for the dashboard
(e.g. "$500 - $1,000") and is never used in arithmetic.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from core.models.brand import Brand


class ServiceStatus(str, Enum):
    """Whether a service is offered."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Service(BaseModel):
    """Full catalog entry as stored."""

    id: UUID
    brand: Brand
    name: str
    description: str
    category: str
    price_display: str
    price_cents: int
    price_suffix: str | None = None  # "/month", "/episode"
    tags: list[str] = []
    status: ServiceStatus
    stripe_synced: bool = False
    stripe_product_id: str | None = None
    stripe_price_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def catalog_price_id(self) -> str | None:
        """Stripe price to charge, only once the catalog entry is synced."""
        if not self.stripe_synced:
            return None
        return self.stripe_price_id
