"""Client (billing contact) domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, model_validator


class ClientCreate(BaseModel):
    """Data required to create a client."""

    name: str = Field(..., min_length=1, max_length=255)
    company: str = Field(..., max_length=255)
    email: EmailStr


class ClientUpdate(BaseModel):
    """Data that can be updated on a client. At least one field required."""

    name: str | None = Field(None, min_length=1, max_length=255)
    company: str | None = Field(None, max_length=255)
    email: EmailStr | None = None

    @model_validator(mode="after")
    def require_at_least_one_field(self) -> "ClientUpdate":
        """Reject empty updates."""
        if self.name is None and self.company is None and self.email is None:
            raise ValueError("No updates provided")
        return self


class Client(BaseModel):
    """Full client entity as stored."""

    id: UUID
    name: str
    company: str
    email: str
    stripe_customer_id: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def has_billing_customer(self) -> bool:
        """Whether a Stripe customer has been created for this client."""
        return self.stripe_customer_id is not None
