"""Billing configuration."""

from pydantic import BaseModel, Field

from core.exceptions import ConfigurationError
from core.models import BillingEntity


class BillingConfig(BaseModel):
    """
    Invoice and catalog defaults.

    Money is always integer cents in `currency`.
    """

    currency: str = Field(
        default="usd",
        description="ISO currency code for all Stripe prices",
        min_length=3,
        max_length=3,
    )
    days_until_due: int = Field(
        default=30,
        description="Payment terms for invoices sent by Stripe",
        ge=1,
        le=365,
    )
    catalog_sync_delay_seconds: float = Field(
        default=0.1,
        description="Pause between catalog sync calls to stay under Stripe rate limits",
        ge=0,
    )
    customer_lock_seconds: int = Field(
        default=30,
        description="TTL of the per-client lock held while creating a Stripe customer",
        ge=1,
    )
    customer_lock_wait_seconds: float = Field(
        default=5.0,
        description="How long to wait for another request's customer creation",
        ge=0,
    )


def brand_account_field(entity: BillingEntity) -> str:
    """Field under billing/stripe_accounts in Vault holding an entity's account id."""
    return entity.value.lower().replace(" ", "_")


# Organization API keys need a Stripe account id on every request
_ORGANIZATION_KEY_PREFIXES = ("sk_org_", "rk_")


class StripeSettings(BaseModel):
    """
    Stripe credentials as loaded from Vault.

    Values may be missing; the accessors raise ConfigurationError the first
    time a missing value is actually needed.
    """

    secret_key: str | None = None
    webhook_secret: str | None = None
    # BillingEntity value -> Stripe account id
    brand_account_ids: dict[str, str] = Field(default_factory=dict)

    @property
    def is_organization_key(self) -> bool:
        """Whether the secret key is organization-scoped (sk_org_* / rk_*)."""
        return bool(self.secret_key) and self.secret_key.startswith(_ORGANIZATION_KEY_PREFIXES)

    def require_secret_key(self) -> str:
        if not self.secret_key:
            raise ConfigurationError(
                "Missing Stripe secret key. Set 'secret_key' under billing/stripe in Vault."
            )
        return self.secret_key

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret:
            raise ConfigurationError(
                "Missing Stripe webhook secret. Set 'webhook_secret' under billing/stripe in Vault."
            )
        return self.webhook_secret

    def account_id_for(self, entity: BillingEntity) -> str | None:
        return self.brand_account_ids.get(entity.value)

    def missing_brand_accounts(self) -> list[BillingEntity]:
        """Entities without a sub-account id. Empty unless using an organization key."""
        if not self.is_organization_key:
            return []
        return [e for e in BillingEntity if self.account_id_for(e) is None]
