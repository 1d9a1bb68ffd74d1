"""Brand labels shared by the catalog, cart, invoices, and Stripe metadata."""

from enum import Enum


class Brand(str, Enum):
    """Sub-brands that sell services."""

    SANKOFA = "Sankofa"
    LIGHTHOUSE = "Lighthouse"
    CENTEX = "Centex"
    GFAM_MEDIA_STUDIOS = "GFAM Media Studios"


class BillingEntity(str, Enum):
    """Labels an invoice can be attributed to: any sub-brand or the parent."""

    SANKOFA = "Sankofa"
    LIGHTHOUSE = "Lighthouse"
    CENTEX = "Centex"
    GFAM_MEDIA_STUDIOS = "GFAM Media Studios"
    GFAM_AGENCY = "GFAM Agency"

    @classmethod
    def for_brand(cls, brand: Brand) -> "BillingEntity":
        return cls(brand.value)


# Parent organization that owns the Stripe account
PARENT_ORGANIZATION = BillingEntity.GFAM_AGENCY
