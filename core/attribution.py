"""
Brand attribution for invoices.

An invoice is attributed to its only brand when every line shares one,
otherwise to the parent organization.
"""

from typing import Sequence

from core.exceptions import ValidationError
from core.models import Brand, BillingEntity, CartLine, PARENT_ORGANIZATION


def participating_brands(lines: Sequence[CartLine]) -> list[Brand]:
    """Distinct brands in first-seen order."""
    if not lines:
        raise ValidationError("An invoice must have at least one line item")

    brands: list[Brand] = []
    for line in lines:
        if line.brand not in brands:
            brands.append(line.brand)
    return brands


def primary_brand(lines: Sequence[CartLine]) -> BillingEntity:
    """The sole brand, or the parent organization for mixed carts."""
    brands = participating_brands(lines)
    if len(brands) == 1:
        return BillingEntity.for_brand(brands[0])
    return PARENT_ORGANIZATION


def brand_description(brands: Sequence[Brand]) -> str:
    """Human-readable invoice description, e.g. 'Services by Sankofa & Centex'."""
    return f"Services by {' & '.join(b.value for b in brands)}"
