"""
Cart line pricing.

All arithmetic is integer cents. An override price (`custom_price_cents`)
always wins over the catalog rate, so the same effective price feeds the
invoice total and the amount charged on Stripe.
"""

from typing import Iterable

from core.exceptions import ValidationError
from core.models import CartLine


def effective_price(line: CartLine) -> int:
    """Unit price to charge in cents: the override if set, else the base rate."""
    if line.custom_price_cents is not None:
        return line.custom_price_cents
    return line.unit_price_cents


def has_price_override(line: CartLine) -> bool:
    return line.custom_price_cents is not None


def is_custom_pricing(line: CartLine) -> bool:
    """Whether the line is priced ad hoc rather than from the catalog."""
    return has_price_override(line) or line.is_custom_item


def validate_quantity(line: CartLine) -> None:
    """
    Reject non-positive or non-integer quantities.

    CartLine already enforces this on construction; this guards lines built
    without validation (model_construct, internal callers).
    """
    if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
        raise ValidationError(f"Quantity for '{line.name}' must be an integer")
    if line.quantity <= 0:
        raise ValidationError(
            f"Quantity for '{line.name}' must be positive, got {line.quantity}"
        )


def line_total(line: CartLine) -> int:
    """Effective unit price times quantity, in cents."""
    validate_quantity(line)
    return effective_price(line) * line.quantity


def invoice_total(lines: Iterable[CartLine]) -> int:
    """Sum of line totals in cents."""
    return sum(line_total(line) for line in lines)
