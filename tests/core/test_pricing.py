"""Tests for cart line pricing."""

import pytest

from core.exceptions import ValidationError
from core.models import Brand, CartLine
from core.pricing import (
    effective_price,
    has_price_override,
    invoice_total,
    is_custom_pricing,
    line_total,
    validate_quantity,
)


def _line(**overrides) -> CartLine:
    data = {
        "brand": Brand.SANKOFA,
        "category": "Strategy",
        "name": "Brand Audit",
        "quantity": 1,
        "unit_price_cents": 100000,
    }
    data.update(overrides)
    return CartLine(**data)


class TestEffectivePrice:
    """Override wins over the base rate."""

    def test_base_rate_without_override(self):
        assert effective_price(_line()) == 100000

    def test_override_replaces_base_rate(self):
        line = _line(custom_price_cents=110000)
        assert effective_price(line) == 110000

    def test_zero_override_is_still_an_override(self):
        """A free line is an override, not a missing value."""
        line = _line(custom_price_cents=0)
        assert effective_price(line) == 0
        assert has_price_override(line) is True


class TestLineTotal:

    def test_multiplies_by_quantity(self):
        assert line_total(_line(quantity=3)) == 300000

    def test_uses_override(self):
        assert line_total(_line(quantity=2, custom_price_cents=110000)) == 220000


class TestIsCustomPricing:

    def test_catalog_line_is_not_custom(self):
        assert is_custom_pricing(_line()) is False

    def test_override_is_custom(self):
        assert is_custom_pricing(_line(custom_price_cents=5000)) is True

    def test_ad_hoc_item_is_custom(self):
        assert is_custom_pricing(_line(is_custom_item=True)) is True


class TestValidateQuantity:
    """Quantities must be positive integers."""

    def test_model_rejects_zero(self):
        with pytest.raises(ValueError):
            _line(quantity=0)

    def test_unvalidated_zero_rejected(self):
        """Lines built without validation are still checked."""
        line = _line().model_copy(update={"quantity": 0})
        with pytest.raises(ValidationError, match="must be positive"):
            validate_quantity(line)

    def test_unvalidated_negative_rejected(self):
        line = _line().model_copy(update={"quantity": -2})
        with pytest.raises(ValidationError):
            line_total(line)

    def test_unvalidated_bool_rejected(self):
        line = _line().model_copy(update={"quantity": True})
        with pytest.raises(ValidationError, match="integer"):
            validate_quantity(line)


class TestInvoiceTotal:

    def test_sums_effective_line_totals(self):
        lines = [
            _line(unit_price_cents=100000, custom_price_cents=110000),
            _line(brand=Brand.LIGHTHOUSE, unit_price_cents=50000, quantity=2),
            _line(brand=Brand.CENTEX, unit_price_cents=130000),
        ]
        assert invoice_total(lines) == 340000

    def test_empty_is_zero(self):
        assert invoice_total([]) == 0
