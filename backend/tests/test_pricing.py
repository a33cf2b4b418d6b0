# Overview: Pytest coverage for line normalization and document totals.

from decimal import Decimal

import pytest

from brandledger.services.pricing_service import compute_totals, normalize_items, parse_tax_mode
from brandledger.validation import ValidationError


def _items(*lines):
    return normalize_items(list(lines))


class TestNormalizeItems:
    def test_clamps_values(self):
        [item] = _items({"product": " Kaos ", "quantity": "2.5", "price": -10, "discount": 5})
        assert item.product == "Kaos"
        assert item.quantity == 3
        assert item.price == Decimal("0")
        assert item.discount == Decimal("0")
        assert item.unit == "pcs"

    def test_discount_capped_at_line_value(self):
        [item] = _items({"product": "Kaos", "quantity": 2, "price": 100, "discount": 500})
        assert item.subtotal == Decimal("200")
        assert item.discount == Decimal("200")

    def test_negative_quantity_floors_at_zero(self):
        [item] = _items({"product": "Kaos", "qty": -4, "price": 100})
        assert item.quantity == 0

    def test_product_id_accepts_both_spellings(self):
        first, second, third = _items(
            {"product": "A", "productId": "3"},
            {"product": "B", "product_id": 4},
            {"product": "C", "productId": "x"},
        )
        assert (first.product_id, second.product_id, third.product_id) == (3, 4, None)

    def test_junk_numbers_become_zero(self):
        [item] = _items({"product": "Kaos", "quantity": "banyak", "price": "mahal"})
        assert item.quantity == 0
        assert item.price == Decimal("0")

    @pytest.mark.parametrize("line", [
        {"product": "Kaos", "quantity": 1, "price": "1e30"},
        {"product": "Kaos", "quantity": "1e30", "price": 1},
        {"product": "Kaos", "quantity": 3000000000, "price": 1},
    ])
    def test_oversized_numbers_rejected(self, line):
        with pytest.raises(ValidationError):
            _items(line)


class TestComputeTotals:
    def test_no_tax(self):
        totals = compute_totals(_items({"product": "A", "quantity": 2, "price": 50000, "discount": 10000}), 5000)
        assert totals.subtotal == Decimal("100000")
        assert totals.line_discount == Decimal("10000")
        assert totals.extra_discount == Decimal("5000")
        assert totals.tax_amount == Decimal("0")
        assert totals.total == Decimal("85000")

    def test_exclusive_tax_added(self):
        totals = compute_totals(_items({"product": "A", "quantity": 1, "price": 100000}), 0, "ppn_11_exclusive")
        assert totals.tax_amount == Decimal("11000")
        assert totals.total == Decimal("111000")

    def test_inclusive_tax_carved_out(self):
        totals = compute_totals(_items({"product": "A", "quantity": 1, "price": 111000}), 0, "ppn_11_inclusive")
        assert totals.tax_amount == Decimal("11000")
        assert totals.total == Decimal("111000")

    def test_extra_discount_capped(self):
        totals = compute_totals(_items({"product": "A", "quantity": 1, "price": 1000}), 5000)
        assert totals.extra_discount == Decimal("1000")
        assert totals.total == Decimal("0")

    def test_unknown_tax_mode_is_none(self):
        assert parse_tax_mode("vat_20") == ("none", 0, False)

    def test_total_beyond_money_range_rejected(self):
        items = _items({"product": "A", "quantity": 2, "price": "9000000000000000"})
        with pytest.raises(ValidationError):
            compute_totals(items)
