# Overview: Line normalization and document totals (discounts, PPN tax modes) for sales orders and invoices.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from ..money import ZERO, to_decimal
from ..validation import MAX_MONEY, MAX_QUANTITY, ValidationError, optional_text

TAX_NONE = "none"

# tax_mode -> (rate percent, price already includes tax)
TAX_MODES = {
    TAX_NONE: (0, False),
    "ppn_11_inclusive": (11, True),
    "ppn_11_exclusive": (11, False),
    "ppn_12_inclusive": (12, True),
    "ppn_12_exclusive": (12, False),
}

DEFAULT_UNIT = "pcs"


@dataclass
class NormalizedItem:
    product_id: int | None
    product: str
    description: str
    quantity: int
    unit: str
    price: Decimal
    discount: Decimal
    subtotal: Decimal


@dataclass
class Totals:
    subtotal: Decimal
    line_discount: Decimal
    extra_discount: Decimal
    tax_mode: str
    tax_amount: Decimal
    total: Decimal


def _number(value) -> Decimal:
    """Junk becomes 0; finite values beyond the money range are rejected."""
    try:
        parsed = to_decimal(value)
    except ArithmeticError:
        return ZERO
    if not parsed.is_finite():
        return ZERO
    if abs(parsed) > MAX_MONEY:
        raise ValidationError("Angka terlalu besar")
    return parsed


def _round_whole(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _product_id(raw: dict) -> int | None:
    value = raw.get("productId", raw.get("product_id"))
    parsed = _number(value)
    if parsed > 0 and parsed == parsed.to_integral_value():
        return int(parsed)
    return None


def normalize_items(raw_items: list) -> list[NormalizedItem]:
    """
    Clamp client-supplied lines into a consistent shape.

    quantity is rounded to a whole number and floored at 0; price is
    floored at 0; discount is clamped to [0, quantity * price].
    """
    items = []
    for raw in raw_items:
        raw = raw if isinstance(raw, dict) else {}
        qty_raw = raw["quantity"] if "quantity" in raw else raw.get("qty", 0)
        quantity = max(0, int(_round_whole(_number(qty_raw))))
        if quantity > MAX_QUANTITY:
            raise ValidationError("Jumlah item terlalu besar")
        price = max(ZERO, _number(raw.get("price")))
        base = quantity * price
        discount = min(base, max(ZERO, _number(raw.get("discount"))))
        items.append(
            NormalizedItem(
                product_id=_product_id(raw),
                product=str(raw.get("product") or "").strip(),
                description=str(raw.get("description") or ""),
                quantity=quantity,
                unit=optional_text(raw.get("unit")) or DEFAULT_UNIT,
                price=price,
                discount=discount,
                subtotal=base,
            )
        )
    return items


def parse_tax_mode(raw) -> tuple[str, int, bool]:
    """Unknown modes fall back to no tax."""
    key = raw if raw in TAX_MODES else TAX_NONE
    rate, inclusive = TAX_MODES[key]
    return key, rate, inclusive


def compute_totals(items: list[NormalizedItem], extra_discount_raw=None, tax_mode_raw=None) -> Totals:
    """
    Document totals.

    Inclusive modes carve the tax out of the discounted base (total stays
    the base); exclusive modes add it on top. Tax is rounded to whole
    rupiah.
    """
    subtotal = sum((it.subtotal for it in items), ZERO)
    line_discount = sum((it.discount for it in items), ZERO)
    base_after_line = max(ZERO, subtotal - line_discount)
    extra_discount = min(base_after_line, max(ZERO, _number(extra_discount_raw)))
    base = max(ZERO, base_after_line - extra_discount)

    key, rate, inclusive = parse_tax_mode(tax_mode_raw)
    if rate == 0:
        tax_amount = ZERO
    elif inclusive:
        tax_amount = _round_whole(base * rate / (100 + rate))
    else:
        tax_amount = _round_whole(base * rate / 100)

    total = base if inclusive else base + tax_amount
    if subtotal > MAX_MONEY or total > MAX_MONEY:
        raise ValidationError("Total dokumen terlalu besar")
    return Totals(
        subtotal=subtotal,
        line_discount=line_discount,
        extra_discount=extra_discount,
        tax_mode=key,
        tax_amount=tax_amount,
        total=total,
    )
