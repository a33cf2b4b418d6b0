# Overview: Direct purchase lifecycle; create/update, receive (stock IN) and delete (stock reversal).

"""
Direct Purchase Service ("Pembelian Langsung")

LIFECYCLE:
    Draft --receive--> Received --delete--> (gone, stock reversed)

- create: number PL-YYYYMM-NNNN generated when not supplied;
  total = sum(qty * unit_cost) + shipping_cost + fee + tax
- update: header fields, costs and (while Draft) lines; totals and the
  paid cache are recomputed
- receive: idempotent; the first call flips status and writes IN mutations
- delete: a received purchase first gets its OUT reversals, then the rows
  go, all in one transaction

OUT payments with ref_type PURCHASE settle the purchase (see payment_service).
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db
from ..models import PurchaseDirect, PurchaseDirectItem
from ..money import ZERO, to_decimal
from ..time_utils import utcnow
from ..validation import (
    MAX_MONEY,
    MAX_QUANTITY,
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_datetime_input,
    parse_decimal,
    parse_positive_int,
)
from .concurrency import lock_for_update, run_guarded
from .numbering_service import next_purchase_number, peek_purchase_number
from .payment_status_service import REF_PURCHASE, recalc_payment_status_for_ref
from .stock_service import apply_purchase_stock, reverse_purchase_stock
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)

STATUS_DRAFT = "Draft"
STATUS_RECEIVED = "Received"

DEFAULT_SUPPLIER = "Marketplace"
DEFAULT_UNIT = "pcs"

COST_FIELDS = (("shippingCost", "shipping_cost"), ("fee", "fee"), ("tax", "tax"))


def _cost(value, field: str) -> Decimal:
    amount = parse_decimal(value, field, default=ZERO)
    if amount < ZERO:
        raise ValidationError(f"{field} tidak boleh negatif")
    return amount


def _normalize_lines(raw_items) -> list[dict]:
    if not isinstance(raw_items, list):
        raise ValidationError("Items harus berupa daftar")
    lines = []
    for raw in raw_items:
        raw = raw if isinstance(raw, dict) else {}
        name = optional_text(raw.get("name"))
        if not name:
            raise ValidationError("Nama barang tidak boleh kosong")
        qty = parse_decimal(raw.get("qty"), "qty", default=ZERO)
        qty = max(0, int(qty.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))
        if qty > MAX_QUANTITY:
            raise ValidationError("qty terlalu besar")
        unit_cost_raw = raw.get("unitCost")
        if unit_cost_raw is None:
            unit_cost_raw = raw.get("price")
        unit_cost = max(ZERO, parse_decimal(unit_cost_raw, "unitCost", default=ZERO))
        lines.append({
            "product_id": parse_positive_int(raw.get("productId"), "productId", required=False),
            "name": name,
            "description": optional_text(raw.get("description")),
            "qty": qty,
            "unit": optional_text(raw.get("unit")) or DEFAULT_UNIT,
            "unit_cost": unit_cost,
        })
    return lines


def _lines_subtotal(lines) -> Decimal:
    subtotal = sum((line["qty"] * line["unit_cost"] for line in lines), ZERO)
    if subtotal > MAX_MONEY:
        raise ValidationError("Total pembelian terlalu besar")
    return subtotal


def _recompute_total(purchase: PurchaseDirect) -> None:
    purchase.total = (
        to_decimal(purchase.subtotal)
        + to_decimal(purchase.shipping_cost)
        + to_decimal(purchase.fee)
        + to_decimal(purchase.tax)
    )
    if purchase.total > MAX_MONEY:
        raise ValidationError("Total pembelian terlalu besar")


def _get_locked(tenant: TenantContext, purchase_id: int) -> PurchaseDirect:
    purchase = lock_for_update(
        db.session.query(PurchaseDirect).filter_by(id=purchase_id, brand_profile_id=tenant.brand_id)
    ).first()
    if not purchase:
        raise NotFoundError("Pembelian tidak ditemukan")
    return purchase


def create_purchase(tenant: TenantContext, payload: dict) -> PurchaseDirect:
    lines = _normalize_lines(payload.get("items") or [])
    costs = {attr: _cost(payload.get(key), key) for key, attr in COST_FIELDS}
    purchase_date = parse_datetime_input(payload.get("date"), "date")
    requested_number = optional_text(payload.get("purchaseNumber"))

    def _op() -> PurchaseDirect:
        purchase = PurchaseDirect(
            brand_profile_id=tenant.brand_id,
            purchase_number=requested_number or next_purchase_number(tenant.brand_id),
            date=purchase_date,
            supplier_name=optional_text(payload.get("supplierName")) or DEFAULT_SUPPLIER,
            marketplace_order_id=optional_text(payload.get("marketplaceOrderId")),
            notes=optional_text(payload.get("notes")),
            status=STATUS_DRAFT,
            subtotal=_lines_subtotal(lines),
            created_by_user_id=tenant.user_id,
            **costs,
        )
        _recompute_total(purchase)
        purchase.items = [PurchaseDirectItem(**line) for line in lines]
        db.session.add(purchase)
        db.session.commit()
        return purchase

    purchase = run_guarded(_op)
    logger.info("Purchase %s created for brand %s", purchase.purchase_number, tenant.brand_id)
    return purchase


def update_purchase(tenant: TenantContext, purchase_id: int, payload: dict) -> PurchaseDirect:
    """
    Partial update. Lines can only be replaced while the purchase is Draft,
    since received lines already moved stock.
    """
    lines = _normalize_lines(payload["items"]) if payload.get("items") is not None else None
    costs = {
        attr: _cost(payload.get(key), key)
        for key, attr in COST_FIELDS
        if payload.get(key) is not None
    }
    header = {}
    if payload.get("purchaseNumber") is not None:
        number = optional_text(payload.get("purchaseNumber"))
        if not number:
            raise ValidationError("Nomor pembelian tidak boleh kosong")
        header["purchase_number"] = number
    if payload.get("date") is not None:
        header["date"] = parse_datetime_input(payload.get("date"), "date")
    for key, attr in (("supplierName", "supplier_name"), ("marketplaceOrderId", "marketplace_order_id"), ("notes", "notes")):
        if payload.get(key) is not None:
            header[attr] = optional_text(payload.get(key))

    def _op() -> PurchaseDirect:
        purchase = _get_locked(tenant, purchase_id)

        for attr, value in header.items():
            setattr(purchase, attr, value)
        for attr, value in costs.items():
            setattr(purchase, attr, value)

        if lines is not None:
            if purchase.status == STATUS_RECEIVED:
                raise ConflictError("Pembelian sudah diterima; item tidak dapat diubah")
            purchase.items = [PurchaseDirectItem(**line) for line in lines]
            purchase.subtotal = _lines_subtotal(lines)

        if lines is not None or costs:
            _recompute_total(purchase)
            recalc_payment_status_for_ref(tenant.brand_id, REF_PURCHASE, purchase.id)

        db.session.commit()
        return purchase

    return run_guarded(_op)


def receive_purchase(tenant: TenantContext, purchase_id: int) -> PurchaseDirect:
    """Mark received and add stock. Receiving twice returns the purchase unchanged."""
    def _op() -> PurchaseDirect:
        purchase = _get_locked(tenant, purchase_id)
        if purchase.status == STATUS_RECEIVED:
            return purchase

        purchase.status = STATUS_RECEIVED
        purchase.received_at = utcnow()
        apply_purchase_stock(purchase, tenant.user_id)

        db.session.commit()
        return purchase

    return run_guarded(_op)


def delete_purchase(tenant: TenantContext, purchase_id: int) -> None:
    """Reverse received stock, then delete the purchase and its lines."""
    def _op() -> str:
        purchase = _get_locked(tenant, purchase_id)
        if purchase.status == STATUS_RECEIVED:
            reverse_purchase_stock(purchase, tenant.user_id)
        number = purchase.purchase_number
        db.session.delete(purchase)
        db.session.commit()
        return number

    number = run_guarded(_op)
    logger.info("Purchase %s deleted", number)


def get_purchase(tenant: TenantContext, purchase_id: int) -> PurchaseDirect:
    purchase = db.session.query(PurchaseDirect).filter_by(id=purchase_id, brand_profile_id=tenant.brand_id).first()
    if not purchase:
        raise NotFoundError("Pembelian tidak ditemukan")
    return purchase


def list_purchases(
    tenant: TenantContext,
    *,
    q: str | None = None,
    status: str | None = None,
    date_from=None,
    date_to=None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    query = db.session.query(PurchaseDirect).filter(PurchaseDirect.brand_profile_id == tenant.brand_id)
    if q:
        pattern = f"%{q}%"
        query = query.filter(db.or_(
            PurchaseDirect.purchase_number.ilike(pattern),
            PurchaseDirect.supplier_name.ilike(pattern),
        ))
    if status:
        query = query.filter(PurchaseDirect.status == status)
    if date_from is not None:
        query = query.filter(PurchaseDirect.date >= date_from)
    if date_to is not None:
        query = query.filter(PurchaseDirect.date <= date_to)

    total = query.count()
    rows = (
        query.order_by(PurchaseDirect.created_at.desc(), PurchaseDirect.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": [row.to_dict() for row in rows],
        "total": total,
        "page": page,
        "pageSize": page_size,
    }


def preview_purchase_number(tenant: TenantContext) -> str:
    return peek_purchase_number(tenant.brand_id)
