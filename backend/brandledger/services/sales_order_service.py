# Overview: Sales order lifecycle; creation, updates whose status changes drive the stock engine, deletion.

from __future__ import annotations

import logging
from datetime import timedelta

from ..extensions import db
from ..models import SalesOrder, SalesOrderItem
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_text,
    parse_datetime_input,
)
from .concurrency import lock_for_update, run_guarded
from .numbering_service import next_sales_order_number, peek_sales_order_number
from .payment_status_service import REF_SALES_ORDER, recalc_payment_status_for_ref
from .pricing_service import compute_totals, normalize_items
from .stock_service import (
    ShipmentState,
    apply_sales_order_status_change,
    sales_order_lines,
    sales_order_stock_outstanding,
)
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "Draft"


def _customer_name(payload: dict) -> str | None:
    raw = payload.get("customerName", payload.get("customer_name"))
    if raw is None and isinstance(payload.get("customer"), dict):
        raw = payload["customer"].get("name")
    return optional_text(raw)


def _normalized_items(raw_items, empty_message: str):
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(empty_message)
    items = normalize_items(raw_items)
    if any(not item.product for item in items):
        raise ValidationError("Nama produk/jasa tidak boleh kosong")
    return items


def _build_items(items) -> list[SalesOrderItem]:
    return [
        SalesOrderItem(
            product_id=item.product_id,
            product=item.product,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            price=item.price,
            discount=item.discount,
            subtotal=item.subtotal,
        )
        for item in items
    ]


def _apply_totals(order: SalesOrder, totals) -> None:
    order.subtotal = totals.subtotal
    order.line_discount = totals.line_discount
    order.extra_discount = totals.extra_discount
    order.tax_mode = totals.tax_mode
    order.tax_amount = totals.tax_amount
    order.total_amount = totals.total


def _get_locked(tenant: TenantContext, order_id: int) -> SalesOrder:
    order = lock_for_update(
        db.session.query(SalesOrder).filter_by(id=order_id, brand_profile_id=tenant.brand_id)
    ).first()
    if not order:
        raise NotFoundError("Sales order tidak ditemukan")
    return order


def create_sales_order(tenant: TenantContext, payload: dict) -> SalesOrder:
    """
    Create a sales order with its lines.

    The order number is generated (SO-YYYY-NNNN) unless one is given.
    An order created directly in a ship-like status ships its stock.
    """
    customer_name = _customer_name(payload)
    if not customer_name:
        raise ValidationError("Customer wajib diisi")
    items = _normalized_items(payload.get("items"), "Minimal satu item diperlukan")
    order_date = parse_datetime_input(payload.get("date"), "date")
    totals = compute_totals(items, payload.get("extraDiscount", 0), payload.get("taxMode", "none"))
    status = optional_text(payload.get("status")) or DEFAULT_STATUS
    requested_number = optional_text(payload.get("orderNumber"))

    def _op() -> SalesOrder:
        order = SalesOrder(
            brand_profile_id=tenant.brand_id,
            order_number=requested_number or next_sales_order_number(tenant.brand_id),
            customer_name=customer_name,
            date=order_date,
            status=status,
            notes=optional_text(payload.get("notes")),
            created_by_user_id=tenant.user_id,
        )
        _apply_totals(order, totals)
        order.items = _build_items(items)
        db.session.add(order)
        db.session.flush()

        apply_sales_order_status_change(order, DEFAULT_STATUS, tenant.user_id)

        db.session.commit()
        return order

    order = run_guarded(_op)
    logger.info("Sales order %s created for brand %s", order.order_number, tenant.brand_id)
    return order


def update_sales_order(tenant: TenantContext, order_id: int, payload: dict) -> SalesOrder:
    """
    Update a sales order.

    Without "items" only the given header fields change. With "items" the
    lines are replaced and totals recomputed. A status change runs the
    stock engine in the same transaction.

    Items of an order with outstanding shipped stock can only be replaced
    by the update that un-ships it; the reversal then uses the lines that
    were shipped.
    """
    header_only = "items" not in payload
    items = None
    totals = None
    if not header_only:
        items = _normalized_items(payload.get("items"), "Items tidak boleh kosong")
        totals = compute_totals(items, payload.get("extraDiscount", 0), payload.get("taxMode", "none"))

    changes = {}
    if "orderNumber" in payload:
        number = optional_text(payload.get("orderNumber"))
        if not number:
            raise ValidationError("Nomor sales order tidak boleh kosong")
        changes["order_number"] = number
    if "customerName" in payload or "customer_name" in payload:
        name = _customer_name(payload)
        if not name:
            raise ValidationError("Customer wajib diisi")
        changes["customer_name"] = name
    if "date" in payload:
        changes["date"] = parse_datetime_input(payload.get("date"), "date")
    if "status" in payload:
        status = optional_text(payload.get("status"))
        if not status:
            raise ValidationError("Status tidak boleh kosong")
        changes["status"] = status
    if "notes" in payload:
        changes["notes"] = optional_text(payload.get("notes"))

    if header_only and not changes:
        raise ValidationError("Tidak ada perubahan yang dikirim")

    def _op() -> SalesOrder:
        order = _get_locked(tenant, order_id)
        previous_status = order.status
        lines_before = sales_order_lines(order)
        outstanding = sales_order_stock_outstanding(order)

        if not header_only and outstanding:
            unshipping = (
                ShipmentState.from_status(previous_status) == ShipmentState.SHIPPED
                and ShipmentState.from_status(changes.get("status", previous_status)) != ShipmentState.SHIPPED
            )
            if not unshipping:
                raise ConflictError(
                    "Sales order sudah dikirim; item tidak bisa diubah sebelum stok dikembalikan"
                )

        for attr, value in changes.items():
            setattr(order, attr, value)

        if not header_only:
            order.items = _build_items(items)
            _apply_totals(order, totals)

        if "status" in changes:
            apply_sales_order_status_change(
                order, previous_status, tenant.user_id, lines=lines_before if outstanding else None
            )

        if not header_only:
            recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, order.id)

        db.session.commit()
        return order

    order = run_guarded(_op)
    logger.info("Sales order %s updated", order.order_number)
    return order


def delete_sales_order(tenant: TenantContext, order_id: int) -> None:
    """
    Delete a sales order and its lines.

    Refused while shipped stock has not been reversed; move the order out
    of its shipped status first.
    """
    def _op() -> str:
        order = _get_locked(tenant, order_id)
        if sales_order_stock_outstanding(order):
            raise ConflictError(
                "Sales order sudah dikirim; ubah status terlebih dahulu agar stok dikembalikan"
            )
        number = order.order_number
        db.session.delete(order)
        db.session.commit()
        return number

    number = run_guarded(_op)
    logger.info("Sales order %s deleted", number)


def get_sales_order(tenant: TenantContext, order_id: int) -> SalesOrder:
    order = db.session.query(SalesOrder).filter_by(id=order_id, brand_profile_id=tenant.brand_id).first()
    if not order:
        raise NotFoundError("Sales order tidak ditemukan")
    return order


def list_sales_orders(
    tenant: TenantContext,
    *,
    statuses: list[str] | None = None,
    range_days: int | None = None,
) -> list[SalesOrder]:
    """Newest first. range_days keeps orders dated within the last N days."""
    query = db.session.query(SalesOrder).filter(SalesOrder.brand_profile_id == tenant.brand_id)
    if statuses:
        query = query.filter(SalesOrder.status.in_(statuses))
    if range_days:
        now = utcnow()
        query = query.filter(SalesOrder.date >= now - timedelta(days=range_days), SalesOrder.date < now)
    return query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()).all()


def preview_sales_order_number(tenant: TenantContext) -> str:
    return peek_sales_order_number(tenant.brand_id)
