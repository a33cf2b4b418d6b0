# Overview: Customer invoices; same line and tax rules as sales orders, settled by IN payments.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Invoice, InvoiceItem, SalesOrder
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_text,
    parse_datetime_input,
    parse_positive_int,
)
from .concurrency import run_guarded
from .numbering_service import next_invoice_number, peek_invoice_number
from .pricing_service import compute_totals, normalize_items
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "Draft"


def create_invoice(tenant: TenantContext, payload: dict) -> Invoice:
    """
    Create an invoice. Number INV-YYYY-NNNN is generated when absent.

    salesOrderId, when given, must be an order of the same brand.
    """
    customer_name = optional_text(payload.get("customerName"))
    if not customer_name:
        raise ValidationError("Customer wajib diisi")
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Minimal satu item diperlukan")
    items = normalize_items(raw_items)
    if any(not item.product for item in items):
        raise ValidationError("Nama produk/jasa tidak boleh kosong")

    issue_date = parse_datetime_input(payload.get("issueDate"), "issueDate")
    due_date = parse_datetime_input(payload.get("dueDate"), "dueDate", default_now=False)
    sales_order_id = parse_positive_int(payload.get("salesOrderId"), "salesOrderId", required=False)
    totals = compute_totals(items, payload.get("extraDiscount", 0), payload.get("taxMode", "none"))
    requested_number = optional_text(payload.get("invoiceNumber"))

    def _op() -> Invoice:
        if sales_order_id is not None:
            order = db.session.query(SalesOrder.id).filter_by(
                id=sales_order_id, brand_profile_id=tenant.brand_id
            ).first()
            if not order:
                raise ValidationError("Sales order tidak ditemukan")

        invoice = Invoice(
            brand_profile_id=tenant.brand_id,
            invoice_number=requested_number or next_invoice_number(tenant.brand_id),
            sales_order_id=sales_order_id,
            customer_name=customer_name,
            issue_date=issue_date,
            due_date=due_date,
            status=optional_text(payload.get("status")) or DEFAULT_STATUS,
            notes=optional_text(payload.get("notes")),
            subtotal=totals.subtotal,
            line_discount=totals.line_discount,
            extra_discount=totals.extra_discount,
            tax_mode=totals.tax_mode,
            tax_amount=totals.tax_amount,
            total=totals.total,
            created_by_user_id=tenant.user_id,
        )
        invoice.items = [
            InvoiceItem(
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
        db.session.add(invoice)
        db.session.commit()
        return invoice

    invoice = run_guarded(_op)
    logger.info("Invoice %s created for brand %s", invoice.invoice_number, tenant.brand_id)
    return invoice


def get_invoice(tenant: TenantContext, invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id, brand_profile_id=tenant.brand_id).first()
    if not invoice:
        raise NotFoundError("Invoice tidak ditemukan")
    return invoice


def list_invoices(tenant: TenantContext, *, statuses: list[str] | None = None) -> list[Invoice]:
    query = db.session.query(Invoice).filter(Invoice.brand_profile_id == tenant.brand_id)
    if statuses:
        query = query.filter(Invoice.status.in_(statuses))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def preview_invoice_number(tenant: TenantContext) -> str:
    return peek_invoice_number(tenant.brand_id)
