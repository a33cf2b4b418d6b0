# Overview: Receivables / payables summary per brand.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Invoice, Payment, PurchaseDirect
from ..money import ZERO, money_str, to_decimal
from .payment_service import PAYMENT_IN, PAYMENT_OUT
from .payment_status_service import REF_INVOICE, REF_PURCHASE, REF_SALES_ORDER


def _grouped(query, brand_column) -> dict[int, tuple]:
    return {row[0]: row[1:] for row in query.group_by(brand_column).all()}


def _payments_by_brand(brand_ids, ref_type: str, direction: str, date_from, date_to) -> dict[int, Decimal]:
    query = db.session.query(Payment.brand_profile_id, func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.brand_profile_id.in_(brand_ids),
        Payment.ref_type == ref_type,
        Payment.type == direction,
    )
    if date_from is not None:
        query = query.filter(Payment.paid_at >= date_from)
    if date_to is not None:
        query = query.filter(Payment.paid_at <= date_to)
    return {brand_id: to_decimal(values[0]) for brand_id, values in _grouped(query, Payment.brand_profile_id).items()}


def ar_ap_summary(brand_ids: list[int], date_from=None, date_to=None) -> list[dict]:
    """
    One row per brand.

    AR: invoice totals (by issue_date) against IN payments on invoices;
    IN payments on sales orders are reported alongside.
    AP: direct purchase totals (by date) against OUT payments on purchases.
    Outstanding amounts never go below zero.
    """
    if not brand_ids:
        return []

    invoice_query = db.session.query(
        Invoice.brand_profile_id,
        func.coalesce(func.sum(Invoice.total), 0),
        func.count(Invoice.id),
    ).filter(Invoice.brand_profile_id.in_(brand_ids))
    purchase_query = db.session.query(
        PurchaseDirect.brand_profile_id,
        func.coalesce(func.sum(PurchaseDirect.total), 0),
        func.count(PurchaseDirect.id),
    ).filter(PurchaseDirect.brand_profile_id.in_(brand_ids))
    if date_from is not None:
        invoice_query = invoice_query.filter(Invoice.issue_date >= date_from)
        purchase_query = purchase_query.filter(PurchaseDirect.date >= date_from)
    if date_to is not None:
        invoice_query = invoice_query.filter(Invoice.issue_date <= date_to)
        purchase_query = purchase_query.filter(PurchaseDirect.date <= date_to)

    invoices = _grouped(invoice_query, Invoice.brand_profile_id)
    purchases = _grouped(purchase_query, PurchaseDirect.brand_profile_id)
    paid_invoices = _payments_by_brand(brand_ids, REF_INVOICE, PAYMENT_IN, date_from, date_to)
    paid_orders = _payments_by_brand(brand_ids, REF_SALES_ORDER, PAYMENT_IN, date_from, date_to)
    paid_purchases = _payments_by_brand(brand_ids, REF_PURCHASE, PAYMENT_OUT, date_from, date_to)

    rows = []
    for brand_id in brand_ids:
        invoice_total, invoice_count = invoices.get(brand_id, (0, 0))
        purchase_total, purchase_count = purchases.get(brand_id, (0, 0))
        invoice_total = to_decimal(invoice_total)
        purchase_total = to_decimal(purchase_total)
        payments_invoice = paid_invoices.get(brand_id, ZERO)
        payments_purchase = paid_purchases.get(brand_id, ZERO)
        rows.append({
            "brandProfileId": brand_id,
            "ar": {
                "invoiceTotal": money_str(invoice_total),
                "paymentsInInvoice": money_str(payments_invoice),
                "paymentsInSalesOrder": money_str(paid_orders.get(brand_id, ZERO)),
                "outstanding": money_str(max(ZERO, invoice_total - payments_invoice)),
                "invoiceCount": int(invoice_count),
            },
            "ap": {
                "purchaseTotal": money_str(purchase_total),
                "paymentsOutPurchase": money_str(payments_purchase),
                "outstanding": money_str(max(ZERO, purchase_total - payments_purchase)),
                "purchaseCount": int(purchase_count),
            },
        })
    return rows
