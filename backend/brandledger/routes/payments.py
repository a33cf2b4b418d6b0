# Overview: Flask API routes for payments and receipts; parses input and returns JSON envelopes.

"""
Payment API Routes

POST /api/payments          record a payment and issue its receipt
GET  /api/payments          list with IN/OUT sums and a method breakdown
GET  /api/receipts/<id>     receipt with its payment

Payments are append-only: there is no update or delete route.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import payment_service
from ..validation import ServiceError, parse_datetime_input, parse_pagination, parse_positive_int

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")
receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@payments_bp.post("")
@require_auth
@with_tenant
def record_payment_route():
    """
    Request body:
    {
        "type": "IN" | "OUT",
        "method": "CASH" | "BCA" | "BRI" | "OTHER",   (default CASH)
        "amount": 40000,
        "paidAt": "2025-01-31T10:00:00Z",              (optional)
        "refType": "SALES_ORDER" | "INVOICE" | "PURCHASE" | "EXPENSE",
        "refId": 12,
        "notes": "DP",                                 (optional)
        "brandProfileId": 2                            (optional override)
    }

    Returns:
        200: {payment, receipt, expenseLink, document}
        400: invalid input (nothing written)
        409: receipt number collision (nothing written)
    """
    try:
        data = request.get_json(silent=True) or {}
        result = payment_service.record_payment(
            g.tenant,
            type=data.get("type"),
            method=data.get("method"),
            amount=data.get("amount"),
            paid_at=data.get("paidAt"),
            ref_type=data.get("refType"),
            ref_id=data.get("refId"),
            notes=data.get("notes"),
        )
        return ok(result.to_dict(), message="Pembayaran berhasil dicatat")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return fail("Gagal membuat pembayaran", 500)


@payments_bp.get("")
@require_auth
@with_tenant
def list_payments_route():
    """
    Query params: page, pageSize, type, method, refType, refId, dateFrom, dateTo.
    """
    try:
        args = request.args
        page, page_size = parse_pagination(args, max_size=current_app.config["PAGE_SIZE_MAX"])
        result = payment_service.list_payments(
            g.tenant,
            page=page,
            page_size=page_size,
            type=(args.get("type") or "").upper() or None,
            method=(args.get("method") or "").upper() or None,
            ref_type=(args.get("refType") or "").upper() or None,
            ref_id=parse_positive_int(args.get("refId"), "refId", required=False),
            date_from=parse_datetime_input(args.get("dateFrom"), "dateFrom", default_now=False),
            date_to=parse_datetime_input(args.get("dateTo"), "dateTo", default_now=False),
        )
        items = result.pop("items")
        return ok(items, **result)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return fail("Gagal memuat payments", 500)


@receipts_bp.get("/<int:receipt_id>")
@require_auth
@with_tenant
def get_receipt_route(receipt_id: int):
    try:
        receipt = payment_service.get_receipt(g.tenant, receipt_id)
        return ok(receipt.to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load receipt")
        return fail("Gagal memuat kwitansi", 500)
