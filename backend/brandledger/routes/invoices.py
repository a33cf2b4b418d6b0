# Overview: Flask API routes for customer invoices.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import invoice_service
from ..validation import ServiceError

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@with_tenant
def list_invoices_route():
    try:
        statuses = [s.strip() for s in (request.args.get("status") or "").split(",") if s.strip()]
        invoices = invoice_service.list_invoices(g.tenant, statuses=statuses)
        return ok([invoice.to_dict() for invoice in invoices])
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return fail("Gagal mengambil invoice", 500)


@invoices_bp.post("")
@require_auth
@with_tenant
def create_invoice_route():
    try:
        invoice = invoice_service.create_invoice(g.tenant, request.get_json(silent=True) or {})
        return ok(invoice.to_dict(), message="Invoice berhasil dibuat", status=201)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return fail("Gagal membuat invoice", 500)


@invoices_bp.get("/next-number")
@require_auth
@with_tenant
def next_invoice_number_route():
    try:
        return ok({"number": invoice_service.preview_invoice_number(g.tenant)})
    except Exception:
        current_app.logger.exception("Failed to preview invoice number")
        return fail("Gagal menghitung nomor", 500)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@with_tenant
def get_invoice_route(invoice_id: int):
    try:
        return ok(invoice_service.get_invoice(g.tenant, invoice_id).to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return fail("Gagal memuat invoice", 500)
