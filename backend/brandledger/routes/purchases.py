# Overview: Flask API routes for direct purchases ("Pembelian Langsung"); receive and delete move stock.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import purchase_service
from ..validation import ServiceError, parse_datetime_input, parse_pagination

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases/direct")


@purchases_bp.get("")
@require_auth
@with_tenant
def list_purchases_route():
    """Query params: q, status, dateFrom, dateTo, page, pageSize."""
    try:
        args = request.args
        page, page_size = parse_pagination(args, max_size=current_app.config["PAGE_SIZE_MAX"])
        result = purchase_service.list_purchases(
            g.tenant,
            q=(args.get("q") or "").strip() or None,
            status=(args.get("status") or "").strip() or None,
            date_from=parse_datetime_input(args.get("dateFrom"), "dateFrom", default_now=False),
            date_to=parse_datetime_input(args.get("dateTo"), "dateTo", default_now=False),
            page=page,
            page_size=page_size,
        )
        items = result.pop("items")
        return ok(items, **result)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to list purchases")
        return fail("Gagal memuat data pembelian", 500)


@purchases_bp.post("")
@require_auth
@with_tenant
def create_purchase_route():
    try:
        purchase = purchase_service.create_purchase(g.tenant, request.get_json(silent=True) or {})
        return ok(purchase.to_dict(), status=201)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return fail("Gagal membuat pembelian", 500)


@purchases_bp.get("/next-number")
@require_auth
@with_tenant
def next_purchase_number_route():
    try:
        return ok({"number": purchase_service.preview_purchase_number(g.tenant)})
    except Exception:
        current_app.logger.exception("Failed to preview purchase number")
        return fail("Gagal menghitung nomor", 500)


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@with_tenant
def get_purchase_route(purchase_id: int):
    try:
        return ok(purchase_service.get_purchase(g.tenant, purchase_id).to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load purchase")
        return fail("Gagal memuat detail", 500)


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@with_tenant
def update_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.update_purchase(
            g.tenant, purchase_id, request.get_json(silent=True) or {}
        )
        return ok(purchase.to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to update purchase")
        return fail("Gagal update", 500)


@purchases_bp.post("/<int:purchase_id>/receive")
@require_auth
@with_tenant
def receive_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.receive_purchase(g.tenant, purchase_id)
        return ok(purchase.to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return fail("Gagal tandai diterima", 500)


@purchases_bp.delete("/<int:purchase_id>")
@require_auth
@with_tenant
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(g.tenant, purchase_id)
        return ok(message="Pembelian berhasil dihapus")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete purchase")
        return fail("Gagal hapus", 500)
