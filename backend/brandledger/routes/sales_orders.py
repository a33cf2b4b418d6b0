# Overview: Flask API routes for sales orders; status updates drive stock through the service layer.

import re

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import sales_order_service
from ..validation import ServiceError

sales_orders_bp = Blueprint("sales_orders", __name__, url_prefix="/api/sales-orders")

RANGE_PATTERN = re.compile(r"^(\d+)d$")


def _parse_range_days(raw: str | None) -> int | None:
    match = RANGE_PATTERN.match((raw or "").strip().lower())
    return int(match.group(1)) if match else None


def _parse_statuses(raw: str | None) -> list[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


@sales_orders_bp.get("")
@require_auth
@with_tenant
def list_sales_orders_route():
    """Query params: status (comma separated), range (e.g. 30d)."""
    try:
        orders = sales_order_service.list_sales_orders(
            g.tenant,
            statuses=_parse_statuses(request.args.get("status")),
            range_days=_parse_range_days(request.args.get("range")),
        )
        return ok([order.to_dict() for order in orders])
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to list sales orders")
        return fail("Gagal ambil data sales order", 500)


@sales_orders_bp.post("")
@require_auth
@with_tenant
def create_sales_order_route():
    try:
        order = sales_order_service.create_sales_order(g.tenant, request.get_json(silent=True) or {})
        return ok(order.to_dict(), message="Sales order berhasil dibuat", status=201)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to create sales order")
        return fail("Gagal buat sales order", 500)


@sales_orders_bp.get("/new-number")
@require_auth
@with_tenant
def new_sales_order_number_route():
    try:
        return ok({"number": sales_order_service.preview_sales_order_number(g.tenant)})
    except Exception:
        current_app.logger.exception("Failed to preview sales order number")
        return fail("Gagal menghitung nomor", 500)


@sales_orders_bp.get("/<int:order_id>")
@require_auth
@with_tenant
def get_sales_order_route(order_id: int):
    try:
        return ok(sales_order_service.get_sales_order(g.tenant, order_id).to_dict())
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to load sales order")
        return fail("Gagal ambil detail sales order", 500)


@sales_orders_bp.put("/<int:order_id>")
@require_auth
@with_tenant
def update_sales_order_route(order_id: int):
    """
    Header-only body (no "items") updates the given fields; a body with
    "items" replaces the lines. A status change into or out of a ship-like
    status (Shipped / Sent / Dikirim) moves stock in the same transaction.
    """
    try:
        order = sales_order_service.update_sales_order(
            g.tenant, order_id, request.get_json(silent=True) or {}
        )
        return ok(order.to_dict(), message="Sales order berhasil diperbarui")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to update sales order")
        return fail("Gagal update sales order", 500)


@sales_orders_bp.delete("/<int:order_id>")
@require_auth
@with_tenant
def delete_sales_order_route(order_id: int):
    try:
        sales_order_service.delete_sales_order(g.tenant, order_id)
        return ok(message="Sales order berhasil dihapus")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to delete sales order")
        return fail("Gagal hapus sales order", 500)
