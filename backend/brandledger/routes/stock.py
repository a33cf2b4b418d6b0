# Overview: Flask API routes for the stock mutation log and manual adjustments.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_role, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import stock_service
from ..services.auth_service import ROLE_ADMIN, ROLE_OWNER
from ..validation import (
    ServiceError,
    ValidationError,
    optional_text,
    parse_datetime_input,
    parse_pagination,
    parse_positive_int,
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock-mutations")


@stock_bp.get("")
@require_auth
@with_tenant
def list_stock_mutations_route():
    """Query params: productId, type, refTable, dateFrom, dateTo, page, pageSize."""
    try:
        args = request.args
        page, page_size = parse_pagination(args, default_size=50, max_size=current_app.config["PAGE_SIZE_MAX"])
        mutation_type = (args.get("type") or "").upper() or None
        if mutation_type and mutation_type not in stock_service.VALID_MUTATION_TYPES:
            raise ValidationError("type tidak valid")
        result = stock_service.list_stock_mutations(
            g.tenant,
            product_id=parse_positive_int(args.get("productId"), "productId", required=False),
            mutation_type=mutation_type,
            ref_table=optional_text(args.get("refTable")),
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
        current_app.logger.exception("Failed to list stock mutations")
        return fail("Gagal memuat mutasi stok", 500)


@stock_bp.post("/adjust")
@require_auth
@require_role(ROLE_OWNER, ROLE_ADMIN)
@with_tenant
def adjust_stock_route():
    """
    Request body: {"productId": 3, "delta": -2, "note": "Barang rusak"}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = parse_positive_int(data.get("productId"), "productId")
        delta = data.get("delta")
        if isinstance(delta, str):
            try:
                delta = int(delta.strip())
            except ValueError:
                raise ValidationError("delta tidak valid")
        mutation = stock_service.adjust_stock(g.tenant, product_id, delta, optional_text(data.get("note")))
        return ok(mutation.to_dict(), message="Stok berhasil disesuaikan")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return fail("Gagal menyesuaikan stok", 500)
