# Overview: Flask API routes for expenses.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..responses import fail, from_service_error, ok
from ..services import expense_service
from ..validation import ServiceError, parse_datetime_input, parse_pagination

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@with_tenant
def list_expenses_route():
    """Query params: category, dateFrom, dateTo, page, pageSize."""
    try:
        args = request.args
        page, page_size = parse_pagination(args, max_size=current_app.config["PAGE_SIZE_MAX"])
        result = expense_service.list_expenses(
            g.tenant,
            category=(args.get("category") or "").strip() or None,
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
        current_app.logger.exception("Failed to list expenses")
        return fail("Gagal memuat expenses", 500)


@expenses_bp.post("")
@require_auth
@with_tenant
def create_expense_route():
    try:
        expense = expense_service.create_expense(g.tenant, request.get_json(silent=True) or {})
        return ok(expense.to_dict(), status=201)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to create expense")
        return fail("Gagal membuat expense", 500)
