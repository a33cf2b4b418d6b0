# Overview: Flask API routes for reporting (AR/AP summary across the caller's brands).

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..responses import fail, from_service_error, ok
from ..services import reporting_service, tenant_service
from ..validation import ServiceError, parse_datetime_input

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _parse_id_list(raw: str | None) -> list[int]:
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if part.isdigit() and int(part) > 0:
            ids.append(int(part))
    return ids


@reports_bp.get("/ar-ap")
@require_auth
def ar_ap_route():
    """
    Query params: dateFrom, dateTo, brandIds (comma separated; default all allowed).

    Requested brands outside the caller's scope are dropped.
    """
    try:
        context = g.session_context
        allowed = tenant_service.allowed_brand_ids(context.user, context.roles)
        requested = _parse_id_list(request.args.get("brandIds"))
        brand_ids = [bid for bid in requested if bid in allowed] if requested else allowed
        if not brand_ids:
            return ok([], message="Tidak ada brand yang diizinkan")

        rows = reporting_service.ar_ap_summary(
            brand_ids,
            date_from=parse_datetime_input(request.args.get("dateFrom"), "dateFrom", default_now=False),
            date_to=parse_datetime_input(request.args.get("dateTo"), "dateTo", default_now=False),
        )
        return ok(rows)
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to build AR/AP report")
        return fail("Gagal memuat laporan AR/AP", 500)
