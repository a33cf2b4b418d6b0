# Overview: Flask API routes for login, logout and switching the active brand of a session.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, with_tenant
from ..extensions import db
from ..models import BrandProfile
from ..responses import fail, from_service_error, ok
from ..services import auth_service, session_service, tenant_service
from ..time_utils import to_utc_z
from ..validation import ServiceError, parse_positive_int

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Request body: {"username": "...", "password": "..."}

    The session starts in the user's default brand when one is set.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")
        if not all([username, password]):
            return fail("Username dan password wajib diisi", 400)

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", username, request.remote_addr)
            return fail("Username atau password salah", 401)

        session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return ok({
            "token": token,
            "expiresAt": to_utc_z(session.expires_at),
            "user": user.to_dict(),
            "activeBrandProfileId": session.active_brand_profile_id,
        })
    except Exception:
        current_app.logger.exception("Login failed")
        return fail("Gagal login", 500)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token)
    return ok(message="Berhasil logout")


@auth_bp.get("/me")
@require_auth
@with_tenant
def me_route():
    context = g.session_context
    brands = (
        db.session.query(BrandProfile)
        .filter(BrandProfile.id.in_(tenant_service.allowed_brand_ids(context.user, context.roles)))
        .order_by(BrandProfile.id.asc())
        .all()
    )
    return ok({
        "user": context.user.to_dict(),
        "activeBrandProfileId": g.tenant.brand_id,
        "brands": [brand.to_dict() for brand in brands],
    })


@auth_bp.post("/active-brand")
@require_auth
def set_active_brand_route():
    """Request body: {"brandProfileId": 2}"""
    try:
        data = request.get_json(silent=True) or {}
        brand_id = parse_positive_int(data.get("brandProfileId"), "brandProfileId")
        context = g.session_context
        brand = tenant_service.require_brand_access(context.user, brand_id, context.roles)
        session_service.set_active_brand(context.session, brand.id)
        return ok(brand.to_dict(), message="Brand aktif diperbarui")
    except ServiceError as e:
        return from_service_error(e)
    except Exception:
        current_app.logger.exception("Failed to switch active brand")
        return fail("Gagal mengganti brand aktif", 500)
