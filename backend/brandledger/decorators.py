# Overview: Request decorators for API routes: bearer-token authentication and brand (tenant) resolution.

from functools import wraps

from flask import g, request

from .responses import fail, from_service_error
from .services import session_service, tenant_service
from .validation import ServiceError, parse_positive_int


def require_auth(f):
    """
    Require a valid bearer token.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: SessionContext (session row, roles, active brand)
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return fail("Autentikasi diperlukan", 401)

        token = auth_header.split(" ", 1)[1]
        context = session_service.validate_session(token)
        if not context:
            return fail("Token tidak valid atau kedaluwarsa", 401)

        g.current_user = context.user
        g.session_context = context
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def _requested_brand_id():
    """brandProfileId / brandId from the query string or JSON body."""
    raw = request.args.get("brandProfileId") or request.args.get("brandId")
    if raw is None and request.is_json:
        body = request.get_json(silent=True) or {}
        if isinstance(body, dict):
            raw = body.get("brandProfileId")
    return parse_positive_int(raw, "brandProfileId", required=False)


def with_tenant(f):
    """
    Resolve the active brand for this request and set g.tenant.

    Must run after @require_auth.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        context = g.session_context
        try:
            brand = tenant_service.resolve_active_brand(
                context.user,
                requested_brand_id=_requested_brand_id(),
                session_brand_id=context.active_brand_id,
                roles=context.roles,
            )
        except ServiceError as exc:
            return from_service_error(exc)

        g.tenant = tenant_service.build_tenant_context(context.user, brand, context.roles)
        return f(*args, **kwargs)

    return decorated_function


def require_role(*role_names):
    """Require one of the given roles (after @require_auth)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not set(role_names).intersection(g.session_context.roles):
                return fail("Akses ditolak", 403)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
