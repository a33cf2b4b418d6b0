"""
Multi-Tenant Service: Brand Resolution and Scoping Helpers

Every business record belongs to a brand (BrandProfile). Services never
look the active brand up on their own: routes resolve it once per request
and pass a TenantContext down explicitly.

RESOLUTION ORDER (resolve_active_brand):
1. Explicit brandProfileId from the request (must be allowed for the user)
2. The session's active brand
3. The user's default brand
4. The most recently updated active brand
5. The first brand ever created
6. Nothing -> ValidationError("Brand aktif tidak ditemukan")

Steps 2-5 only consider brands the user is allowed to see.

ACCESS:
owner/admin see every brand; other users only brands granted through
UserBrandScope.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..models import BrandProfile, User, UserBrandScope
from ..validation import TenantAccessError, ValidationError
from .auth_service import ALL_BRAND_ROLES

logger = logging.getLogger(__name__)

BRAND_NOT_FOUND = "Brand aktif tidak ditemukan"


@dataclass(frozen=True)
class TenantContext:
    """Who is acting, and in which brand."""
    brand_id: int
    user_id: int | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_admin(self) -> bool:
        return bool(ALL_BRAND_ROLES.intersection(self.roles))


def can_access_all_brands(roles) -> bool:
    return bool(ALL_BRAND_ROLES.intersection(roles or ()))


def allowed_brand_ids(user: User, roles=None) -> list[int]:
    """Brand ids the user may work in, ordered by id."""
    roles = user.role_names if roles is None else roles
    if can_access_all_brands(roles):
        rows = db.session.query(BrandProfile.id).order_by(BrandProfile.id.asc()).all()
    else:
        rows = (
            db.session.query(UserBrandScope.brand_profile_id)
            .filter(UserBrandScope.user_id == user.id)
            .order_by(UserBrandScope.brand_profile_id.asc())
            .all()
        )
    return [row[0] for row in rows]


def require_brand_access(user: User, brand_id: int, roles=None) -> BrandProfile:
    """
    Validate that the user may act in brand_id.

    Raises:
        TenantAccessError: brand missing or outside the user's scope
    """
    brand = db.session.get(BrandProfile, brand_id)
    if not brand or brand_id not in allowed_brand_ids(user, roles):
        logger.warning("User %s denied access to brand %s", user.id, brand_id)
        raise TenantAccessError("Tidak memiliki akses ke brand ini")
    return brand


def resolve_active_brand(
    user: User,
    *,
    requested_brand_id: int | None = None,
    session_brand_id: int | None = None,
    roles=None,
) -> BrandProfile:
    if requested_brand_id is not None:
        return require_brand_access(user, requested_brand_id, roles)

    allowed = allowed_brand_ids(user, roles)
    if not allowed:
        raise ValidationError(BRAND_NOT_FOUND)

    for candidate in (session_brand_id, user.default_brand_profile_id):
        if candidate is not None and candidate in allowed:
            brand = db.session.get(BrandProfile, candidate)
            if brand:
                return brand

    brand = (
        db.session.query(BrandProfile)
        .filter(BrandProfile.id.in_(allowed), BrandProfile.is_active.is_(True))
        .order_by(BrandProfile.updated_at.desc(), BrandProfile.id.desc())
        .first()
    )
    if brand:
        return brand

    brand = (
        db.session.query(BrandProfile)
        .filter(BrandProfile.id.in_(allowed))
        .order_by(BrandProfile.id.asc())
        .first()
    )
    if brand:
        return brand

    raise ValidationError(BRAND_NOT_FOUND)


def build_tenant_context(user: User, brand: BrandProfile, roles=None) -> TenantContext:
    roles = user.role_names if roles is None else roles
    return TenantContext(brand_id=brand.id, user_id=user.id, roles=tuple(roles))
