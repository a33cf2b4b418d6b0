from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class BrandProfile(db.Model):
    """
    Tenant root: every business record is scoped to one brand.

    All payments, receipts, documents, products and stock mutations carry
    brand_profile_id and every query must filter on it.
    """
    __tablename__ = "brand_profiles"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_brand_profiles_name"),
        db.UniqueConstraint("slug", name="uq_brand_profiles_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<BrandProfile id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "isActive": self.is_active,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class UserBrandScope(db.Model):
    """Grants a non-admin user access to one brand."""
    __tablename__ = "user_brand_scopes"
    __table_args__ = (
        db.UniqueConstraint("user_id", "brand_profile_id", name="uq_user_brand_scopes"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("brand_scopes", lazy=True))
    brand_profile = db.relationship("BrandProfile")
