from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data, scoped to a brand.

    ON-HAND QTY:
    Product.qty is only ever changed with relative SQL updates
    (qty = qty + n) from the stock engine, so concurrent writers cannot
    lose each other's increments. No version_id_col here for that reason.

    track_stock = False products never receive stock mutations.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("brand_profile_id", "sku", name="uq_products_brand_sku"),
        db.Index("ix_products_brand_name", "brand_profile_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=True)

    qty = db.Column(db.Integer, nullable=False, default=0)
    track_stock = db.Column(db.Boolean, nullable=False, default=True)

    price = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    brand_profile = db.relationship("BrandProfile", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} qty={self.qty} brand={self.brand_profile_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "qty": self.qty,
            "trackStock": self.track_stock,
            "price": money_str(self.price),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockMutation(db.Model):
    """
    Append-only stock movement log.

    qty is always a positive magnitude; direction comes from type
    (IN adds, OUT removes). ADJUST rows record manual corrections and
    carry the direction in the note.

    (ref_table, ref_id, type) identifies the logical event that caused the
    movement: "SalesOrder" / "PurchaseDirect" / None for manual adjustments.
    """
    __tablename__ = "stock_mutations"
    __table_args__ = (
        db.Index("ix_stock_mutations_ref", "ref_table", "ref_id", "type"),
        db.Index("ix_stock_mutations_brand_created", "brand_profile_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    qty = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)  # IN, OUT, ADJUST

    ref_table = db.Column(db.String(64), nullable=True)
    ref_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("mutations", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "qty": self.qty,
            "type": self.type,
            "refTable": self.ref_table,
            "refId": self.ref_id,
            "note": self.note,
            "createdByUserId": self.created_by_user_id,
            "createdAt": to_utc_z(self.created_at),
        }
