from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class PurchaseDirect(db.Model):
    """
    Direct purchase (marketplace / walk-in buy without a PO).

    LIFECYCLE:
    Draft -> Received. Receiving adds stock (IN mutations); deleting a
    received purchase first writes OUT reversals.

    paid_amount / payment_status track OUT payments with ref_type PURCHASE.
    """
    __tablename__ = "purchase_directs"
    __table_args__ = (
        db.UniqueConstraint("brand_profile_id", "purchase_number", name="uq_purchases_brand_number"),
        db.Index("ix_purchase_directs_brand_date", "brand_profile_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    purchase_number = db.Column(db.String(64), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=True)
    marketplace_order_id = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="Draft")  # Draft, Received
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    fee = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    paid_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID")

    stock_applied_at = db.Column(db.DateTime(timezone=True), nullable=True)
    stock_reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "PurchaseDirectItem",
        backref="purchase",
        lazy=True,
        order_by="PurchaseDirectItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseDirect id={self.id} number={self.purchase_number!r} status={self.status!r}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "purchaseNumber": self.purchase_number,
            "date": to_utc_z(self.date),
            "supplierName": self.supplier_name,
            "marketplaceOrderId": self.marketplace_order_id,
            "notes": self.notes,
            "status": self.status,
            "receivedAt": to_utc_z(self.received_at),
            "subtotal": money_str(self.subtotal),
            "shippingCost": money_str(self.shipping_cost),
            "fee": money_str(self.fee),
            "tax": money_str(self.tax),
            "total": money_str(self.total),
            "paidAmount": money_str(self.paid_amount),
            "paymentStatus": self.payment_status,
            "stockAppliedAt": to_utc_z(self.stock_applied_at),
            "stockReversedAt": to_utc_z(self.stock_reversed_at),
            "createdByUserId": self.created_by_user_id,
            "createdAt": to_utc_z(self.created_at),
            "versionId": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseDirectItem(db.Model):
    __tablename__ = "purchase_direct_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchase_directs.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    qty = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    unit_cost = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "name": self.name,
            "description": self.description,
            "qty": self.qty,
            "unit": self.unit,
            "unitCost": money_str(self.unit_cost),
        }
