from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Payment(db.Model):
    """
    Money movement against a reference document.

    APPEND-ONLY: there is no update or delete path. Corrections are new
    payments. Every payment has exactly one Receipt created in the same
    transaction.

    ref_type / ref_id is a soft reference (SALES_ORDER, INVOICE, PURCHASE,
    EXPENSE); the referenced row may not exist.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_brand_paid_at", "brand_profile_id", "paid_at"),
        db.Index("ix_payments_ref", "brand_profile_id", "ref_type", "ref_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)  # IN, OUT
    method = db.Column(db.String(16), nullable=False, default="CASH")  # CASH, BCA, BRI, OTHER
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)

    ref_type = db.Column(db.String(16), nullable=False)
    ref_id = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    receipt = db.relationship("Receipt", back_populates="payment", uselist=False)

    def __repr__(self) -> str:
        return f"<Payment id={self.id} {self.type} {self.amount} ref={self.ref_type}:{self.ref_id}>"

    def to_dict(self, include_receipt: bool = True) -> dict:
        data = {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "type": self.type,
            "method": self.method,
            "amount": money_str(self.amount),
            "paidAt": to_utc_z(self.paid_at),
            "refType": self.ref_type,
            "refId": self.ref_id,
            "notes": self.notes,
            "createdById": self.created_by_id,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_receipt:
            data["receipt"] = self.receipt.to_dict(include_payment=False) if self.receipt else None
        return data


class Receipt(db.Model):
    """
    Kwitansi issued for one payment.

    receipt_number format: RC-YYYYMM-NNNN, unique within a brand.
    """
    __tablename__ = "receipts"
    __table_args__ = (
        db.UniqueConstraint("brand_profile_id", "receipt_number", name="uq_receipts_brand_number"),
        db.UniqueConstraint("payment_id", name="uq_receipts_payment"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False)
    receipt_number = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment = db.relationship("Payment", back_populates="receipt")

    def to_dict(self, include_payment: bool = True) -> dict:
        data = {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "paymentId": self.payment_id,
            "receiptNumber": self.receipt_number,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_payment:
            data["payment"] = self.payment.to_dict(include_receipt=False) if self.payment else None
        return data


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_brand_paid_at", "brand_profile_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    category = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    payee = db.Column(db.String(255), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # Set when a Payment with ref_type EXPENSE is recorded for this expense
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    payment = db.relationship("Payment", foreign_keys=[payment_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "category": self.category,
            "amount": money_str(self.amount),
            "payee": self.payee,
            "paidAt": to_utc_z(self.paid_at),
            "notes": self.notes,
            "paymentId": self.payment_id,
            "createdAt": to_utc_z(self.created_at),
        }
