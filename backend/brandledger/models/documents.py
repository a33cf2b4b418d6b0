from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic per-brand, per-period document counters.

    One row per (brand, document_type, period). period is "YYYYMM" for
    monthly sequences (receipts, purchases) and "YYYY" for yearly ones
    (sales orders). next_number is the number the next caller receives.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint(
            "brand_profile_id", "document_type", "period", name="uq_doc_sequences_brand_type_period"
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "documentType": self.document_type,
            "period": self.period,
            "nextNumber": self.next_number,
            "updatedAt": to_utc_z(self.updated_at),
        }
