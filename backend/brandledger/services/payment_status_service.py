# Overview: Status Recalculator; derives paid_amount and payment_status of documents from their payments.

"""
Payment Status Recalculation

paid_amount on a document is a cache. The source of truth is the set of
payments whose (ref_type, ref_id) point at the document, within the same
brand, in the document's direction:

    SALES_ORDER, INVOICE -> IN payments (money received)
    PURCHASE             -> OUT payments (money paid out)

Recalculation always re-sums from scratch (never increments), so running
it twice yields the same values and a missed run is repaired by the next.

recalc_payment_status_for_ref does not commit: it runs inside the
caller's transaction (the payment insert) so the payment and the cache
update become visible together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from sqlalchemy import func

from ..extensions import db
from ..models import Invoice, Payment, PurchaseDirect, SalesOrder
from ..money import ZERO, to_decimal
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)


# =============================================================================
# REFERENCE TYPES (CONSTANTS)
# =============================================================================

REF_SALES_ORDER = "SALES_ORDER"
REF_INVOICE = "INVOICE"
REF_PURCHASE = "PURCHASE"
REF_EXPENSE = "EXPENSE"

VALID_REF_TYPES = [REF_SALES_ORDER, REF_INVOICE, REF_PURCHASE, REF_EXPENSE]

DIRECTION_IN = "IN"
DIRECTION_OUT = "OUT"

# ref_type -> (model, total column, payment direction counted)
DOCUMENT_REFS = {
    REF_SALES_ORDER: (SalesOrder, "total_amount", DIRECTION_IN),
    REF_INVOICE: (Invoice, "total", DIRECTION_IN),
    REF_PURCHASE: (PurchaseDirect, "total", DIRECTION_OUT),
}

# Rounding slack when comparing paid to total
PAID_TOLERANCE = Decimal("0.0001")


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


@dataclass(frozen=True)
class RecalcResult:
    ref_type: str
    ref_id: int
    paid_amount: Decimal
    payment_status: PaymentStatus
    changed: bool


def compute_payment_status(paid, total) -> PaymentStatus:
    """
    UNPAID when nothing was paid, PAID once paid reaches total (within
    PAID_TOLERANCE), PARTIAL in between. Overpayment is PAID.
    """
    paid = to_decimal(paid)
    total = to_decimal(total)
    if paid <= ZERO:
        return PaymentStatus.UNPAID
    if paid + PAID_TOLERANCE >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def sum_payments_for_ref(brand_id: int, ref_type: str, ref_id: int, direction: str) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(
            Payment.brand_profile_id == brand_id,
            Payment.ref_type == ref_type,
            Payment.ref_id == ref_id,
            Payment.type == direction,
        )
        .scalar()
    )
    return to_decimal(total)


def recalc_payment_status_for_ref(brand_id: int, ref_type: str, ref_id: int) -> RecalcResult | None:
    """
    Recompute paid_amount / payment_status for one document.

    Returns None (and writes nothing) when ref_type has no document
    (EXPENSE) or the document does not exist in this brand.
    """
    ref_spec = DOCUMENT_REFS.get(ref_type)
    if ref_spec is None:
        return None
    model, total_attr, direction = ref_spec

    doc = lock_for_update(
        db.session.query(model).filter_by(id=ref_id, brand_profile_id=brand_id)
    ).first()
    if not doc:
        logger.debug("No %s %s in brand %s; skipping recalculation", ref_type, ref_id, brand_id)
        return None

    paid = sum_payments_for_ref(brand_id, ref_type, ref_id, direction)
    status = compute_payment_status(paid, getattr(doc, total_attr))

    changed = to_decimal(doc.paid_amount) != paid or doc.payment_status != status.value
    if changed:
        doc.paid_amount = paid
        doc.payment_status = status.value

    return RecalcResult(
        ref_type=ref_type,
        ref_id=ref_id,
        paid_amount=paid,
        payment_status=status,
        changed=changed,
    )


def recalc_all(brand_id: int | None = None) -> int:
    """
    Recompute every document's payment cache. Commits once.

    Returns the number of documents whose cache changed.
    """
    def _op() -> int:
        changed = 0
        for ref_type, (model, _total_attr, _direction) in DOCUMENT_REFS.items():
            query = db.session.query(model.id, model.brand_profile_id)
            if brand_id is not None:
                query = query.filter(model.brand_profile_id == brand_id)
            for doc_id, doc_brand_id in query.order_by(model.id.asc()).all():
                result = recalc_payment_status_for_ref(doc_brand_id, ref_type, doc_id)
                if result and result.changed:
                    changed += 1
        db.session.commit()
        return changed

    changed = run_with_retry(_op)
    logger.info("Payment status recalculation finished: %d document(s) updated", changed)
    return changed
