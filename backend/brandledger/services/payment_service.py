# Overview: Payment Recorder; records a payment, issues its receipt and refreshes the referenced document.

"""
Payment Recording Service

One call to record_payment is one transaction:

1. Insert the Payment (flush for its id)
2. Allocate the next receipt number for the brand and month
3. Insert the Receipt
4. EXPENSE payments: link the expense (best effort, inside a SAVEPOINT)
   Other payments: recompute the referenced document's paid cache
5. Commit

Any failure in 1-3 or 4 (recalculation) rolls the whole transaction back,
so a Payment never exists without its Receipt. The expense link is the
only step allowed to fail on its own; its outcome is reported to the
caller instead of being swallowed.

Payments are append-only: corrections are new payments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Expense, Payment, Receipt
from ..money import ZERO, quantize_money, to_decimal
from ..validation import (
    NotFoundError,
    ValidationError,
    optional_text,
    parse_choice,
    parse_datetime_input,
    parse_decimal,
    parse_positive_int,
)
from .concurrency import run_guarded
from .numbering_service import next_receipt_number
from .payment_status_service import (
    REF_EXPENSE,
    VALID_REF_TYPES,
    RecalcResult,
    recalc_payment_status_for_ref,
)
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT TYPES / METHODS (CONSTANTS)
# =============================================================================

PAYMENT_IN = "IN"
PAYMENT_OUT = "OUT"

VALID_PAYMENT_TYPES = [PAYMENT_IN, PAYMENT_OUT]

METHOD_CASH = "CASH"
METHOD_BCA = "BCA"
METHOD_BRI = "BRI"
METHOD_OTHER = "OTHER"

VALID_METHODS = [METHOD_CASH, METHOD_BCA, METHOD_BRI, METHOD_OTHER]

AMOUNT_MESSAGE = "Jumlah pembayaran harus > 0"


class ExpenseLinkStatus(str, Enum):
    LINKED = "LINKED"
    LINK_FAILED = "LINK_FAILED"


@dataclass(frozen=True)
class ExpenseLinkOutcome:
    status: ExpenseLinkStatus
    expense_id: int
    reason: str | None = None

    @property
    def linked(self) -> bool:
        return self.status == ExpenseLinkStatus.LINKED

    def to_dict(self) -> dict:
        return {"status": self.status.value, "expenseId": self.expense_id, "reason": self.reason}


@dataclass
class PaymentResult:
    payment: Payment
    receipt: Receipt
    expense_link: ExpenseLinkOutcome | None = None
    recalc: RecalcResult | None = None

    def to_dict(self) -> dict:
        data = {
            "payment": self.payment.to_dict(include_receipt=False),
            "receipt": self.receipt.to_dict(include_payment=False),
            "expenseLink": self.expense_link.to_dict() if self.expense_link else None,
        }
        if self.recalc:
            data["document"] = {
                "refType": self.recalc.ref_type,
                "refId": self.recalc.ref_id,
                "paidAmount": str(quantize_money(self.recalc.paid_amount)),
                "paymentStatus": self.recalc.payment_status.value,
            }
        return data


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _parse_amount(value) -> Decimal:
    try:
        amount = parse_decimal(value, "amount")
    except ValidationError:
        raise ValidationError(AMOUNT_MESSAGE)
    if amount <= ZERO:
        raise ValidationError(AMOUNT_MESSAGE)
    try:
        amount = quantize_money(amount)
    except InvalidOperation:
        raise ValidationError(AMOUNT_MESSAGE)
    if amount <= ZERO:
        raise ValidationError(AMOUNT_MESSAGE)
    return amount


def _link_expense(brand_id: int, expense_id: int, payment: Payment) -> ExpenseLinkOutcome:
    """
    Point the expense at its payment inside a SAVEPOINT.

    A failure rolls back only the savepoint; the payment and receipt stay.
    """
    try:
        with db.session.begin_nested():
            expense = db.session.query(Expense).filter_by(id=expense_id, brand_profile_id=brand_id).first()
            if not expense:
                return ExpenseLinkOutcome(ExpenseLinkStatus.LINK_FAILED, expense_id, "Expense tidak ditemukan")
            expense.payment_id = payment.id
    except SQLAlchemyError as exc:
        logger.warning("Linking expense %s to payment %s failed: %s", expense_id, payment.id, exc)
        return ExpenseLinkOutcome(ExpenseLinkStatus.LINK_FAILED, expense_id, str(exc))
    return ExpenseLinkOutcome(ExpenseLinkStatus.LINKED, expense_id)


def record_payment(
    tenant: TenantContext,
    *,
    type: str,
    amount,
    ref_type: str,
    ref_id,
    method: str | None = None,
    paid_at=None,
    notes: str | None = None,
) -> PaymentResult:
    """
    Record a payment with its receipt and refresh the referenced document.

    Args:
        tenant: brand and acting user
        type: IN (money received) or OUT (money paid)
        amount: > 0
        ref_type: SALES_ORDER, INVOICE, PURCHASE or EXPENSE
        ref_id: id of the referenced row (may not exist)
        method: CASH (default), BCA, BRI, OTHER
        paid_at: datetime or ISO string, default now

    Raises:
        ValidationError: invalid input, nothing written
        ConflictError: receipt number collision, nothing written
    """
    amount = _parse_amount(amount)
    payment_type = parse_choice(type, "type", VALID_PAYMENT_TYPES)
    payment_method = parse_choice(method, "method", VALID_METHODS, default=METHOD_CASH)
    ref_type = parse_choice(ref_type, "refType", VALID_REF_TYPES)
    ref_id = parse_positive_int(ref_id, "refId")
    paid_at = parse_datetime_input(paid_at, "paidAt")
    notes = optional_text(notes)

    def _op() -> PaymentResult:
        payment = Payment(
            brand_profile_id=tenant.brand_id,
            type=payment_type,
            method=payment_method,
            amount=amount,
            paid_at=paid_at,
            ref_type=ref_type,
            ref_id=ref_id,
            notes=notes,
            created_by_id=tenant.user_id,
        )
        db.session.add(payment)
        db.session.flush()

        receipt = Receipt(
            brand_profile_id=tenant.brand_id,
            payment_id=payment.id,
            receipt_number=next_receipt_number(tenant.brand_id),
        )
        db.session.add(receipt)
        db.session.flush()

        result = PaymentResult(payment=payment, receipt=receipt)
        if ref_type == REF_EXPENSE:
            result.expense_link = _link_expense(tenant.brand_id, ref_id, payment)
        else:
            result.recalc = recalc_payment_status_for_ref(tenant.brand_id, ref_type, ref_id)

        db.session.commit()
        return result

    result = run_guarded(_op)

    logger.info(
        "Payment %s recorded: %s %s %s on %s:%s (receipt %s)",
        result.payment.id, payment_type, payment_method, amount, ref_type, ref_id,
        result.receipt.receipt_number,
    )
    if result.expense_link and not result.expense_link.linked:
        logger.warning(
            "Payment %s recorded but expense %s not linked: %s",
            result.payment.id, ref_id, result.expense_link.reason,
        )
    return result


# =============================================================================
# QUERIES
# =============================================================================

def _filtered_payments(
    tenant: TenantContext,
    *,
    type: str | None = None,
    method: str | None = None,
    ref_type: str | None = None,
    ref_id: int | None = None,
    date_from=None,
    date_to=None,
):
    query = db.session.query(Payment).filter(Payment.brand_profile_id == tenant.brand_id)
    if type in VALID_PAYMENT_TYPES:
        query = query.filter(Payment.type == type)
    if method in VALID_METHODS:
        query = query.filter(Payment.method == method)
    if ref_type in VALID_REF_TYPES:
        query = query.filter(Payment.ref_type == ref_type)
    if ref_id is not None:
        query = query.filter(Payment.ref_id == ref_id)
    if date_from is not None:
        query = query.filter(Payment.paid_at >= date_from)
    if date_to is not None:
        query = query.filter(Payment.paid_at <= date_to)
    return query


def list_payments(tenant: TenantContext, *, page: int = 1, page_size: int = 20, **filters) -> dict:
    """
    Payments of the brand, newest paid_at first, with their receipts.

    sumIn / sumOut and byMethod cover the whole filter, not just the page.
    """
    query = _filtered_payments(tenant, **filters)

    total = query.count()
    rows = (
        query.order_by(Payment.paid_at.desc(), Payment.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    sums = dict(
        query.with_entities(Payment.type, func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.type)
        .all()
    )
    by_method = (
        query.with_entities(Payment.method, Payment.type, func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.method, Payment.type)
        .order_by(Payment.method, Payment.type)
        .all()
    )

    return {
        "items": [row.to_dict() for row in rows],
        "total": total,
        "page": page,
        "pageSize": page_size,
        "sumIn": str(quantize_money(to_decimal(sums.get(PAYMENT_IN)))),
        "sumOut": str(quantize_money(to_decimal(sums.get(PAYMENT_OUT)))),
        "byMethod": [
            {"method": m, "type": t, "amount": str(quantize_money(to_decimal(amount)))}
            for m, t, amount in by_method
        ],
    }


def get_receipt(tenant: TenantContext, receipt_id: int) -> Receipt:
    receipt = db.session.query(Receipt).filter_by(id=receipt_id, brand_profile_id=tenant.brand_id).first()
    if not receipt:
        raise NotFoundError("Kwitansi tidak ditemukan")
    return receipt
