# Overview: Operational expenses; created standalone or linked to an OUT payment of the same brand.

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Expense, Payment
from ..money import ZERO, quantize_money, to_decimal
from ..validation import (
    ValidationError,
    optional_text,
    parse_datetime_input,
    parse_decimal,
    parse_positive_int,
)
from .concurrency import run_guarded
from .tenant_service import TenantContext

logger = logging.getLogger(__name__)

AMOUNT_MESSAGE = "Jumlah expense harus > 0"


def create_expense(tenant: TenantContext, payload: dict) -> Expense:
    category = optional_text(payload.get("category"))
    if not category:
        raise ValidationError("Kategori wajib diisi")
    try:
        amount = parse_decimal(payload.get("amount"), "amount")
    except ValidationError:
        raise ValidationError(AMOUNT_MESSAGE)
    if amount <= ZERO:
        raise ValidationError(AMOUNT_MESSAGE)
    paid_at = parse_datetime_input(payload.get("paidAt"), "paidAt")
    payment_id = parse_positive_int(payload.get("paymentId"), "paymentId", required=False)

    def _op() -> Expense:
        if payment_id is not None:
            payment = db.session.query(Payment.id).filter_by(
                id=payment_id, brand_profile_id=tenant.brand_id
            ).first()
            if not payment:
                raise ValidationError("Payment tidak ditemukan atau beda brand")

        expense = Expense(
            brand_profile_id=tenant.brand_id,
            category=category,
            amount=quantize_money(amount),
            payee=optional_text(payload.get("payee")),
            paid_at=paid_at,
            notes=optional_text(payload.get("notes")),
            payment_id=payment_id,
            created_by_user_id=tenant.user_id,
        )
        db.session.add(expense)
        db.session.commit()
        return expense

    expense = run_guarded(_op)
    logger.info("Expense %s (%s %s) created for brand %s", expense.id, category, amount, tenant.brand_id)
    return expense


def list_expenses(
    tenant: TenantContext,
    *,
    category: str | None = None,
    date_from=None,
    date_to=None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    """Newest paid_at first; sum covers the whole filter."""
    query = db.session.query(Expense).filter(Expense.brand_profile_id == tenant.brand_id)
    if category:
        query = query.filter(Expense.category.ilike(f"%{category}%"))
    if date_from is not None:
        query = query.filter(Expense.paid_at >= date_from)
    if date_to is not None:
        query = query.filter(Expense.paid_at <= date_to)

    total = query.count()
    amount_sum = query.with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()
    rows = (
        query.order_by(Expense.paid_at.desc(), Expense.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": [row.to_dict() for row in rows],
        "total": total,
        "page": page,
        "pageSize": page_size,
        "sum": str(quantize_money(to_decimal(amount_sum))),
    }
