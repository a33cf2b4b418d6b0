# Overview: Document numbering (receipts, direct purchases, sales orders, invoices) backed by atomic per-brand counters.

"""
Document numbering.

FORMATS:
- Receipt:       RC-YYYYMM-NNNN  (monthly, per brand)
- Direct purchase: PL-YYYYMM-NNNN (monthly, per brand)
- Sales order:   SO-YYYY-NNNN    (yearly, per brand)
- Invoice:       INV-YYYY-NNNN   (yearly, per brand)

Each format draws from its own DocumentSequence row keyed by
(brand_profile_id, document_type, period). Allocation is a single
UPDATE next_number = next_number + 1, so two writers in the same brand
and month can never receive the same number. The first allocation of a
period inserts the row inside a SAVEPOINT; if another writer inserted it
first, only the savepoint is rolled back and the UPDATE is retried.

Allocation never commits: it runs inside the caller's transaction so a
failed document creation does not leave a half-written document behind.
A rolled-back transaction returns its number to the pool.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import month_period, year_period

RECEIPT = "RECEIPT"
PURCHASE_DIRECT = "PURCHASE_DIRECT"
SALES_ORDER = "SALES_ORDER"
INVOICE = "INVOICE"

SEQUENCE_PAD = 4


class DocumentSequenceError(Exception):
    """Raised when a sequence cannot be allocated."""
    pass


def _increment(brand_id: int, document_type: str, period: str) -> Optional[int]:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.brand_profile_id == brand_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(brand_profile_id=brand_id, document_type=document_type, period=period)
        .scalar()
    )
    return current - 1


def allocate_sequence(brand_id: int, document_type: str, period: str) -> int:
    """Atomically take the next number for (brand, type, period)."""
    if not brand_id:
        raise DocumentSequenceError("brand_id is required")
    if not document_type or not period:
        raise DocumentSequenceError("document_type and period are required")

    allocated = _increment(brand_id, document_type, period)
    if allocated is not None:
        return allocated

    try:
        with db.session.begin_nested():
            db.session.add(
                DocumentSequence(
                    brand_profile_id=brand_id,
                    document_type=document_type,
                    period=period,
                    next_number=2,
                )
            )
        return 1
    except IntegrityError:
        # Another writer created the period row first
        allocated = _increment(brand_id, document_type, period)
        if allocated is None:
            raise DocumentSequenceError(f"Failed to allocate {document_type} number for {period}")
        return allocated


def peek_sequence(brand_id: int, document_type: str, period: str) -> int:
    """Number the next allocation would return, without consuming it."""
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(brand_profile_id=brand_id, document_type=document_type, period=period)
        .scalar()
    )
    return current or 1


def format_receipt_number(period: str, seq: int) -> str:
    return f"RC-{period}-{seq:0{SEQUENCE_PAD}d}"


def format_purchase_number(period: str, seq: int) -> str:
    return f"PL-{period}-{seq:0{SEQUENCE_PAD}d}"


def format_sales_order_number(year: str, seq: int) -> str:
    return f"SO-{year}-{seq:0{SEQUENCE_PAD}d}"


def next_receipt_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    """
    Allocate the next receipt number for a brand.

    The month comes from `at` (default: now in the business timezone).
    """
    period = month_period(at)
    return format_receipt_number(period, allocate_sequence(brand_id, RECEIPT, period))


def next_purchase_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    period = month_period(at)
    return format_purchase_number(period, allocate_sequence(brand_id, PURCHASE_DIRECT, period))


def next_sales_order_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    year = year_period(at)
    return format_sales_order_number(year, allocate_sequence(brand_id, SALES_ORDER, year))


def peek_receipt_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    period = month_period(at)
    return format_receipt_number(period, peek_sequence(brand_id, RECEIPT, period))


def peek_purchase_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    period = month_period(at)
    return format_purchase_number(period, peek_sequence(brand_id, PURCHASE_DIRECT, period))


def peek_sales_order_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    year = year_period(at)
    return format_sales_order_number(year, peek_sequence(brand_id, SALES_ORDER, year))


def format_invoice_number(year: str, seq: int) -> str:
    return f"INV-{year}-{seq:0{SEQUENCE_PAD}d}"


def next_invoice_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    year = year_period(at)
    return format_invoice_number(year, allocate_sequence(brand_id, INVOICE, year))


def peek_invoice_number(brand_id: int, *, at: Optional[datetime] = None) -> str:
    year = year_period(at)
    return format_invoice_number(year, peek_sequence(brand_id, INVOICE, year))
