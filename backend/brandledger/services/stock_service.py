# Overview: Stock Mutation Engine; turns sales order shipments and direct purchase receipts into stock movements.

"""
Stock Mutation Engine

EVENTS:
- Sales order becomes ship-like (NOT_SHIPPED -> SHIPPED): OUT per line
- Sales order leaves ship-like after an OUT (SHIPPED -> NOT_SHIPPED): IN reversal per line
- Direct purchase received: IN per line
- Received direct purchase deleted: OUT reversal per line

Each event is applied at most once per document. The StockMutation log
is the source of truth for "already applied"; stock_applied_at and
stock_reversed_at on the document are an O(1) cache of it. When the cache
is empty the guard falls back to counting log rows (and heals the cache),
so losing the cache can never apply stock twice.

SKIPPED LINES (silently, DEBUG log):
- no product_id, or quantity <= 0
- product missing, in another brand, or track_stock = False

Product.qty only changes through relative UPDATEs (qty = qty +/- n).
Nothing here commits; callers run the engine inside their own
transaction so the status change and its stock movements commit together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from sqlalchemy import case, func, update

from ..extensions import db
from ..models import Product, PurchaseDirect, SalesOrder, StockMutation
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)


# =============================================================================
# MUTATION TYPES / REFERENCES (CONSTANTS)
# =============================================================================

MUTATION_IN = "IN"
MUTATION_OUT = "OUT"
MUTATION_ADJUST = "ADJUST"

VALID_MUTATION_TYPES = [MUTATION_IN, MUTATION_OUT, MUTATION_ADJUST]

REF_TABLE_SALES_ORDER = "salesorder"
REF_TABLE_PURCHASE = "purchasedirect"

SHIP_LIKE_STATUSES = frozenset({"shipped", "sent", "dikirim"})


class ShipmentState(str, Enum):
    NOT_SHIPPED = "NOT_SHIPPED"
    SHIPPED = "SHIPPED"

    @classmethod
    def from_status(cls, status: str | None) -> "ShipmentState":
        """Shipped, Sent and Dikirim (any case, surrounding spaces ignored) are ship-like."""
        if status and status.strip().lower() in SHIP_LIKE_STATUSES:
            return cls.SHIPPED
        return cls.NOT_SHIPPED


@dataclass(frozen=True)
class StockLine:
    """The part of a document line the engine cares about."""
    product_id: int | None
    qty: int


@dataclass(frozen=True)
class StockChange:
    """Outcome of one engine call."""
    action: str | None  # "APPLIED", "REVERSED" or None when nothing was due
    mutations: int = 0

    @property
    def applied(self) -> bool:
        return self.action is not None


NO_CHANGE = StockChange(action=None)


def sales_order_lines(order: SalesOrder) -> list[StockLine]:
    return [StockLine(product_id=item.product_id, qty=item.quantity or 0) for item in order.items]


def purchase_lines(purchase: PurchaseDirect) -> list[StockLine]:
    return [StockLine(product_id=item.product_id, qty=item.qty or 0) for item in purchase.items]


# =============================================================================
# LOG QUERIES
# =============================================================================

def count_mutations(ref_table: str, ref_id: int, mutation_type: str) -> int:
    return (
        db.session.query(func.count(StockMutation.id))
        .filter(
            StockMutation.ref_table == ref_table,
            StockMutation.ref_id == ref_id,
            StockMutation.type == mutation_type,
        )
        .scalar()
    ) or 0


def _first_mutation_at(ref_table: str, ref_id: int, mutation_type: str) -> datetime | None:
    return (
        db.session.query(func.min(StockMutation.created_at))
        .filter(
            StockMutation.ref_table == ref_table,
            StockMutation.ref_id == ref_id,
            StockMutation.type == mutation_type,
        )
        .scalar()
    )


def _event_recorded(doc, cache_attr: str, ref_table: str, mutation_type: str) -> bool:
    """Cache first, log second. A log hit heals an empty cache."""
    if getattr(doc, cache_attr) is not None:
        return True
    if count_mutations(ref_table, doc.id, mutation_type) > 0:
        setattr(doc, cache_attr, _first_mutation_at(ref_table, doc.id, mutation_type) or utcnow())
        logger.warning("Healed %s.%s for %s %s from the mutation log", ref_table, cache_attr, ref_table, doc.id)
        return True
    return False


# =============================================================================
# LINE APPLICATION
# =============================================================================

def _apply_line(
    *,
    brand_id: int,
    line: StockLine,
    mutation_type: str,
    ref_table: str,
    ref_id: int | None,
    note: str,
    actor_id: int | None,
    at: datetime,
) -> bool:
    if not line.product_id or line.qty <= 0:
        return False

    product = db.session.get(Product, line.product_id)
    if not product or product.brand_profile_id != brand_id or not product.track_stock:
        logger.debug(
            "Skipping stock line product=%s qty=%s for %s %s",
            line.product_id, line.qty, ref_table, ref_id,
        )
        return False

    delta = line.qty if mutation_type == MUTATION_IN else -line.qty
    db.session.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(qty=Product.qty + delta)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(product, ["qty"])

    db.session.add(
        StockMutation(
            brand_profile_id=brand_id,
            product_id=product.id,
            qty=line.qty,
            type=mutation_type,
            ref_table=ref_table,
            ref_id=ref_id,
            note=note,
            created_by_user_id=actor_id,
            created_at=at,
        )
    )
    return True


def _apply_lines(lines: Iterable[StockLine], **kwargs) -> int:
    written = 0
    for line in lines:
        if _apply_line(line=line, **kwargs):
            written += 1
    return written


# =============================================================================
# SALES ORDERS
# =============================================================================

def apply_sales_order_status_change(
    order: SalesOrder,
    previous_status: str | None,
    actor_id: int | None = None,
    lines: Iterable[StockLine] | None = None,
) -> StockChange:
    """
    React to a sales order status transition.

    lines defaults to the order's current items; callers replacing items
    pass the lines as they were before the update.
    """
    before = ShipmentState.from_status(previous_status)
    after = ShipmentState.from_status(order.status)
    if before == after:
        return NO_CHANGE

    lines = list(lines) if lines is not None else sales_order_lines(order)
    shipped = _event_recorded(order, "stock_applied_at", REF_TABLE_SALES_ORDER, MUTATION_OUT)

    if after == ShipmentState.SHIPPED:
        if shipped:
            return NO_CHANGE
        now = utcnow()
        written = _apply_lines(
            lines,
            brand_id=order.brand_profile_id,
            mutation_type=MUTATION_OUT,
            ref_table=REF_TABLE_SALES_ORDER,
            ref_id=order.id,
            note=f"Sales Order {order.order_number} dikirim",
            actor_id=actor_id,
            at=now,
        )
        if written:
            order.stock_applied_at = now
        logger.info("Sales order %s shipped: %d OUT mutation(s)", order.order_number, written)
        return StockChange(action="APPLIED", mutations=written)

    if not shipped:
        return NO_CHANGE
    if _event_recorded(order, "stock_reversed_at", REF_TABLE_SALES_ORDER, MUTATION_IN):
        return NO_CHANGE
    now = utcnow()
    written = _apply_lines(
        lines,
        brand_id=order.brand_profile_id,
        mutation_type=MUTATION_IN,
        ref_table=REF_TABLE_SALES_ORDER,
        ref_id=order.id,
        note=f"Reversal pengiriman SO {order.order_number}",
        actor_id=actor_id,
        at=now,
    )
    if written:
        order.stock_reversed_at = now
    logger.info("Sales order %s unshipped: %d IN reversal(s)", order.order_number, written)
    return StockChange(action="REVERSED", mutations=written)


def sales_order_stock_outstanding(order: SalesOrder) -> bool:
    """True while OUT mutations exist without their IN reversal."""
    if not _event_recorded(order, "stock_applied_at", REF_TABLE_SALES_ORDER, MUTATION_OUT):
        return False
    return not _event_recorded(order, "stock_reversed_at", REF_TABLE_SALES_ORDER, MUTATION_IN)


# =============================================================================
# DIRECT PURCHASES
# =============================================================================

def apply_purchase_stock(purchase: PurchaseDirect, actor_id: int | None = None) -> StockChange:
    """IN mutations for a received purchase, once."""
    if _event_recorded(purchase, "stock_applied_at", REF_TABLE_PURCHASE, MUTATION_IN):
        return NO_CHANGE
    now = utcnow()
    written = _apply_lines(
        purchase_lines(purchase),
        brand_id=purchase.brand_profile_id,
        mutation_type=MUTATION_IN,
        ref_table=REF_TABLE_PURCHASE,
        ref_id=purchase.id,
        note=f"Pembelian Langsung {purchase.purchase_number}",
        actor_id=actor_id,
        at=now,
    )
    if written:
        purchase.stock_applied_at = now
    logger.info("Purchase %s received: %d IN mutation(s)", purchase.purchase_number, written)
    return StockChange(action="APPLIED", mutations=written)


def reverse_purchase_stock(purchase: PurchaseDirect, actor_id: int | None = None) -> StockChange:
    """OUT reversals for a received purchase about to be deleted, once."""
    if not _event_recorded(purchase, "stock_applied_at", REF_TABLE_PURCHASE, MUTATION_IN):
        return NO_CHANGE
    if _event_recorded(purchase, "stock_reversed_at", REF_TABLE_PURCHASE, MUTATION_OUT):
        return NO_CHANGE
    now = utcnow()
    written = _apply_lines(
        purchase_lines(purchase),
        brand_id=purchase.brand_profile_id,
        mutation_type=MUTATION_OUT,
        ref_table=REF_TABLE_PURCHASE,
        ref_id=purchase.id,
        note=f"Reversal pembelian {purchase.purchase_number} dibatalkan",
        actor_id=actor_id,
        at=now,
    )
    if written:
        purchase.stock_reversed_at = now
    logger.info("Purchase %s reversed: %d OUT mutation(s)", purchase.purchase_number, written)
    return StockChange(action="REVERSED", mutations=written)


# =============================================================================
# MANUAL ADJUSTMENT
# =============================================================================

def adjustment_sign(note: str | None) -> int:
    """ADJUST rows store a magnitude; the note starts with the sign."""
    return -1 if (note or "").startswith("-") else 1


def adjust_stock(tenant, product_id: int, delta: int, note: str | None = None) -> StockMutation:
    """
    Manual stock correction (stock opname, breakage, ...).

    Raises:
        ValidationError: zero delta or product does not track stock
        NotFoundError: product missing or in another brand
    """
    def _op() -> StockMutation:
        if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
            raise ValidationError("Jumlah penyesuaian harus bilangan bulat selain 0")
        if abs(delta) > MAX_QUANTITY:
            raise ValidationError("Jumlah penyesuaian terlalu besar")

        product = lock_for_update(
            db.session.query(Product).filter_by(id=product_id, brand_profile_id=tenant.brand_id)
        ).first()
        if not product:
            raise NotFoundError("Produk tidak ditemukan")
        if not product.track_stock:
            raise ValidationError("Produk ini tidak melacak stok")

        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(qty=Product.qty + delta)
            .execution_options(synchronize_session=False)
        )
        db.session.expire(product, ["qty"])

        sign = "+" if delta > 0 else "-"
        text = f"{sign}{abs(delta)}"
        if note:
            text = f"{text} {note.strip()}"
        mutation = StockMutation(
            brand_profile_id=tenant.brand_id,
            product_id=product.id,
            qty=abs(delta),
            type=MUTATION_ADJUST,
            ref_table=None,
            ref_id=None,
            note=text[:255],
            created_by_user_id=tenant.user_id,
        )
        db.session.add(mutation)
        db.session.commit()
        return mutation

    mutation = run_with_retry(_op)
    logger.info("Stock adjusted for product %s: %s", product_id, mutation.note)
    return mutation


# =============================================================================
# QUERIES
# =============================================================================

def list_stock_mutations(
    tenant,
    *,
    product_id: int | None = None,
    mutation_type: str | None = None,
    ref_table: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    page_size: int = 50,
) -> dict:
    """Mutations of the tenant's brand, newest first, with IN/OUT totals over the whole filter."""
    query = db.session.query(StockMutation).filter(StockMutation.brand_profile_id == tenant.brand_id)
    if product_id:
        query = query.filter(StockMutation.product_id == product_id)
    if mutation_type:
        query = query.filter(StockMutation.type == mutation_type)
    if ref_table:
        query = query.filter(StockMutation.ref_table == ref_table)
    if date_from:
        query = query.filter(StockMutation.created_at >= date_from)
    if date_to:
        query = query.filter(StockMutation.created_at <= date_to)

    totals = query.with_entities(
        func.coalesce(func.sum(case((StockMutation.type == MUTATION_IN, StockMutation.qty), else_=0)), 0),
        func.coalesce(func.sum(case((StockMutation.type == MUTATION_OUT, StockMutation.qty), else_=0)), 0),
        func.count(StockMutation.id),
    ).one()

    rows = (
        query.order_by(StockMutation.created_at.desc(), StockMutation.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": [row.to_dict() for row in rows],
        "totalIn": int(totals[0]),
        "totalOut": int(totals[1]),
        "count": int(totals[2]),
        "page": page,
        "pageSize": page_size,
    }


def signed_mutation_sum(product_id: int) -> int:
    rows = (
        db.session.query(StockMutation.type, StockMutation.qty, StockMutation.note)
        .filter(StockMutation.product_id == product_id)
        .all()
    )
    total = 0
    for mutation_type, qty, note in rows:
        if mutation_type == MUTATION_IN:
            total += qty
        elif mutation_type == MUTATION_OUT:
            total -= qty
        else:
            total += adjustment_sign(note) * qty
    return total


def check_stock(brand_id: int | None = None) -> list[dict]:
    """
    Tracked products whose on-hand qty differs from their signed mutation sum.

    Informational: opening balances entered before tracking began show up
    here as well.
    """
    query = db.session.query(Product).filter(Product.track_stock.is_(True))
    if brand_id is not None:
        query = query.filter(Product.brand_profile_id == brand_id)

    mismatches = []
    for product in query.order_by(Product.id.asc()).all():
        expected = signed_mutation_sum(product.id)
        if expected != product.qty:
            mismatches.append({
                "productId": product.id,
                "brandProfileId": product.brand_profile_id,
                "name": product.name,
                "qty": product.qty,
                "mutationSum": expected,
            })
    return mismatches


# =============================================================================
# CACHE REPAIR
# =============================================================================

def rebuild_stock_flags(brand_id: int | None = None) -> int:
    """
    Recompute stock_applied_at / stock_reversed_at from the mutation log.

    Returns the number of documents whose cache changed. Commits once.
    """
    targets = [
        (SalesOrder, REF_TABLE_SALES_ORDER, MUTATION_OUT, MUTATION_IN),
        (PurchaseDirect, REF_TABLE_PURCHASE, MUTATION_IN, MUTATION_OUT),
    ]

    def _op() -> int:
        changed = 0
        for model, ref_table, applied_type, reversed_type in targets:
            query = db.session.query(model)
            if brand_id is not None:
                query = query.filter(model.brand_profile_id == brand_id)
            for doc in query.order_by(model.id.asc()).all():
                applied_at = _first_mutation_at(ref_table, doc.id, applied_type)
                reversed_at = _first_mutation_at(ref_table, doc.id, reversed_type)
                if doc.stock_applied_at != applied_at or doc.stock_reversed_at != reversed_at:
                    doc.stock_applied_at = applied_at
                    doc.stock_reversed_at = reversed_at
                    changed += 1
        db.session.commit()
        return changed

    changed = run_with_retry(_op)
    logger.info("Stock flags rebuilt: %d document(s) updated", changed)
    return changed
