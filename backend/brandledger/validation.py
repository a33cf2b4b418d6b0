# Overview: Service error taxonomy and input coercion shared by services and routes.

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from sqlalchemy.exc import IntegrityError

from .time_utils import parse_iso_datetime, utcnow

# Largest value a Numeric(18, 2) column holds
MAX_MONEY = Decimal("9999999999999999.99")
# Integer quantity columns
MAX_QUANTITY = 2_147_483_647


class ServiceError(Exception):
    """Base for errors a route can render as a JSON envelope."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ServiceError):
    """400-level input problem, raised before any write."""
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate document number)."""
    status_code = 409


class TenantAccessError(ServiceError):
    """Raised when a brand outside the caller's scope is requested."""
    status_code = 403


# Constraint name -> user-facing message. Names match models/ __table_args__.
INTEGRITY_MESSAGES = {
    "uq_receipts_brand_number": "Nomor kwitansi bentrok, silakan coba lagi",
    "uq_receipts_payment": "Pembayaran ini sudah memiliki kwitansi",
    "uq_sales_orders_brand_number": "Nomor sales order sudah digunakan",
    "uq_purchases_brand_number": "Nomor pembelian sudah digunakan",
    "uq_invoices_brand_number": "Nomor invoice sudah digunakan",
    "uq_brand_profiles_name": "Nama brand sudah digunakan",
    "uq_brand_profiles_slug": "Slug brand sudah digunakan",
    "uq_products_brand_sku": "SKU sudah digunakan",
}

# SQLite does not report constraint names, only the offending columns.
INTEGRITY_COLUMN_HINTS = {
    "receipts.brand_profile_id, receipts.receipt_number": "uq_receipts_brand_number",
    "receipts.payment_id": "uq_receipts_payment",
    "sales_orders.brand_profile_id, sales_orders.order_number": "uq_sales_orders_brand_number",
    "purchase_directs.brand_profile_id, purchase_directs.purchase_number": "uq_purchases_brand_number",
    "invoices.brand_profile_id, invoices.invoice_number": "uq_invoices_brand_number",
    "brand_profiles.name": "uq_brand_profiles_name",
    "brand_profiles.slug": "uq_brand_profiles_slug",
    "products.brand_profile_id, products.sku": "uq_products_brand_sku",
}


def describe_integrity_error(exc: IntegrityError) -> str | None:
    """
    Translate a unique-constraint violation into a specific message.

    Returns None when the error is not a recognised unique violation.
    """
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint in INTEGRITY_MESSAGES:
        return INTEGRITY_MESSAGES[constraint]

    text = str(orig if orig is not None else exc)
    for name, message in INTEGRITY_MESSAGES.items():
        if name in text:
            return message
    if "UNIQUE constraint failed" in text:
        columns = text.split("UNIQUE constraint failed:", 1)[1].strip()
        name = INTEGRITY_COLUMN_HINTS.get(columns)
        if name:
            return INTEGRITY_MESSAGES[name]
        return "Data duplikat"
    pgcode = getattr(orig, "pgcode", None)
    if pgcode == "23505":
        return "Data duplikat"
    return None


def parse_positive_int(value: Any, field: str, *, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} wajib diisi")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} tidak valid")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} tidak valid")
        value = int(value)
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} tidak valid")
    if parsed <= 0:
        raise ValidationError(f"{field} tidak valid")
    return parsed


def parse_decimal(value: Any, field: str, *, default: Decimal | None = None) -> Decimal:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} wajib diisi")
    if isinstance(value, bool):
        raise ValidationError(f"{field} harus berupa angka")
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} harus berupa angka")
    if not parsed.is_finite():
        raise ValidationError(f"{field} harus berupa angka")
    if abs(parsed) > MAX_MONEY:
        raise ValidationError(f"{field} terlalu besar")
    return parsed


def parse_choice(value: Any, field: str, choices: Iterable[str], *, default: str | None = None) -> str:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} wajib diisi")
    normalized = str(value).strip().upper()
    allowed = list(choices)
    if normalized not in allowed:
        raise ValidationError(f"{field} harus salah satu dari: {', '.join(allowed)}")
    return normalized


def parse_datetime_input(value: Any, field: str, *, default_now: bool = True) -> datetime | None:
    """Accept datetime objects or ISO-8601 strings (date-only allowed)."""
    if value is None or value == "":
        return utcnow() if default_now else None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        raise ValidationError("Format tanggal tidak valid")
    if parsed is None:
        raise ValidationError("Format tanggal tidak valid")
    return parsed


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def conflict_from_integrity(exc: IntegrityError) -> ConflictError | None:
    message = describe_integrity_error(exc)
    if message is None:
        return None
    return ConflictError(message)


def parse_pagination(args, *, default_size: int = 20, max_size: int = 100) -> tuple[int, int]:
    """page >= 1, 1 <= pageSize <= max_size; junk falls back to defaults."""
    def _int(raw, fallback):
        try:
            return int(raw)
        except (TypeError, ValueError):
            return fallback

    page = max(1, _int(args.get("page"), 1))
    page_size = min(max_size, max(1, _int(args.get("pageSize"), default_size)))
    return page, page_size
