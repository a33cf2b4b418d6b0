# Overview: Pytest coverage for per-brand document numbering.

from datetime import datetime, timezone

import pytest

from brandledger.models import DocumentSequence
from brandledger.services import numbering_service
from brandledger.services.numbering_service import (
    RECEIPT,
    DocumentSequenceError,
    allocate_sequence,
    format_receipt_number,
)


class TestFormats:
    def test_formats(self):
        assert format_receipt_number("202501", 7) == "RC-202501-0007"
        assert numbering_service.format_purchase_number("202501", 12) == "PL-202501-0012"
        assert numbering_service.format_sales_order_number("2025", 1) == "SO-2025-0001"
        assert numbering_service.format_invoice_number("2025", 10000) == "INV-2025-10000"


class TestAllocation:
    def test_sequence_starts_at_one_and_increments(self, db_session, brand_a):
        assert [allocate_sequence(brand_a.id, RECEIPT, "202501") for _ in range(3)] == [1, 2, 3]
        db_session.commit()
        row = db_session.query(DocumentSequence).one()
        assert row.next_number == 4

    def test_sequences_are_independent(self, db_session, brand_a, brand_b):
        assert allocate_sequence(brand_a.id, RECEIPT, "202501") == 1
        assert allocate_sequence(brand_a.id, RECEIPT, "202502") == 1
        assert allocate_sequence(brand_b.id, RECEIPT, "202501") == 1
        assert allocate_sequence(brand_a.id, numbering_service.PURCHASE_DIRECT, "202501") == 1
        assert allocate_sequence(brand_a.id, RECEIPT, "202501") == 2

    def test_rollback_returns_number(self, db_session, brand_a):
        allocate_sequence(brand_a.id, RECEIPT, "202501")
        db_session.commit()
        allocate_sequence(brand_a.id, RECEIPT, "202501")
        db_session.rollback()
        assert allocate_sequence(brand_a.id, RECEIPT, "202501") == 2

    def test_requires_brand(self, db_session):
        with pytest.raises(DocumentSequenceError):
            allocate_sequence(None, RECEIPT, "202501")

    def test_peek_does_not_consume(self, db_session, brand_a):
        at = datetime(2025, 3, 15, 12, 0)
        assert numbering_service.peek_purchase_number(brand_a.id, at=at) == "PL-202503-0001"
        assert numbering_service.peek_purchase_number(brand_a.id, at=at) == "PL-202503-0001"
        assert numbering_service.next_purchase_number(brand_a.id, at=at) == "PL-202503-0001"
        assert numbering_service.peek_purchase_number(brand_a.id, at=at) == "PL-202503-0002"

    def test_month_follows_business_timezone(self, db_session, brand_a):
        """23:30 UTC on Jan 31 is already February in Jakarta."""
        at = datetime(2025, 1, 31, 23, 30, tzinfo=timezone.utc)
        assert numbering_service.next_receipt_number(brand_a.id, at=at) == "RC-202502-0001"

    def test_yearly_numbers(self, db_session, brand_a):
        at = datetime(2025, 6, 1)
        assert numbering_service.next_sales_order_number(brand_a.id, at=at) == "SO-2025-0001"
        assert numbering_service.next_sales_order_number(brand_a.id, at=at) == "SO-2025-0002"
        assert numbering_service.next_invoice_number(brand_a.id, at=at) == "INV-2025-0001"
