# Overview: Pytest coverage for the paid cache on sales orders, invoices and purchases.

from decimal import Decimal

import pytest

from brandledger.models import Payment, SalesOrder
from brandledger.services import payment_service, purchase_service, sales_order_service
from brandledger.services.payment_status_service import (
    REF_EXPENSE,
    REF_PURCHASE,
    REF_SALES_ORDER,
    PaymentStatus,
    compute_payment_status,
    recalc_all,
    recalc_payment_status_for_ref,
)


def _order(tenant, price=100000, quantity=1):
    return sales_order_service.create_sales_order(tenant, {
        "customerName": "Budi",
        "items": [{"product": "Jasa desain", "quantity": quantity, "price": price}],
    })


class TestComputePaymentStatus:
    @pytest.mark.parametrize("paid, expected", [
        ("0", PaymentStatus.UNPAID),
        ("500", PaymentStatus.PARTIAL),
        ("999.9999", PaymentStatus.PAID),
        ("1000", PaymentStatus.PAID),
        ("1500", PaymentStatus.PAID),
    ])
    def test_thresholds_at_total_1000(self, paid, expected):
        assert compute_payment_status(Decimal(paid), Decimal("1000")) == expected

    def test_just_below_tolerance_is_partial(self):
        assert compute_payment_status(Decimal("999.99"), Decimal("1000")) == PaymentStatus.PARTIAL

    def test_negative_paid_is_unpaid(self):
        assert compute_payment_status(Decimal("-5"), Decimal("1000")) == PaymentStatus.UNPAID

    def test_zero_total_with_payment_is_paid(self):
        assert compute_payment_status(Decimal("1"), Decimal("0")) == PaymentStatus.PAID


class TestRecalculation:
    def test_partial_then_full_payment(self, db_session, tenant):
        """SO worth 100000: 40000 -> PARTIAL, another 60000 -> PAID."""
        order = _order(tenant)
        assert order.total_amount == Decimal("100000")

        first = payment_service.record_payment(
            tenant, type="IN", amount=40000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )
        assert first.recalc.payment_status == PaymentStatus.PARTIAL
        db_session.refresh(order)
        assert order.paid_amount == Decimal("40000")
        assert order.payment_status == "PARTIAL"

        payment_service.record_payment(
            tenant, type="IN", amount=60000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )
        db_session.refresh(order)
        assert order.paid_amount == Decimal("100000")
        assert order.payment_status == "PAID"

    def test_recalc_is_idempotent(self, db_session, tenant):
        order = _order(tenant)
        payment_service.record_payment(
            tenant, type="IN", amount=25000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )

        first = recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, order.id)
        db_session.commit()
        second = recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, order.id)
        db_session.commit()

        assert first.paid_amount == second.paid_amount == Decimal("25000")
        assert first.payment_status == second.payment_status == PaymentStatus.PARTIAL
        assert second.changed is False

    def test_recalc_repairs_tampered_cache(self, db_session, tenant):
        order = _order(tenant)
        payment_service.record_payment(
            tenant, type="IN", amount=100000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )
        order.paid_amount = 0
        order.payment_status = "UNPAID"
        db_session.commit()

        result = recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, order.id)
        db_session.commit()

        assert result.changed is True
        db_session.refresh(order)
        assert order.payment_status == "PAID"

    def test_out_payments_do_not_count_for_sales_orders(self, db_session, tenant):
        order = _order(tenant)
        payment_service.record_payment(
            tenant, type="OUT", amount=100000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )
        db_session.refresh(order)
        assert order.payment_status == "UNPAID"
        assert order.paid_amount == Decimal("0")

    def test_purchase_counts_out_payments(self, db_session, tenant):
        purchase = purchase_service.create_purchase(tenant, {
            "items": [{"name": "Kain", "qty": 2, "unitCost": 25000}],
        })
        payment_service.record_payment(
            tenant, type="OUT", amount=50000, ref_type=REF_PURCHASE, ref_id=purchase.id
        )
        db_session.refresh(purchase)
        assert purchase.payment_status == "PAID"

    def test_payments_from_other_brand_are_ignored(self, db_session, tenant, tenant_b):
        order = _order(tenant)
        db_session.add(Payment(
            brand_profile_id=tenant_b.brand_id,
            type="IN",
            method="CASH",
            amount=100000,
            paid_at=order.date,
            ref_type=REF_SALES_ORDER,
            ref_id=order.id,
        ))
        db_session.commit()

        result = recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, order.id)
        assert result.payment_status == PaymentStatus.UNPAID

    def test_missing_document_is_noop(self, db_session, tenant):
        assert recalc_payment_status_for_ref(tenant.brand_id, REF_SALES_ORDER, 9999) is None

    def test_expense_has_no_document(self, db_session, tenant):
        assert recalc_payment_status_for_ref(tenant.brand_id, REF_EXPENSE, 1) is None

    def test_other_brand_document_is_noop(self, db_session, tenant, tenant_b):
        order = _order(tenant)
        assert recalc_payment_status_for_ref(tenant_b.brand_id, REF_SALES_ORDER, order.id) is None

    def test_recalc_all(self, db_session, tenant):
        order = _order(tenant)
        payment_service.record_payment(
            tenant, type="IN", amount=40000, ref_type=REF_SALES_ORDER, ref_id=order.id
        )
        db_session.query(SalesOrder).filter_by(id=order.id).update(
            {"paid_amount": 0, "payment_status": "UNPAID"}
        )
        db_session.commit()

        assert recalc_all(tenant.brand_id) == 1
        assert recalc_all(tenant.brand_id) == 0
        db_session.refresh(order)
        assert order.payment_status == "PARTIAL"
