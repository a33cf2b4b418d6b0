# Overview: Pytest coverage for stock movements driven by sales order shipping and direct purchases.

"""
Stock Mutation Tests

Covers:
- Ship / unship of sales orders (OUT once, IN reversal once)
- Skipped lines (no product, untracked product, other brand)
- Direct purchase receive / delete
- Cache healing from the mutation log
- Manual adjustments, consistency check and cache rebuild
"""

import pytest

from brandledger.models import Product, PurchaseDirect, StockMutation
from brandledger.services import purchase_service, sales_order_service, stock_service
from brandledger.services.stock_service import (
    MUTATION_ADJUST,
    MUTATION_IN,
    MUTATION_OUT,
    REF_TABLE_PURCHASE,
    REF_TABLE_SALES_ORDER,
    ShipmentState,
)
from brandledger.validation import ConflictError, NotFoundError, ValidationError


def _qty(db_session, product_id):
    return db_session.query(Product.qty).filter_by(id=product_id).scalar()


def _mutations(db_session, ref_table, ref_id, mutation_type):
    return db_session.query(StockMutation).filter_by(
        ref_table=ref_table, ref_id=ref_id, type=mutation_type
    ).all()


def _order(tenant, items, status=None):
    payload = {"customerName": "Andi", "items": items}
    if status:
        payload["status"] = status
    return sales_order_service.create_sales_order(tenant, payload)


def _set_status(tenant, order_id, status):
    return sales_order_service.update_sales_order(tenant, order_id, {"status": status})


class TestShipmentState:
    @pytest.mark.parametrize("status", ["Shipped", "sent", " DIKIRIM ", "dikirim"])
    def test_ship_like(self, status):
        assert ShipmentState.from_status(status) == ShipmentState.SHIPPED

    @pytest.mark.parametrize("status", ["Draft", "Confirmed", "Completed", "", None])
    def test_not_ship_like(self, status):
        assert ShipmentState.from_status(status) == ShipmentState.NOT_SHIPPED


class TestSalesOrderShipping:
    def test_mutations_reference_their_documents(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 1, "price": 1}])
        _set_status(tenant, order.id, "Shipped")
        purchase = purchase_service.create_purchase(tenant, {
            "items": [{"name": "Kaos", "productId": product.id, "qty": 1, "unitCost": 1}],
        })
        purchase_service.receive_purchase(tenant, purchase.id)

        refs = {(m.ref_table, m.ref_id, m.type) for m in db_session.query(StockMutation).all()}
        assert refs == {("salesorder", order.id, "OUT"), ("purchasedirect", purchase.id, "IN")}

    def test_shipping_twice_mutates_once(self, db_session, tenant, product, product_2):
        order = _order(tenant, [
            {"product": "Kaos", "productId": product.id, "quantity": 2, "price": 50000},
            {"product": "Topi", "productId": product_2.id, "quantity": 3, "price": 30000},
        ])

        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Dikirim")

        outs = _mutations(db_session, REF_TABLE_SALES_ORDER, order.id, MUTATION_OUT)
        assert len(outs) == 2
        assert _qty(db_session, product.id) == 8
        assert _qty(db_session, product_2.id) == 17
        assert all(m.note == f"Sales Order {order.order_number} dikirim" for m in outs)
        db_session.refresh(order)
        assert order.stock_applied_at is not None

    def test_unshipping_restores_stock(self, db_session, tenant, product, product_2):
        order = _order(tenant, [
            {"product": "Kaos", "productId": product.id, "quantity": 2, "price": 50000},
            {"product": "Topi", "productId": product_2.id, "quantity": 3, "price": 30000},
        ])

        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Draft")

        assert _qty(db_session, product.id) == 10
        assert _qty(db_session, product_2.id) == 20
        assert len(_mutations(db_session, REF_TABLE_SALES_ORDER, order.id, MUTATION_OUT)) == 2
        ins = _mutations(db_session, REF_TABLE_SALES_ORDER, order.id, MUTATION_IN)
        assert len(ins) == 2
        assert ins[0].note == f"Reversal pengiriman SO {order.order_number}"

    def test_reship_after_reversal_does_nothing(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])

        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Draft")
        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Draft")

        assert _qty(db_session, product.id) == 10
        assert db_session.query(StockMutation).count() == 2

    def test_unshipping_never_shipped_order_does_nothing(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Confirmed")
        _set_status(tenant, order.id, "Draft")
        assert db_session.query(StockMutation).count() == 0

    def test_untracked_and_free_text_lines_never_mutate(self, db_session, tenant, untracked_product):
        order = _order(tenant, [
            {"product": "Jasa sablon", "productId": untracked_product.id, "quantity": 5, "price": 10000},
            {"product": "Ongkos desain", "quantity": 1, "price": 25000},
        ])

        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Draft")

        assert db_session.query(StockMutation).count() == 0
        assert _qty(db_session, untracked_product.id) == 0
        db_session.refresh(order)
        assert order.stock_applied_at is None

    def test_other_brand_product_is_skipped(self, db_session, tenant, product_b):
        order = _order(tenant, [{"product": "Kaos B", "productId": product_b.id, "quantity": 1, "price": 1}])
        _set_status(tenant, order.id, "Shipped")
        assert _qty(db_session, product_b.id) == 7
        assert db_session.query(StockMutation).count() == 0

    def test_order_created_as_shipped_applies_stock(self, db_session, tenant, product):
        order = _order(
            tenant,
            [{"product": "Kaos", "productId": product.id, "quantity": 4, "price": 1}],
            status="Shipped",
        )
        assert _qty(db_session, product.id) == 6
        assert len(_mutations(db_session, REF_TABLE_SALES_ORDER, order.id, MUTATION_OUT)) == 1

    def test_lost_cache_is_healed_from_log(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Shipped")

        order.stock_applied_at = None
        order.status = "Confirmed"
        db_session.commit()

        # Confirmed -> Shipped again: the log says OUT already happened
        _set_status(tenant, order.id, "Shipped")

        assert _qty(db_session, product.id) == 8
        assert len(_mutations(db_session, REF_TABLE_SALES_ORDER, order.id, MUTATION_OUT)) == 1
        db_session.refresh(order)
        assert order.stock_applied_at is not None

    def test_status_change_with_new_items_uses_previous_lines(self, db_session, tenant, product, product_2):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Shipped")

        sales_order_service.update_sales_order(tenant, order.id, {
            "status": "Draft",
            "items": [{"product": "Topi", "productId": product_2.id, "quantity": 5, "price": 1}],
        })

        assert _qty(db_session, product.id) == 10
        assert _qty(db_session, product_2.id) == 20

    def test_items_locked_while_shipped(self, db_session, tenant, product, product_2):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 5, "price": 1}])
        _set_status(tenant, order.id, "Shipped")

        with pytest.raises(ConflictError):
            sales_order_service.update_sales_order(tenant, order.id, {
                "items": [{"product": "Topi", "productId": product_2.id, "quantity": 3, "price": 1}],
            })

        db_session.refresh(order)
        assert [item.product_id for item in order.items] == [product.id]

        _set_status(tenant, order.id, "Draft")
        assert _qty(db_session, product.id) == 10
        assert _qty(db_session, product_2.id) == 20

    def test_items_replaced_before_shipping_ship_new_lines(self, db_session, tenant, product, product_2):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])

        sales_order_service.update_sales_order(tenant, order.id, {
            "status": "Shipped",
            "items": [{"product": "Topi", "productId": product_2.id, "quantity": 3, "price": 1}],
        })
        assert _qty(db_session, product.id) == 10
        assert _qty(db_session, product_2.id) == 17

        _set_status(tenant, order.id, "Draft")
        assert _qty(db_session, product_2.id) == 20

    def test_delete_refused_while_shipped(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Shipped")

        with pytest.raises(ConflictError):
            sales_order_service.delete_sales_order(tenant, order.id)

        _set_status(tenant, order.id, "Draft")
        sales_order_service.delete_sales_order(tenant, order.id)
        with pytest.raises(NotFoundError):
            sales_order_service.get_sales_order(tenant, order.id)
        assert _qty(db_session, product.id) == 10


class TestDirectPurchases:
    def test_receive_then_delete(self, db_session, tenant, product, product_2):
        purchase = purchase_service.create_purchase(tenant, {
            "supplierName": "Toko Kain",
            "items": [
                {"name": "Kaos", "productId": product.id, "qty": 5, "unitCost": 20000},
                {"name": "Topi", "productId": product_2.id, "qty": 3, "unitCost": 15000},
            ],
        })
        assert db_session.query(StockMutation).count() == 0

        purchase_service.receive_purchase(tenant, purchase.id)

        ins = _mutations(db_session, REF_TABLE_PURCHASE, purchase.id, MUTATION_IN)
        assert len(ins) == 2
        assert ins[0].note == f"Pembelian Langsung {purchase.purchase_number}"
        assert _qty(db_session, product.id) == 15
        assert _qty(db_session, product_2.id) == 23

        purchase_id = purchase.id
        purchase_service.delete_purchase(tenant, purchase_id)

        outs = _mutations(db_session, REF_TABLE_PURCHASE, purchase_id, MUTATION_OUT)
        assert len(outs) == 2
        assert _qty(db_session, product.id) == 10
        assert _qty(db_session, product_2.id) == 20

    def test_receive_is_idempotent(self, db_session, tenant, product):
        purchase = purchase_service.create_purchase(tenant, {
            "items": [{"name": "Kaos", "productId": product.id, "qty": 5, "unitCost": 20000}],
        })
        purchase_service.receive_purchase(tenant, purchase.id)
        again = purchase_service.receive_purchase(tenant, purchase.id)

        assert again.status == "Received"
        assert _qty(db_session, product.id) == 15
        assert db_session.query(StockMutation).count() == 1

    def test_deleting_draft_purchase_moves_no_stock(self, db_session, tenant, product):
        purchase = purchase_service.create_purchase(tenant, {
            "items": [{"name": "Kaos", "productId": product.id, "qty": 5, "unitCost": 20000}],
        })
        purchase_service.delete_purchase(tenant, purchase.id)
        assert db_session.query(StockMutation).count() == 0
        assert _qty(db_session, product.id) == 10

    def test_items_locked_after_receive(self, db_session, tenant, product):
        purchase = purchase_service.create_purchase(tenant, {
            "items": [{"name": "Kaos", "productId": product.id, "qty": 5, "unitCost": 20000}],
        })
        purchase_service.receive_purchase(tenant, purchase.id)

        with pytest.raises(ConflictError):
            purchase_service.update_purchase(tenant, purchase.id, {
                "items": [{"name": "Kaos", "productId": product.id, "qty": 50, "unitCost": 20000}],
            })
        assert _qty(db_session, product.id) == 15

    def test_totals(self, db_session, tenant):
        purchase = purchase_service.create_purchase(tenant, {
            "items": [
                {"name": "Kain", "qty": 2, "unitCost": 25000},
                {"name": "Benang", "qty": "1.5", "price": 1000},
            ],
            "shippingCost": 10000,
            "fee": 2500,
        })
        data = purchase.to_dict()
        assert data["supplierName"] == "Marketplace"
        assert data["items"][1]["qty"] == 2
        assert data["subtotal"] == "52000.00"
        assert data["total"] == "64500.00"
        assert data["purchaseNumber"].startswith("PL-")

    def test_blank_item_name_rejected(self, db_session, tenant):
        with pytest.raises(ValidationError):
            purchase_service.create_purchase(tenant, {"items": [{"name": " ", "qty": 1}]})

    @pytest.mark.parametrize("payload", [
        {"items": [{"name": "Kain", "qty": 1, "unitCost": "1e30"}]},
        {"items": [{"name": "Kain", "qty": "5000000000", "unitCost": 1}]},
        {"items": [{"name": "Kain", "qty": 2, "unitCost": "9000000000000000"}]},
        {"items": [{"name": "Kain", "qty": 1, "unitCost": 1}], "shippingCost": "1e20"},
    ])
    def test_oversized_amounts_rejected(self, db_session, tenant, payload):
        with pytest.raises(ValidationError):
            purchase_service.create_purchase(tenant, payload)
        assert db_session.query(PurchaseDirect).count() == 0


class TestAdjustments:
    def test_adjust_up_and_down(self, db_session, tenant, product):
        up = stock_service.adjust_stock(tenant, product.id, 5, "Stock opname")
        down = stock_service.adjust_stock(tenant, product.id, -3, "Barang rusak")

        assert up.type == MUTATION_ADJUST
        assert up.qty == 5
        assert up.note == "+5 Stock opname"
        assert down.note == "-3 Barang rusak"
        assert stock_service.adjustment_sign(down.note) == -1
        assert _qty(db_session, product.id) == 12

    @pytest.mark.parametrize("delta", [0, True, "5", 3_000_000_000])
    def test_invalid_delta(self, db_session, tenant, product, delta):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(tenant, product.id, delta)

    def test_untracked_product_rejected(self, db_session, tenant, untracked_product):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(tenant, untracked_product.id, 1)

    def test_other_brand_product_not_found(self, db_session, tenant, product_b):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(tenant, product_b.id, 1)


class TestConsistency:
    def test_check_stock_reports_opening_balance(self, db_session, tenant, product):
        """Products seeded with qty but no mutations show up as informational mismatches."""
        mismatches = stock_service.check_stock(tenant.brand_id)
        assert [row["productId"] for row in mismatches] == [product.id]
        assert mismatches[0]["mutationSum"] == 0

    def test_check_stock_clean_when_log_matches(self, db_session, tenant, product):
        product.qty = 0
        db_session.commit()
        stock_service.adjust_stock(tenant, product.id, 4)
        stock_service.adjust_stock(tenant, product.id, -1)
        assert stock_service.check_stock(tenant.brand_id) == []

    def test_rebuild_stock_flags(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Shipped")
        db_session.refresh(order)
        applied_at = order.stock_applied_at

        order.stock_applied_at = None
        db_session.commit()

        assert stock_service.rebuild_stock_flags(tenant.brand_id) == 1
        assert stock_service.rebuild_stock_flags(tenant.brand_id) == 0
        db_session.refresh(order)
        assert order.stock_applied_at == applied_at

    def test_list_stock_mutations_totals(self, db_session, tenant, product):
        order = _order(tenant, [{"product": "Kaos", "productId": product.id, "quantity": 2, "price": 1}])
        _set_status(tenant, order.id, "Shipped")
        _set_status(tenant, order.id, "Draft")
        stock_service.adjust_stock(tenant, product.id, 1)

        result = stock_service.list_stock_mutations(tenant, page=1, page_size=2)
        assert result["count"] == 3
        assert result["totalIn"] == 2
        assert result["totalOut"] == 2
        assert len(result["items"]) == 2

        only_adjust = stock_service.list_stock_mutations(tenant, mutation_type=MUTATION_ADJUST)
        assert only_adjust["count"] == 1
