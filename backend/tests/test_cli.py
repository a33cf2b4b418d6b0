# Overview: Pytest coverage for the flask CLI groups (system init, ledger repair).

from brandledger.models import BrandProfile, SalesOrder, StockMutation, User
from brandledger.services import sales_order_service


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    args = ["system", "init", "--brand", "Toko Utama", "--username", "pemilik", "--password", "Password123"]

    result = runner.invoke(args=args)
    assert result.exit_code == 0, result.output
    assert "PASS Created brand: Toko Utama" in result.output

    again = runner.invoke(args=args)
    assert again.exit_code == 0, again.output
    assert "already exists" in again.output

    brand = db_session.query(BrandProfile).filter_by(name="Toko Utama").one()
    assert brand.slug == "toko-utama"
    user = db_session.query(User).filter_by(username="pemilik").one()
    assert user.role_names == ["owner"]
    assert user.default_brand_profile_id == brand.id


def test_system_init_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["system", "init", "--password", "lemah"])
    assert result.exit_code != 0
    assert "Password validation failed" in result.output
    assert db_session.query(User).count() == 0


def test_recalc_status_repairs_cache(app, db_session, tenant, product):
    order = sales_order_service.create_sales_order(tenant, {
        "customerName": "Budi",
        "items": [{"product": product.name, "productId": product.id, "quantity": 1, "price": 1000}],
    })
    order.payment_status = "PAID"
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["ledger", "recalc-status"])

    assert result.exit_code == 0, result.output
    assert "1 document(s) updated" in result.output
    assert db_session.get(SalesOrder, order.id).payment_status == "UNPAID"


def test_rebuild_stock_flags(app, db_session, tenant, product):
    order = sales_order_service.create_sales_order(tenant, {
        "customerName": "Budi",
        "status": "Shipped",
        "items": [{"product": product.name, "productId": product.id, "quantity": 1, "price": 1000}],
    })
    order.stock_applied_at = None
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["ledger", "rebuild-stock-flags", "--brand-id", str(tenant.brand_id)])

    assert result.exit_code == 0, result.output
    assert "1 document(s) updated" in result.output
    assert db_session.get(SalesOrder, order.id).stock_applied_at is not None


def test_check_stock_reports_mismatch(app, db_session, product):
    result = app.test_cli_runner().invoke(args=["ledger", "check-stock"])

    assert result.exit_code == 0, result.output
    assert "WARN  1 product(s) differ" in result.output
    assert "Kaos Polos" in result.output


def test_check_stock_clean(app, db_session, tenant, product):
    product.qty = 0
    db_session.commit()
    assert db_session.query(StockMutation).count() == 0

    result = app.test_cli_runner().invoke(args=["ledger", "check-stock"])

    assert result.exit_code == 0, result.output
    assert "PASS All tracked products match" in result.output
