from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class SalesOrder(db.Model):
    """
    Customer sales order.

    STATUS:
    Free text (Draft, Confirmed, Shipped, Dikirim, Completed, ...). Only the
    ship-like values matter to the stock engine; see stock_service.ShipmentState.

    PAYMENT CACHE:
    paid_amount / payment_status are derived from IN payments referencing
    this order and are rewritten by payment_status_service after every
    payment. Never edit them directly.

    STOCK CACHE:
    stock_applied_at / stock_reversed_at mirror the StockMutation log for
    this order (OUT applied / IN reversal applied).
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.UniqueConstraint("brand_profile_id", "order_number", name="uq_sales_orders_brand_number"),
        db.Index("ix_sales_orders_brand_date", "brand_profile_id", "date"),
        db.Index("ix_sales_orders_brand_status", "brand_profile_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    order_number = db.Column(db.String(64), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="Draft")
    notes = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    line_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    extra_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_mode = db.Column(db.String(32), nullable=False, default="none")
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    paid_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID")

    stock_applied_at = db.Column(db.DateTime(timezone=True), nullable=True)
    stock_reversed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    brand_profile = db.relationship("BrandProfile")
    items = db.relationship(
        "SalesOrderItem",
        backref="sales_order",
        lazy=True,
        order_by="SalesOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesOrder id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "orderNumber": self.order_number,
            "customerName": self.customer_name,
            "date": to_utc_z(self.date),
            "status": self.status,
            "notes": self.notes,
            "subtotal": money_str(self.subtotal),
            "lineDiscount": money_str(self.line_discount),
            "extraDiscount": money_str(self.extra_discount),
            "taxMode": self.tax_mode,
            "taxAmount": money_str(self.tax_amount),
            "totalAmount": money_str(self.total_amount),
            "paidAmount": money_str(self.paid_amount),
            "paymentStatus": self.payment_status,
            "stockAppliedAt": to_utc_z(self.stock_applied_at),
            "stockReversedAt": to_utc_z(self.stock_reversed_at),
            "createdByUserId": self.created_by_user_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "versionId": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SalesOrderItem(db.Model):
    __tablename__ = "sales_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)

    # Lines without a product are free-text services and never touch stock
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    product = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "product": self.product,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "price": money_str(self.price),
            "discount": money_str(self.discount),
            "subtotal": money_str(self.subtotal),
        }


class Invoice(db.Model):
    """
    Customer invoice.

    total is the contract value the status recalculator compares against
    IN payments with ref_type INVOICE.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("brand_profile_id", "invoice_number", name="uq_invoices_brand_number"),
        db.Index("ix_invoices_brand_issue_date", "brand_profile_id", "issue_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    brand_profile_id = db.Column(db.Integer, db.ForeignKey("brand_profiles.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    issue_date = db.Column(db.DateTime(timezone=True), nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(32), nullable=False, default="Draft")
    notes = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    line_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    extra_discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_mode = db.Column(db.String(32), nullable=False, default="none")
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    paid_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID")

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    sales_order = db.relationship("SalesOrder", backref=db.backref("invoices", lazy=True))
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        order_by="InvoiceItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "brandProfileId": self.brand_profile_id,
            "invoiceNumber": self.invoice_number,
            "salesOrderId": self.sales_order_id,
            "customerName": self.customer_name,
            "issueDate": to_utc_z(self.issue_date),
            "dueDate": to_utc_z(self.due_date),
            "status": self.status,
            "notes": self.notes,
            "subtotal": money_str(self.subtotal),
            "lineDiscount": money_str(self.line_discount),
            "extraDiscount": money_str(self.extra_discount),
            "taxMode": self.tax_mode,
            "taxAmount": money_str(self.tax_amount),
            "total": money_str(self.total),
            "paidAmount": money_str(self.paid_amount),
            "paymentStatus": self.payment_status,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    product = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=True)
    price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product": self.product,
            "description": self.description,
            "quantity": self.quantity,
            "unit": self.unit,
            "price": money_str(self.price),
            "discount": money_str(self.discount),
            "subtotal": money_str(self.subtotal),
        }
