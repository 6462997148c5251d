from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Order(db.Model):
    """
    Sales order taken by a sales rep.

    WHY: The order is where stock is reserved. stock_reserved records whether
    SALES_OUT movements are currently held against this order so cancellation
    knows whether it must write the reversing movements.

    INVARIANT: total_amount_cents == sum(item.line_total_cents) at commit.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    sales_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Lifecycle status
    status = db.Column(db.String(24), nullable=False, default="NEW", index=True)
    requires_confirmation = db.Column(db.Boolean, nullable=False, default=False)
    stock_reserved = db.Column(db.Boolean, nullable=False, default=False)

    # Amounts (cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    payment_type = db.Column(db.String(32), nullable=True)
    payment_deadline = db.Column(db.Date, nullable=True)
    order_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    # Confirmation audit trail
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Cancel audit trail
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    store = db.relationship("Store")
    sales_user = db.relationship("User", foreign_keys=[sales_user_id])
    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "sales_user_id": self.sales_user_id,
            "status": self.status,
            "requires_confirmation": self.requires_confirmation,
            "stock_reserved": self.stock_reserved,
            "subtotal_cents": self.subtotal_cents,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "admin_notes": self.admin_notes,
            "delivery_address": self.delivery_address,
            "payment_type": self.payment_type,
            "payment_deadline": to_iso_date(self.payment_deadline),
            "order_date": to_iso_date(self.order_date),
            "due_date": to_iso_date(self.due_date),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "confirmed_by_user_id": self.confirmed_by_user_id,
            "completed_at": to_utc_z(self.completed_at),
            "canceled_at": to_utc_z(self.canceled_at),
            "canceled_by_user_id": self.canceled_by_user_id,
            "cancel_reason": self.cancel_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        }


class Invoice(db.Model):
    """
    Customer invoice and its payment ledger summary.

    paid_amount_cents, remaining_amount_cents and payment_status are derived
    from the payments table and rewritten on every payment insert/delete.
    Readers that need an authoritative balance go through
    payment_service.get_invoice_balance instead of trusting the stored
    remaining value.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_invoices_code"),
        db.CheckConstraint("paid_amount_cents >= 0", name="ck_invoices_paid_nonnegative"),
        db.CheckConstraint("remaining_amount_cents >= 0", name="ck_invoices_remaining_nonnegative"),
        db.Index("ix_invoices_status_date", "status", "invoice_date"),
        db.Index("ix_invoices_payment_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, unique=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    invoice_date = db.Column(db.Date, nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="DRAFT", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)

    # Amounts (cents)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Warehouse preparation
    status_preparation = db.Column(db.String(24), nullable=False, default="WAITING_PREPARATION", index=True)
    preparation_notes = db.Column(db.Text, nullable=True)
    prepared_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    prepared_at = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order", backref=db.backref("invoice", uselist=False))
    purchase_order = db.relationship("PurchaseOrder", backref=db.backref("invoice", uselist=False))
    customer = db.relationship("Customer")
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )
    payments = db.relationship("Payment", backref="invoice", lazy="dynamic")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "order_id": self.order_id,
            "purchase_order_id": self.purchase_order_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "payment_status": self.payment_status,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "shipping_cost_cents": self.shipping_cost_cents,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "remaining_amount_cents": self.remaining_amount_cents,
            "status_preparation": self.status_preparation,
            "preparation_notes": self.preparation_notes,
            "prepared_by_user_id": self.prepared_by_user_id,
            "prepared_at": to_utc_z(self.prepared_at),
            "notes": self.notes,
            "cancel_reason": self.cancel_reason,
            "created_by_user_id": self.created_by_user_id,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Money received against an invoice.

    Immutable once created. A wrong entry is deleted and re-entered; either
    way the invoice totals are recomputed from SUM(amount_cents).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_payments_code"),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    payment_date = db.Column(db.Date, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)  # CASH, BANK_TRANSFER, CHECK, GIRO
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "invoice_id": self.invoice_id,
            "payment_date": to_iso_date(self.payment_date),
            "amount_cents": self.amount_cents,
            "method": self.method,
            "reference": self.reference,
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
