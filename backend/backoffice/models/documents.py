from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class PurchaseOrder(db.Model):
    """
    Customer purchase order mirroring a sales order, gated by a warehouse
    stock confirmation before it can be invoiced.

    status_stock_confirmation is the warehouse's verdict; stock_override is
    set when the reviewer marked STOCK_AVAILABLE against a ledger that
    could not cover every line.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_purchase_orders_code"),
        db.UniqueConstraint("order_id", name="uq_purchase_orders_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    po_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    status_stock_confirmation = db.Column(db.String(24), nullable=False, default="WAITING_CONFIRMATION", index=True)
    date_stock_confirmation = db.Column(db.DateTime(timezone=True), nullable=True)
    user_stock_confirmation_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    stock_confirmation_notes = db.Column(db.Text, nullable=True)
    stock_override = db.Column(db.Boolean, nullable=False, default=False)

    # Financials (cents; tax as basis points)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    total_tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_payment_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    order = db.relationship("Order", backref=db.backref("purchase_order", uselist=False))
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "code": self.code,
            "order_id": self.order_id,
            "po_date": to_iso_date(self.po_date),
            "status": self.status,
            "status_stock_confirmation": self.status_stock_confirmation,
            "date_stock_confirmation": to_utc_z(self.date_stock_confirmation),
            "user_stock_confirmation_id": self.user_stock_confirmation_id,
            "stock_confirmation_notes": self.stock_confirmation_notes,
            "stock_override": self.stock_override,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "total_tax_cents": self.total_tax_cents,
            "shipping_cost_cents": self.shipping_cost_cents,
            "total_payment_cents": self.total_payment_cents,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_po_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
            "notes": self.notes,
        }


class Delivery(db.Model):
    """Shipment of an invoice's goods; one per invoice."""
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_deliveries_code"),
        db.UniqueConstraint("invoice_id", name="uq_deliveries_invoice"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)

    helper_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    vehicle_number = db.Column(db.String(32), nullable=True)
    delivery_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    notes = db.Column(db.Text, nullable=True)
    return_reason = db.Column(db.String(255), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("delivery", uselist=False))
    items = db.relationship(
        "DeliveryItem",
        backref="delivery",
        cascade="all, delete-orphan",
        order_by="DeliveryItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "invoice_id": self.invoice_id,
            "helper_user_id": self.helper_user_id,
            "vehicle_number": self.vehicle_number,
            "delivery_date": to_iso_date(self.delivery_date),
            "status": self.status,
            "notes": self.notes,
            "return_reason": self.return_reason,
            "completed_at": to_utc_z(self.completed_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "items": [item.to_dict() for item in self.items],
        }


class DeliveryItem(db.Model):
    __tablename__ = "delivery_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-type, per-period document sequences.

    WHY: Prevent race conditions when generating document numbers
    (orders, invoices, payments, deliveries).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period_key", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period_key = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period_key": self.period_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
