from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data with its running stock counter.

    INVARIANT: current_stock never goes negative and changes only through
    stock_service.record_movement, which writes the matching StockMovement
    in the same transaction. The check constraint is the last line of
    defence if some other writer slips through.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_products_code"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    min_stock = db.Column(db.Integer, nullable=False, default=0)
    current_stock = db.Column(db.Integer, nullable=False, default=0)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "min_stock": self.min_stock,
            "current_stock": self.current_stock,
            "is_low_stock": self.is_low_stock,
            "category_id": self.category_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable stock ledger entry.

    WHY: Every change to Product.current_stock is attributable to exactly one
    row here. Rows are never updated or deleted; a mistake is undone by a
    movement in the opposite direction.

    At most one source link is set (order, production item, adjustment item,
    opname item, or delivery).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)
    direction = db.Column(db.String(8), nullable=False)  # IN / OUT
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(255), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    production_log_item_id = db.Column(db.Integer, db.ForeignKey("production_log_items.id"), nullable=True)
    stock_adjustment_item_id = db.Column(db.Integer, db.ForeignKey("stock_adjustment_items.id"), nullable=True)
    stock_opname_item_id = db.Column(db.Integer, db.ForeignKey("stock_opname_items.id"), nullable=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=True, index=True)

    product = db.relationship("Product")

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == "IN" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "direction": self.direction,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reference": self.reference,
            "user_id": self.user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "order_id": self.order_id,
            "production_log_item_id": self.production_log_item_id,
            "stock_adjustment_item_id": self.stock_adjustment_item_id,
            "stock_opname_item_id": self.stock_opname_item_id,
            "delivery_id": self.delivery_id,
        }


class ProductionLog(db.Model):
    """
    Finished goods produced in-house.

    Deleting a log voids it and writes PRODUCTION_VOID_OUT movements; the row
    stays for the audit trail.
    """
    __tablename__ = "production_logs"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    production_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED", index=True)
    notes = db.Column(db.Text, nullable=True)

    produced_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "ProductionLogItem",
        backref="production_log",
        cascade="all, delete-orphan",
        order_by="ProductionLogItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "production_date": to_iso_date(self.production_date),
            "status": self.status,
            "notes": self.notes,
            "produced_by_user_id": self.produced_by_user_id,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at),
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ProductionLogItem(db.Model):
    __tablename__ = "production_log_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_production_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    production_log_id = db.Column(db.Integer, db.ForeignKey("production_logs.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
        }


class StockAdjustment(db.Model):
    """Manual stock in / stock out / opname correction document."""
    __tablename__ = "stock_adjustments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    kind = db.Column(db.String(24), nullable=False)  # IN, OUT, OPNAME_ADJUSTMENT
    adjustment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "StockAdjustmentItem",
        backref="adjustment",
        cascade="all, delete-orphan",
        order_by="StockAdjustmentItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "kind": self.kind,
            "adjustment_date": to_iso_date(self.adjustment_date),
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class StockAdjustmentItem(db.Model):
    __tablename__ = "stock_adjustment_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    adjustment_id = db.Column(db.Integer, db.ForeignKey("stock_adjustments.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    # Signed for OPNAME_ADJUSTMENT, positive otherwise
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "notes": self.notes,
        }


class StockOpname(db.Model):
    """
    Physical stock count.

    RECONCILED means differences were found and still need to be applied;
    COMPLETED means the ledger matches the count.
    """
    __tablename__ = "stock_opnames"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True)
    opname_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="IN_PROGRESS", index=True)
    notes = db.Column(db.Text, nullable=True)

    conducted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "StockOpnameItem",
        backref="opname",
        cascade="all, delete-orphan",
        order_by="StockOpnameItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "opname_date": to_iso_date(self.opname_date),
            "status": self.status,
            "notes": self.notes,
            "conducted_by_user_id": self.conducted_by_user_id,
            "completed_at": to_utc_z(self.completed_at),
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class StockOpnameItem(db.Model):
    __tablename__ = "stock_opname_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    opname_id = db.Column(db.Integer, db.ForeignKey("stock_opnames.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    system_stock = db.Column(db.Integer, nullable=False)
    physical_stock = db.Column(db.Integer, nullable=False)
    difference = db.Column(db.Integer, nullable=False)  # physical - system
    notes = db.Column(db.String(255), nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "system_stock": self.system_stock,
            "physical_stock": self.physical_stock,
            "difference": self.difference,
            "notes": self.notes,
        }
