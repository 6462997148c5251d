# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Service

WHY: Product.current_stock is a running counter, and every change to it must
be explained by exactly one immutable StockMovement row. record_movement is
the only place that touches the counter.

DESIGN PRINCIPLES:
- Decrements are conditional UPDATEs (current_stock >= qty); there is no
  read-then-write window for a concurrent order to slip through
- Counter update and movement row share the caller's transaction
- Nothing is deleted; reversal means writing the opposite movement
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import update

from ..extensions import get_session
from ..models import (
    Product,
    ProductionLog,
    ProductionLogItem,
    StockAdjustment,
    StockAdjustmentItem,
    StockMovement,
    StockOpname,
    StockOpnameItem,
)
from ..statuses import (
    AdjustmentKind,
    MovementDirection,
    OpnameStatus,
    ProductionStatus,
    StockMovementType,
    parse_enum,
)
from ..time_utils import utcnow, utctoday
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text, coerce_int
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number


# =============================================================================
# LEDGER CHOKE POINT
# =============================================================================

def record_movement(
    *,
    product_id: int,
    quantity: int,
    direction,
    movement_type,
    user_id: int | None = None,
    reference: str | None = None,
    session=None,
    **source_links,
) -> StockMovement:
    """
    Apply a stock delta and write its ledger entry.

    Does not commit: the caller's transaction decides whether both the
    counter change and the movement persist.

    Args:
        product_id: Product whose stock changes
        quantity: Positive unit count
        direction: MovementDirection.IN or OUT
        movement_type: StockMovementType describing the cause
        source_links: at most one of order_id, production_log_item_id,
            stock_adjustment_item_id, stock_opname_item_id, delivery_id

    Raises:
        ValidationError: non-positive quantity
        NotFoundError: unknown product
        ConflictError: OUT larger than the current stock
    """
    session = get_session(session)
    direction = parse_enum(MovementDirection, direction, "direction")
    movement_type = parse_enum(StockMovementType, movement_type, "movement_type")

    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Stock movement quantity must be a positive integer")

    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")

    stmt = update(Product).where(Product.id == product_id)
    if direction is MovementDirection.OUT:
        stmt = stmt.where(Product.current_stock >= quantity).values(
            current_stock=Product.current_stock - quantity
        )
    else:
        stmt = stmt.values(current_stock=Product.current_stock + quantity)

    result = session.execute(stmt.execution_options(synchronize_session=False))
    session.refresh(product, attribute_names=["current_stock"])

    if result.rowcount != 1:
        raise ConflictError(
            f"Insufficient stock for {product.name}: available {product.current_stock}, requested {quantity}"
        )

    new_stock = product.current_stock
    previous_stock = new_stock + quantity if direction is MovementDirection.OUT else new_stock - quantity

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type.value,
        direction=direction.value,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reference=reference,
        user_id=user_id,
        occurred_at=utcnow(),
        **source_links,
    )
    session.add(movement)
    return movement


def _clean_lines(items, *, signed: bool = False) -> list[tuple[int, int, str | None]]:
    if not items:
        raise ValidationError("At least one item is required")
    lines = []
    for idx, item in enumerate(items):
        product_id = coerce_int(item.get("product_id"), f"items[{idx}].product_id")
        quantity = coerce_int(item.get("quantity"), f"items[{idx}].quantity")
        if signed and quantity == 0:
            raise ValidationError(f"items[{idx}].quantity must not be zero")
        if not signed and quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be greater than zero")
        lines.append((product_id, quantity, clean_text(item.get("notes"))))
    return lines


# =============================================================================
# PRODUCTION
# =============================================================================

def create_production_log(
    *,
    items: list[dict],
    user_id: int,
    production_date: date | None = None,
    notes: str | None = None,
    session=None,
) -> ProductionLog:
    """Record produced goods; one PRODUCTION_IN movement per item."""
    session = get_session(session)

    def _op():
        lines = _clean_lines(items)
        log = ProductionLog(
            code=next_document_number("PRODUCTION", session=session),
            production_date=production_date or utctoday(),
            status=ProductionStatus.COMPLETED.value,
            notes=clean_text(notes),
            produced_by_user_id=user_id,
        )
        session.add(log)
        for product_id, quantity, _ in lines:
            log.items.append(ProductionLogItem(product_id=product_id, quantity=quantity))
        session.flush()

        for item in log.items:
            record_movement(
                product_id=item.product_id,
                quantity=item.quantity,
                direction=MovementDirection.IN,
                movement_type=StockMovementType.PRODUCTION_IN,
                user_id=user_id,
                reference=log.code,
                production_log_item_id=item.id,
                session=session,
            )

        session.commit()
        return log

    return run_with_retry(_op, session=session)


def delete_production_log(log_id: int, *, user_id: int, session=None) -> ProductionLog:
    """
    Void a production log and take its stock back out.

    Net effect of create-then-delete on each product is zero. Fails when the
    produced units have already been consumed (the OUT would go negative).
    """
    session = get_session(session)

    def _op():
        log = lock_for_update(session.query(ProductionLog).filter_by(id=log_id)).first()
        if not log:
            raise NotFoundError(f"Production log {log_id} not found")
        if log.status == ProductionStatus.VOIDED.value:
            raise ConflictError(f"Production log {log.code} is already voided")

        for item in log.items:
            record_movement(
                product_id=item.product_id,
                quantity=item.quantity,
                direction=MovementDirection.OUT,
                movement_type=StockMovementType.PRODUCTION_VOID_OUT,
                user_id=user_id,
                reference=f"{log.code} voided",
                production_log_item_id=item.id,
                session=session,
            )

        log.status = ProductionStatus.VOIDED.value
        log.voided_by_user_id = user_id
        log.voided_at = utcnow()
        session.commit()
        return log

    return run_with_retry(_op, session=session)


# =============================================================================
# MANUAL ADJUSTMENTS
# =============================================================================

_ADJUSTMENT_MOVEMENTS = {
    AdjustmentKind.IN: (MovementDirection.IN, StockMovementType.ADJUSTMENT_IN),
    AdjustmentKind.OUT: (MovementDirection.OUT, StockMovementType.ADJUSTMENT_OUT),
}


def create_stock_adjustment(
    *,
    kind,
    items: list[dict],
    user_id: int,
    adjustment_date: date | None = None,
    notes: str | None = None,
    session=None,
) -> StockAdjustment:
    """
    Manual stock in / stock out / opname correction.

    OPNAME_ADJUSTMENT quantities are signed (positive adds, negative removes).
    Counted opname differences are applied by reconcile_stock_opname instead.
    """
    session = get_session(session)
    kind = parse_enum(AdjustmentKind, kind, "kind")

    def _op():
        lines = _clean_lines(items, signed=kind is AdjustmentKind.OPNAME_ADJUSTMENT)

        adjustment = StockAdjustment(
            code=next_document_number("ADJUSTMENT", session=session),
            kind=kind.value,
            adjustment_date=adjustment_date or utctoday(),
            notes=clean_text(notes),
            user_id=user_id,
        )
        session.add(adjustment)
        for product_id, quantity, line_notes in lines:
            adjustment.items.append(
                StockAdjustmentItem(product_id=product_id, quantity=quantity, notes=line_notes)
            )
        session.flush()

        for item in adjustment.items:
            if kind is AdjustmentKind.OPNAME_ADJUSTMENT:
                direction = MovementDirection.IN if item.quantity > 0 else MovementDirection.OUT
                movement_type = StockMovementType.OPNAME_ADJUSTMENT
            else:
                direction, movement_type = _ADJUSTMENT_MOVEMENTS[kind]
            record_movement(
                product_id=item.product_id,
                quantity=abs(item.quantity),
                direction=direction,
                movement_type=movement_type,
                user_id=user_id,
                reference=adjustment.code,
                stock_adjustment_item_id=item.id,
                session=session,
            )

        session.commit()
        return adjustment

    return run_with_retry(_op, session=session)


# =============================================================================
# STOCK OPNAME (PHYSICAL COUNT)
# =============================================================================

def create_stock_opname(
    *,
    items: list[dict],
    user_id: int,
    opname_date: date | None = None,
    notes: str | None = None,
    session=None,
) -> StockOpname:
    """
    Capture a physical count against the ledger.

    Each item needs product_id and physical_stock. Difference is
    physical - system. Status is RECONCILED when any line differs (the
    differences still have to be applied), COMPLETED otherwise. No stock
    moves here.
    """
    session = get_session(session)

    def _op():
        if not items:
            raise ValidationError("At least one item is required")

        opname = StockOpname(
            code=next_document_number("OPNAME", session=session),
            opname_date=opname_date or utctoday(),
            status=OpnameStatus.IN_PROGRESS.value,
            notes=clean_text(notes),
            conducted_by_user_id=user_id,
        )
        session.add(opname)

        seen = set()
        for idx, raw in enumerate(items):
            product_id = coerce_int(raw.get("product_id"), f"items[{idx}].product_id")
            physical = coerce_int(raw.get("physical_stock"), f"items[{idx}].physical_stock", minimum=0)
            if product_id in seen:
                raise ValidationError(f"Product {product_id} is counted twice")
            seen.add(product_id)

            product = session.get(Product, product_id)
            if not product:
                raise NotFoundError(f"Product {product_id} not found")

            opname.items.append(StockOpnameItem(
                product_id=product_id,
                system_stock=product.current_stock,
                physical_stock=physical,
                difference=physical - product.current_stock,
                notes=clean_text(raw.get("notes")),
            ))

        if any(item.difference for item in opname.items):
            opname.status = OpnameStatus.RECONCILED.value
        else:
            opname.status = OpnameStatus.COMPLETED.value
            opname.completed_at = utcnow()

        session.commit()
        return opname

    return run_with_retry(_op, session=session)


def reconcile_stock_opname(opname_id: int, *, user_id: int, session=None) -> StockOpname:
    """Apply each counted difference as an OPNAME_ADJUSTMENT movement and complete the opname."""
    session = get_session(session)

    def _op():
        opname = lock_for_update(session.query(StockOpname).filter_by(id=opname_id)).first()
        if not opname:
            raise NotFoundError(f"Stock opname {opname_id} not found")
        if opname.status != OpnameStatus.RECONCILED.value:
            raise ConflictError(f"Stock opname {opname.code} has no pending differences (status {opname.status})")

        for item in opname.items:
            if not item.difference:
                continue
            record_movement(
                product_id=item.product_id,
                quantity=abs(item.difference),
                direction=MovementDirection.IN if item.difference > 0 else MovementDirection.OUT,
                movement_type=StockMovementType.OPNAME_ADJUSTMENT,
                user_id=user_id,
                reference=opname.code,
                stock_opname_item_id=item.id,
                session=session,
            )

        opname.status = OpnameStatus.COMPLETED.value
        opname.completed_at = utcnow()
        session.commit()
        return opname

    return run_with_retry(_op, session=session)


# =============================================================================
# QUERIES
# =============================================================================

def get_stock_movements(
    *,
    product_id: int | None = None,
    movement_type=None,
    order_id: int | None = None,
    limit: int = 100,
    session=None,
) -> list[StockMovement]:
    session = get_session(session)
    query = session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        movement_type = parse_enum(StockMovementType, movement_type, "movement_type")
        query = query.filter(StockMovement.movement_type == movement_type.value)
    if order_id is not None:
        query = query.filter(StockMovement.order_id == order_id)
    limit = max(1, min(limit, 500))
    return query.order_by(StockMovement.id.desc()).limit(limit).all()


def get_low_stock_products(*, session=None) -> list[Product]:
    session = get_session(session)
    return (
        session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )
