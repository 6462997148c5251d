# Overview: Service-layer operations for sales orders; encapsulates business logic and database work.

"""
Order Lifecycle Service

WHY: Orders reserve stock. Every transition that reserves or releases stock
writes one StockMovement per order line in the same transaction as the
status change, so the ledger and the counters can never disagree.

STATE MACHINE:
    create ──► NEW                      (requires_confirmation = False, stock reserved)
    create ──► PENDING_CONFIRMATION     (requires_confirmation = True, no stock moved)
    PENDING_CONFIRMATION ──approve──► NEW (stock reserved)
    PENDING_CONFIRMATION ──reject───► CANCELED
    NEW ──► IN_PROCESS ──► COMPLETED    (NEW ──► COMPLETED also allowed)
    any non-terminal ──cancel──► CANCELED (reserved stock released)
"""

from __future__ import annotations

from datetime import date

from ..extensions import get_session
from ..models import Order, OrderItem, Product, User
from ..statuses import MovementDirection, OrderStatus, StockMovementType, UserRole, parse_enum
from ..time_utils import utcnow, utctoday
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text, coerce_int
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .party_service import resolve_or_create_customer, resolve_or_create_store
from .stock_service import record_movement


TERMINAL_STATUSES = {OrderStatus.COMPLETED.value, OrderStatus.CANCELED.value}
EDITABLE_STATUSES = {OrderStatus.NEW.value, OrderStatus.PENDING_CONFIRMATION.value}


# =============================================================================
# HELPERS
# =============================================================================

def _get_order_locked(session, order_id: int) -> Order:
    order = lock_for_update(session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _require_sales_rep(session, user_id) -> User:
    if user_id is None:
        raise ValidationError("sales_user_id is required")
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f"Sales user {user_id} not found")
    if not user.is_active:
        raise ValidationError(f"User {user.username} is inactive")
    if not user.has_role(UserRole.SALES):
        raise ValidationError(f"User {user.username} does not have the SALES role")
    return user


def _build_items(session, items: list[dict]) -> list[OrderItem]:
    """
    Validate raw item payloads and price them.

    price_cents defaults to the product's list price. line total is
    quantity * price - discount.
    """
    if not items:
        raise ValidationError("Order must contain at least one item")

    built = []
    for idx, raw in enumerate(items):
        product_id = coerce_int(raw.get("product_id"), f"items[{idx}].product_id")
        quantity = coerce_int(raw.get("quantity"), f"items[{idx}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{idx}].quantity must be greater than zero")

        product = session.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        if not product.is_active:
            raise ValidationError(f"Product {product.name} is inactive")

        price = coerce_int(raw.get("price_cents"), f"items[{idx}].price_cents", minimum=0, required=False)
        if price is None:
            price = product.price_cents
        discount = coerce_int(raw.get("discount_cents"), f"items[{idx}].discount_cents", minimum=0, required=False) or 0
        gross = quantity * price
        if discount > gross:
            raise ValidationError(f"items[{idx}].discount_cents exceeds the line amount")

        built.append(OrderItem(
            product_id=product_id,
            quantity=quantity,
            price_cents=price,
            discount_cents=discount,
            line_total_cents=gross - discount,
        ))
    return built


def _recalculate_totals(order: Order) -> None:
    order.subtotal_cents = sum(item.quantity * item.price_cents for item in order.items)
    order.total_amount_cents = sum(item.line_total_cents for item in order.items)


def _reserve_stock(session, order: Order, user_id: int | None) -> None:
    for item in order.items:
        record_movement(
            product_id=item.product_id,
            quantity=item.quantity,
            direction=MovementDirection.OUT,
            movement_type=StockMovementType.SALES_OUT,
            user_id=user_id,
            reference=order.order_number,
            order_id=order.id,
            session=session,
        )
    order.stock_reserved = True


def _release_stock(session, order: Order, user_id: int | None, reason: str) -> None:
    for item in order.items:
        record_movement(
            product_id=item.product_id,
            quantity=item.quantity,
            direction=MovementDirection.IN,
            movement_type=StockMovementType.ORDER_RELEASE_IN,
            user_id=user_id,
            reference=f"{order.order_number}: {reason}",
            order_id=order.id,
            session=session,
        )
    order.stock_reserved = False


# =============================================================================
# LIFECYCLE
# =============================================================================

def create_order(
    *,
    sales_user_id: int,
    items: list[dict],
    customer_id: int | None = None,
    customer_name: str | None = None,
    store_id: int | None = None,
    store_name: str | None = None,
    requires_confirmation: bool = False,
    notes: str | None = None,
    delivery_address: str | None = None,
    payment_type: str | None = None,
    payment_deadline: date | None = None,
    order_date: date | None = None,
    due_date: date | None = None,
    session=None,
) -> Order:
    """
    Create a sales order.

    WHY: Orders that skip confirmation reserve stock immediately; orders that
    need an admin's approval hold nothing until approved.

    Args:
        sales_user_id: Sales rep taking the order (must hold the SALES role)
        items: [{"product_id", "quantity", "price_cents"?, "discount_cents"?}]
        customer_id / customer_name: existing customer, or a name resolved
            case-insensitively and created when unknown
        store_id / store_name: optional destination store, same resolution

    Returns:
        The committed Order

    Raises:
        ValidationError: no items, bad quantities, rep lacks SALES role
        NotFoundError: unknown rep, product, customer or store id
        ConflictError: not enough stock for an immediately reserved order
    """
    session = get_session(session)

    def _op():
        _require_sales_rep(session, sales_user_id)
        built_items = _build_items(session, items)

        if customer_id is None and not (customer_name or "").strip():
            raise ValidationError("customer_id or customer_name is required")
        customer = resolve_or_create_customer(customer_id=customer_id, name=customer_name, session=session)

        store = None
        if store_id is not None or (store_name or "").strip():
            store = resolve_or_create_store(store_id=store_id, name=store_name, session=session)

        today = order_date or utctoday()
        order = Order(
            order_number=next_document_number("ORDER", on_date=today, session=session),
            customer_id=customer.id,
            store_id=store.id if store else None,
            sales_user_id=sales_user_id,
            status=(
                OrderStatus.PENDING_CONFIRMATION.value if requires_confirmation else OrderStatus.NEW.value
            ),
            requires_confirmation=bool(requires_confirmation),
            stock_reserved=False,
            notes=clean_text(notes),
            delivery_address=clean_text(delivery_address),
            payment_type=clean_text(payment_type, max_length=32),
            payment_deadline=payment_deadline,
            order_date=today,
            due_date=due_date,
        )
        order.items.extend(built_items)
        _recalculate_totals(order)
        session.add(order)
        session.flush()

        if not requires_confirmation:
            _reserve_stock(session, order, sales_user_id)

        session.commit()
        return order

    return run_with_retry(_op, session=session)


def confirm_order(
    order_id: int,
    *,
    approve: bool,
    confirmed_by: int,
    notes: str | None = None,
    session=None,
) -> Order:
    """
    Admin decision on an order awaiting confirmation.

    Approve moves it to NEW and reserves stock; reject cancels it. Either way
    confirmed_at / confirmed_by / admin_notes are stamped.

    Raises:
        ConflictError: order is not PENDING_CONFIRMATION, or stock is short on approve
    """
    session = get_session(session)

    def _op():
        order = _get_order_locked(session, order_id)
        if order.status != OrderStatus.PENDING_CONFIRMATION.value:
            raise ConflictError(
                f"Order {order.order_number} is not awaiting confirmation (status {order.status})"
            )
        if not session.get(User, confirmed_by):
            raise NotFoundError(f"User {confirmed_by} not found")

        now = utcnow()
        order.confirmed_at = now
        order.confirmed_by_user_id = confirmed_by
        order.admin_notes = clean_text(notes)

        if approve:
            order.status = OrderStatus.NEW.value
            _reserve_stock(session, order, confirmed_by)
        else:
            order.status = OrderStatus.CANCELED.value
            order.canceled_at = now
            order.canceled_by_user_id = confirmed_by
            order.cancel_reason = clean_text(notes, max_length=255) or "Rejected during confirmation"

        session.commit()
        return order

    return run_with_retry(_op, session=session)


def start_processing(order_id: int, *, user_id: int, session=None) -> Order:
    """NEW -> IN_PROCESS. Stock is already reserved, so nothing moves."""
    session = get_session(session)

    def _op():
        order = _get_order_locked(session, order_id)
        if order.status != OrderStatus.NEW.value:
            raise ConflictError(f"Only NEW orders can start processing (order {order.order_number} is {order.status})")
        order.status = OrderStatus.IN_PROCESS.value
        session.commit()
        return order

    return run_with_retry(_op, session=session)


def complete_order(order_id: int, *, user_id: int, session=None) -> Order:
    """Mark an order fulfilled; completed orders can be invoiced."""
    session = get_session(session)

    def _op():
        order = _get_order_locked(session, order_id)
        if order.status not in (OrderStatus.NEW.value, OrderStatus.IN_PROCESS.value):
            raise ConflictError(f"Cannot complete order {order.order_number} with status {order.status}")
        order.status = OrderStatus.COMPLETED.value
        order.completed_at = utcnow()
        session.commit()
        return order

    return run_with_retry(_op, session=session)


def cancel_order(order_id: int, *, reason: str, user_id: int, session=None) -> Order:
    """
    Cancel any non-terminal order.

    If the order currently holds reserved stock, one ORDER_RELEASE_IN
    movement per line puts it back, in the same transaction as the status
    change.
    """
    session = get_session(session)

    def _op():
        clean_reason = clean_text(reason, max_length=255)
        if not clean_reason:
            raise ValidationError("Cancellation reason is required")

        order = _get_order_locked(session, order_id)
        if order.status in TERMINAL_STATUSES:
            raise ConflictError(f"Cannot cancel order {order.order_number} with status {order.status}")

        if order.stock_reserved:
            _release_stock(session, order, user_id, "canceled")

        order.status = OrderStatus.CANCELED.value
        order.canceled_at = utcnow()
        order.canceled_by_user_id = user_id
        order.cancel_reason = clean_reason
        session.commit()
        return order

    return run_with_retry(_op, session=session)


def update_order_items(order_id: int, *, items: list[dict], user_id: int, session=None) -> Order:
    """
    Replace the lines of an order that has not started processing.

    A reserved order releases its old lines and reserves the new ones in one
    transaction; if the new lines cannot be covered nothing changes.
    """
    session = get_session(session)

    def _op():
        order = _get_order_locked(session, order_id)
        if order.status not in EDITABLE_STATUSES:
            raise ConflictError(f"Cannot edit order {order.order_number} with status {order.status}")

        new_items = _build_items(session, items)
        was_reserved = order.stock_reserved
        if was_reserved:
            _release_stock(session, order, user_id, "items updated")

        order.items.clear()
        session.flush()
        order.items.extend(new_items)
        _recalculate_totals(order)
        session.flush()

        if was_reserved:
            _reserve_stock(session, order, user_id)

        session.commit()
        return order

    return run_with_retry(_op, session=session)


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int, *, session=None) -> Order:
    session = get_session(session)
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    status=None,
    sales_user_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
    session=None,
) -> tuple[list[Order], int]:
    session = get_session(session)
    query = session.query(Order)
    if status:
        status = parse_enum(OrderStatus, status, "status")
        query = query.filter(Order.status == status.value)
    if sales_user_id is not None:
        query = query.filter(Order.sales_user_id == sales_user_id)

    total = query.count()
    limit = max(1, min(limit, 500))
    orders = query.order_by(Order.id.desc()).offset(max(offset, 0)).limit(limit).all()
    return orders, total
