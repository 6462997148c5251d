# Overview: Service-layer operations for purchase orders and stock confirmation; encapsulates business logic and database work.

"""
Stock Confirmation Workflow

WHY: A purchase order may not proceed to invoicing until the warehouse
confirms the goods are there. The verdict is checked against the stock
ledger: marking STOCK_AVAILABLE when Product.current_stock cannot cover
every line needs an explicit, annotated override.

SIDE EFFECTS:
- STOCK_AVAILABLE  -> PurchaseOrder.status = PROCESSING
- anything else    -> PurchaseOrder.status = PENDING
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date

from ..extensions import get_session
from ..models import Order, Product, PurchaseOrder, PurchaseOrderItem, User
from ..money import apply_rate_bps
from ..statuses import (
    OrderStatus,
    PurchaseOrderStatus,
    StockConfirmationStatus,
    UserRole,
    parse_enum,
)
from ..time_utils import utcnow, utctoday
from ..validation import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    clean_text,
    coerce_int,
)
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number


STOCK_REVIEWER_ROLES = (UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)
REVIEWABLE_STATUSES = {PurchaseOrderStatus.PENDING.value, PurchaseOrderStatus.PROCESSING.value}


def compute_financials(subtotal_cents: int, discount_cents: int, tax_rate_bps: int, shipping_cost_cents: int) -> dict:
    """Tax applies to the discounted subtotal; shipping is added after tax."""
    if discount_cents > subtotal_cents:
        raise ValidationError("Discount cannot exceed the subtotal")
    taxable = subtotal_cents - discount_cents
    tax = apply_rate_bps(taxable, tax_rate_bps)
    return {
        "subtotal_cents": subtotal_cents,
        "discount_cents": discount_cents,
        "tax_rate_bps": tax_rate_bps,
        "tax_cents": tax,
        "shipping_cost_cents": shipping_cost_cents,
        "total_cents": taxable + tax + shipping_cost_cents,
    }


def create_purchase_order(
    order_id: int,
    *,
    user_id: int,
    discount_cents: int = 0,
    tax_rate_bps: int = 0,
    shipping_cost_cents: int = 0,
    po_date: date | None = None,
    notes: str | None = None,
    session=None,
) -> PurchaseOrder:
    """Open the purchase order for a sales order, mirroring its lines."""
    session = get_session(session)

    def _op():
        order = lock_for_update(session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status in (OrderStatus.CANCELED.value, OrderStatus.PENDING_CONFIRMATION.value):
            raise ConflictError(f"Cannot open a purchase order for order {order.order_number} with status {order.status}")
        if order.purchase_order is not None:
            raise ConflictError(f"Order {order.order_number} already has a purchase order")

        discount = coerce_int(discount_cents, "discount_cents", minimum=0)
        rate = coerce_int(tax_rate_bps, "tax_rate_bps", minimum=0)
        shipping = coerce_int(shipping_cost_cents, "shipping_cost_cents", minimum=0)

        po = PurchaseOrder(
            code=next_document_number("PURCHASE_ORDER", session=session),
            order_id=order.id,
            po_date=po_date or utctoday(),
            status=PurchaseOrderStatus.PENDING.value,
            status_stock_confirmation=StockConfirmationStatus.WAITING_CONFIRMATION.value,
            notes=clean_text(notes),
            created_by_user_id=user_id,
        )
        for item in order.items:
            po.items.append(PurchaseOrderItem(
                product_id=item.product_id,
                quantity=item.quantity,
                price_cents=item.price_cents,
                discount_cents=item.discount_cents,
                line_total_cents=item.line_total_cents,
            ))

        money = compute_financials(sum(i.line_total_cents for i in po.items), discount, rate, shipping)
        po.subtotal_cents = money["subtotal_cents"]
        po.discount_cents = money["discount_cents"]
        po.tax_rate_bps = money["tax_rate_bps"]
        po.total_tax_cents = money["tax_cents"]
        po.shipping_cost_cents = money["shipping_cost_cents"]
        po.total_payment_cents = money["total_cents"]

        session.add(po)
        session.commit()
        return po

    return run_with_retry(_op, session=session)


def check_purchase_order_stock(po_id: int, *, session=None) -> dict:
    """
    Compare requested quantities with the ledger, per product.

    Lines for the same product are summed before the comparison. Units the
    linked order already reserved count toward this purchase order.

    Returns:
        {"purchase_order_id", "available": bool, "items": [{product_id,
        product_name, requested, current_stock, reserved_for_order,
        shortfall, available}]}
    """
    session = get_session(session)
    po = session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")

    requested = OrderedDict()
    for item in po.items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    reserved = {}
    if po.order is not None and po.order.stock_reserved:
        for item in po.order.items:
            reserved[item.product_id] = reserved.get(item.product_id, 0) + item.quantity

    rows = []
    for product_id, quantity in requested.items():
        product = session.get(Product, product_id)
        on_hand = product.current_stock if product else 0
        held = reserved.get(product_id, 0)
        covered = on_hand + held
        rows.append({
            "product_id": product_id,
            "product_name": product.name if product else None,
            "requested": quantity,
            "current_stock": on_hand,
            "reserved_for_order": held,
            "shortfall": max(quantity - covered, 0),
            "available": covered >= quantity,
        })

    return {
        "purchase_order_id": po.id,
        "available": all(row["available"] for row in rows),
        "items": rows,
    }


def _normalize_item_notes(item_notes) -> dict[int, str | None]:
    """Accept {item_id: note} or [{"item_id": .., "notes": ..}]."""
    if not item_notes:
        return {}
    if isinstance(item_notes, dict):
        pairs = item_notes.items()
    else:
        pairs = [(entry.get("item_id"), entry.get("notes")) for entry in item_notes]
    return {coerce_int(item_id, "item_notes.item_id"): clean_text(note, max_length=255) for item_id, note in pairs}


def confirm_purchase_order_stock(
    po_id: int,
    *,
    actor_id: int,
    status=None,
    notes: str | None = None,
    item_notes=None,
    override: bool = False,
    session=None,
) -> PurchaseOrder:
    """
    Record the warehouse verdict on a purchase order.

    Args:
        status: STOCK_AVAILABLE or INSUFFICIENT_STOCK; None uses the
            verdict computed from the ledger
        item_notes: per-line notes, written in the same transaction
        override: allow STOCK_AVAILABLE when the ledger is short (notes required)

    Raises:
        PermissionDeniedError: actor is not OWNER, ADMIN or WAREHOUSE
        ConflictError: PO not reviewable, or STOCK_AVAILABLE claimed against
            insufficient stock without override
        ValidationError: override without notes, unknown item id
    """
    session = get_session(session)

    def _op():
        actor = session.get(User, actor_id)
        if not actor:
            raise NotFoundError(f"User {actor_id} not found")
        if not actor.has_role(*STOCK_REVIEWER_ROLES):
            raise PermissionDeniedError("Only owner, admin or warehouse users can confirm stock")

        po = lock_for_update(session.query(PurchaseOrder).filter_by(id=po_id)).first()
        if not po:
            raise NotFoundError(f"Purchase order {po_id} not found")
        if po.status not in REVIEWABLE_STATUSES:
            raise ConflictError(f"Purchase order {po.code} cannot be reviewed in status {po.status}")

        check = check_purchase_order_stock(po_id, session=session)
        if status is None:
            verdict = (
                StockConfirmationStatus.STOCK_AVAILABLE if check["available"]
                else StockConfirmationStatus.INSUFFICIENT_STOCK
            )
        else:
            verdict = parse_enum(StockConfirmationStatus, status, "status")
            if verdict is StockConfirmationStatus.WAITING_CONFIRMATION:
                raise ValidationError("Stock confirmation must be STOCK_AVAILABLE or INSUFFICIENT_STOCK")

        clean_notes = clean_text(notes)
        is_override = verdict is StockConfirmationStatus.STOCK_AVAILABLE and not check["available"]
        if is_override:
            if not override:
                short = ", ".join(
                    f"{row['product_name']} (short {row['shortfall']})" for row in check["items"] if not row["available"]
                )
                raise ConflictError(f"Insufficient stock to confirm availability: {short}")
            if not clean_notes:
                raise ValidationError("Overriding the stock check requires notes")

        notes_by_item = _normalize_item_notes(item_notes)
        items_by_id = {item.id: item for item in po.items}
        unknown = set(notes_by_item) - set(items_by_id)
        if unknown:
            raise ValidationError(f"Items {sorted(unknown)} do not belong to purchase order {po.code}")
        for item_id, note in notes_by_item.items():
            items_by_id[item_id].notes = note

        po.status_stock_confirmation = verdict.value
        po.date_stock_confirmation = utcnow()
        po.user_stock_confirmation_id = actor_id
        po.stock_confirmation_notes = clean_notes
        po.stock_override = is_override
        po.status = (
            PurchaseOrderStatus.PROCESSING.value
            if verdict is StockConfirmationStatus.STOCK_AVAILABLE
            else PurchaseOrderStatus.PENDING.value
        )

        session.commit()
        return po

    return run_with_retry(_op, session=session)


def get_purchase_order(po_id: int, *, session=None) -> PurchaseOrder:
    session = get_session(session)
    po = session.get(PurchaseOrder, po_id)
    if not po:
        raise NotFoundError(f"Purchase order {po_id} not found")
    return po


def list_purchase_orders_for_review(*, session=None) -> list[PurchaseOrder]:
    """Purchase orders the warehouse can still act on (PENDING or PROCESSING)."""
    session = get_session(session)
    return (
        session.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_(REVIEWABLE_STATUSES))
        .order_by(PurchaseOrder.po_date.asc(), PurchaseOrder.id.asc())
        .all()
    )
