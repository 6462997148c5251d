# Overview: Service-layer operations for deliveries; encapsulates business logic and database work.

"""
Delivery Workflow

PENDING ──► IN_TRANSIT ──► DELIVERED
PENDING / IN_TRANSIT / DELIVERED ──► RETURNED   (reason required)
PENDING / IN_TRANSIT ──► CANCELLED

Stock left the shelf when the order reserved it, so creating or completing
a delivery moves nothing. Returning goods of an order-backed invoice writes
one RETURN_IN movement per line; a standalone invoice never took stock out,
so its return is recorded without movements.
"""

from __future__ import annotations

from datetime import date

from ..extensions import get_session
from ..models import Delivery, DeliveryItem, Invoice, User
from ..statuses import DeliveryStatus, MovementDirection, PreparationStatus, StockMovementType, parse_enum
from ..time_utils import utcnow, utctoday
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .stock_service import record_movement


ALLOWED_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.IN_TRANSIT, DeliveryStatus.RETURNED, DeliveryStatus.CANCELLED},
    DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED, DeliveryStatus.RETURNED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: {DeliveryStatus.RETURNED},
    DeliveryStatus.RETURNED: set(),
    DeliveryStatus.CANCELLED: set(),
}


def _stock_left_shelf(invoice: Invoice) -> bool:
    """Only goods reserved by an order were taken out of stock; a standalone invoice moved nothing."""
    return invoice.order is not None and invoice.order.stock_reserved


def create_delivery(
    invoice_id: int,
    *,
    user_id: int,
    helper_user_id: int | None = None,
    vehicle_number: str | None = None,
    delivery_date: date | None = None,
    notes: str | None = None,
    session=None,
) -> Delivery:
    """Schedule the delivery of a prepared invoice; lines are copied from the invoice."""
    session = get_session(session)

    def _op():
        invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status_preparation != PreparationStatus.READY_FOR_DELIVERY.value:
            raise ConflictError(
                f"Invoice {invoice.code} is not ready for delivery (preparation {invoice.status_preparation})"
            )
        if session.query(Delivery.id).filter(Delivery.invoice_id == invoice.id).first():
            raise ConflictError("Invoice already has delivery")
        if helper_user_id is not None and not session.get(User, helper_user_id):
            raise NotFoundError(f"User {helper_user_id} not found")

        delivery = Delivery(
            code=next_document_number("DELIVERY", session=session),
            invoice_id=invoice.id,
            helper_user_id=helper_user_id,
            vehicle_number=clean_text(vehicle_number, max_length=32),
            delivery_date=delivery_date or utctoday(),
            status=DeliveryStatus.PENDING.value,
            notes=clean_text(notes),
            created_by_user_id=user_id,
        )
        for item in invoice.items:
            delivery.items.append(DeliveryItem(product_id=item.product_id, quantity=item.quantity))

        session.add(delivery)
        session.commit()
        return delivery

    return run_with_retry(_op, session=session)


def update_delivery_status(
    delivery_id: int,
    *,
    new_status,
    user_id: int,
    return_reason: str | None = None,
    notes: str | None = None,
    session=None,
) -> Delivery:
    """
    Advance a delivery.

    Raises:
        ConflictError: transition not allowed from the current state
        ValidationError: RETURNED without a reason
    """
    session = get_session(session)
    target = parse_enum(DeliveryStatus, new_status, "status")

    def _op():
        delivery = lock_for_update(session.query(Delivery).filter_by(id=delivery_id)).first()
        if not delivery:
            raise NotFoundError(f"Delivery {delivery_id} not found")

        current = DeliveryStatus(delivery.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise ConflictError(f"Invalid delivery transition for {delivery.code}: {current.value} -> {target.value}")

        if target is DeliveryStatus.RETURNED:
            reason = clean_text(return_reason, max_length=255)
            if not reason:
                raise ValidationError("A return reason is required")
            delivery.return_reason = reason
            returned = delivery.items if _stock_left_shelf(delivery.invoice) else []
            for item in returned:
                record_movement(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    direction=MovementDirection.IN,
                    movement_type=StockMovementType.RETURN_IN,
                    user_id=user_id,
                    reference=f"{delivery.code} returned",
                    delivery_id=delivery.id,
                    session=session,
                )

        if target is DeliveryStatus.DELIVERED:
            delivery.completed_at = utcnow()

        delivery.status = target.value
        if notes:
            delivery.notes = clean_text(notes)
        session.commit()
        return delivery

    return run_with_retry(_op, session=session)


def get_delivery(delivery_id: int, *, session=None) -> Delivery:
    session = get_session(session)
    delivery = session.get(Delivery, delivery_id)
    if not delivery:
        raise NotFoundError(f"Delivery {delivery_id} not found")
    return delivery


def list_deliveries(*, status=None, session=None) -> list[Delivery]:
    session = get_session(session)
    query = session.query(Delivery)
    if status:
        query = query.filter(Delivery.status == parse_enum(DeliveryStatus, status, "status").value)
    return query.order_by(Delivery.delivery_date.desc(), Delivery.id.desc()).all()
