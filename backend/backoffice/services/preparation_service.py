# Overview: Service-layer operations for warehouse preparation of invoices; encapsulates business logic and database work.

"""
Warehouse Preparation

WHY: Goods are only picked for invoices the business considers paid enough.
Which payment statuses qualify is a setting
(PREPARATION_ELIGIBLE_PAYMENT_STATUSES, default PAID), and every query and
transition goes through the one predicate defined here.

TRANSITIONS:
    WAITING_PREPARATION ──► PREPARING ──► READY_FOR_DELIVERY   (eligible invoices only)
    any state before a delivery exists ──► CANCELLED_PREPARATION
"""

from __future__ import annotations

from sqlalchemy import and_

from ..config import get_setting
from ..extensions import get_session
from ..models import Delivery, Invoice
from ..statuses import InvoiceStatus, PaymentStatus, PreparationStatus, parse_enum
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text
from .concurrency import lock_for_update, run_with_retry


FORWARD_TRANSITIONS = {
    PreparationStatus.WAITING_PREPARATION: PreparationStatus.PREPARING,
    PreparationStatus.PREPARING: PreparationStatus.READY_FOR_DELIVERY,
}
CANCELLABLE = {
    PreparationStatus.WAITING_PREPARATION,
    PreparationStatus.PREPARING,
    PreparationStatus.READY_FOR_DELIVERY,
}
OPEN_QUEUE = (PreparationStatus.WAITING_PREPARATION, PreparationStatus.PREPARING)


def eligible_payment_statuses() -> tuple[PaymentStatus, ...]:
    raw = get_setting("PREPARATION_ELIGIBLE_PAYMENT_STATUSES", ("PAID",))
    if isinstance(raw, str):
        raw = raw.split(",")
    return tuple(parse_enum(PaymentStatus, value, "PREPARATION_ELIGIBLE_PAYMENT_STATUSES") for value in raw)


def is_eligible_for_preparation(invoice: Invoice, eligible_statuses=None) -> bool:
    """Whether warehouse preparation may move this invoice forward."""
    eligible = eligible_statuses or eligible_payment_statuses()
    return (
        invoice.status != InvoiceStatus.CANCELLED.value
        and invoice.payment_status in {status.value for status in eligible}
    )


def eligibility_clause(eligible_statuses=None):
    """SQL form of is_eligible_for_preparation, for queue queries."""
    eligible = eligible_statuses or eligible_payment_statuses()
    return and_(
        Invoice.status != InvoiceStatus.CANCELLED.value,
        Invoice.payment_status.in_([status.value for status in eligible]),
    )


def get_preparation_queue(*, statuses=None, session=None) -> list[Invoice]:
    """Eligible invoices still being prepared (WAITING_PREPARATION or PREPARING by default)."""
    session = get_session(session)
    wanted = [parse_enum(PreparationStatus, s, "status_preparation").value for s in (statuses or OPEN_QUEUE)]
    return (
        session.query(Invoice)
        .filter(eligibility_clause(), Invoice.status_preparation.in_(wanted))
        .order_by(Invoice.invoice_date.asc(), Invoice.id.asc())
        .all()
    )


def get_waiting_for_preparation(*, session=None) -> list[Invoice]:
    """Eligible invoices the warehouse has not started on."""
    return get_preparation_queue(statuses=[PreparationStatus.WAITING_PREPARATION], session=session)


def get_ready_for_delivery(*, session=None) -> list[Invoice]:
    """Prepared invoices that do not have a delivery yet."""
    session = get_session(session)
    return (
        session.query(Invoice)
        .outerjoin(Delivery, Delivery.invoice_id == Invoice.id)
        .filter(
            eligibility_clause(),
            Invoice.status_preparation == PreparationStatus.READY_FOR_DELIVERY.value,
            Delivery.id.is_(None),
        )
        .order_by(Invoice.invoice_date.asc(), Invoice.id.asc())
        .all()
    )


def confirm_preparation(
    invoice_id: int,
    *,
    new_status,
    actor_id: int,
    notes: str | None = None,
    session=None,
) -> Invoice:
    """
    Move an invoice through warehouse preparation.

    Raises:
        ValidationError: unknown status
        ConflictError: transition not allowed from the current state, or the
            invoice is not eligible (payment status below the threshold)
    """
    session = get_session(session)
    target = parse_enum(PreparationStatus, new_status, "status_preparation")
    if target is PreparationStatus.WAITING_PREPARATION:
        raise ValidationError("WAITING_PREPARATION is the initial state and cannot be set")

    def _op():
        invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        current = PreparationStatus(invoice.status_preparation)
        if target is PreparationStatus.CANCELLED_PREPARATION:
            if current not in CANCELLABLE:
                raise ConflictError(f"Cannot cancel preparation of invoice {invoice.code} in status {current.value}")
            if invoice.delivery is not None:
                raise ConflictError(f"Cannot cancel preparation of invoice {invoice.code} because it has a delivery")
        else:
            if FORWARD_TRANSITIONS.get(current) is not target:
                raise ConflictError(
                    f"Invalid preparation transition for invoice {invoice.code}: {current.value} -> {target.value}"
                )
            if not is_eligible_for_preparation(invoice):
                raise ConflictError(
                    f"Invoice {invoice.code} is not eligible for preparation (payment status {invoice.payment_status})"
                )

        invoice.status_preparation = target.value
        invoice.preparation_notes = clean_text(notes) or invoice.preparation_notes
        invoice.prepared_by_user_id = actor_id
        invoice.prepared_at = utcnow()
        invoice.updated_by_user_id = actor_id
        session.commit()
        return invoice

    return run_with_retry(_op, session=session)
