# Overview: Service-layer operations for invoice payments; encapsulates business logic and database work.

"""
Invoice Payment Ledger

WHY: An invoice's paid amount, remaining balance and payment status are all
derived from its payments. They are recomputed from SUM(payments) on every
payment insert/delete, and never from the previously stored values.

DESIGN PRINCIPLES:
- Payments are separate from invoices (many-to-one relationship)
- Partial payments: a payment can be less than the balance due
- Integer cents throughout: paying exactly the total always lands on PAID
- Stored remaining_amount_cents is a cache; get_invoice_balance is the
  validating read and recompute_invoice_balances the repair
"""

from __future__ import annotations

from datetime import date

from flask import current_app, has_app_context
from sqlalchemy import func

from ..config import get_setting
from ..extensions import get_session
from ..models import Invoice, Payment
from ..statuses import InvoiceStatus, PaymentMethod, PaymentStatus, parse_enum
from ..time_utils import utctoday
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number


# =============================================================================
# DERIVATION
# =============================================================================

def derive_payment_status(total_amount_cents: int, paid_amount_cents: int) -> PaymentStatus:
    """
    Pure payment status from (total, paid).

    0 -> UNPAID, below total -> PARTIALLY_PAID, equal -> PAID, above -> OVERPAID.
    """
    if paid_amount_cents <= 0:
        return PaymentStatus.UNPAID
    if paid_amount_cents < total_amount_cents:
        return PaymentStatus.PARTIALLY_PAID
    if paid_amount_cents == total_amount_cents:
        return PaymentStatus.PAID
    return PaymentStatus.OVERPAID


def compute_remaining(total_amount_cents: int, paid_amount_cents: int) -> int:
    return max(total_amount_cents - paid_amount_cents, 0)


def sum_payments(invoice_id: int, *, session=None) -> int:
    session = get_session(session)
    return int(
        session.query(func.coalesce(func.sum(Payment.amount_cents), 0))
        .filter(Payment.invoice_id == invoice_id)
        .scalar()
    )


def apply_payment_totals(invoice: Invoice, *, session=None, today: date | None = None) -> Invoice:
    """
    Rewrite paid / remaining / payment_status from the payments table.

    A fully paid invoice moves to status PAID. An invoice that drops below
    full payment (payment deleted) goes back to SENT, or OVERDUE when its
    due date has passed. Does not commit.
    """
    session = get_session(session)
    session.flush()
    paid = sum_payments(invoice.id, session=session)

    invoice.paid_amount_cents = paid
    invoice.remaining_amount_cents = compute_remaining(invoice.total_amount_cents, paid)
    status = derive_payment_status(invoice.total_amount_cents, paid)
    invoice.payment_status = status.value

    if invoice.status != InvoiceStatus.CANCELLED.value:
        if status in (PaymentStatus.PAID, PaymentStatus.OVERPAID):
            invoice.status = InvoiceStatus.PAID.value
        elif invoice.status == InvoiceStatus.PAID.value:
            today = today or utctoday()
            overdue = invoice.due_date is not None and invoice.due_date < today
            invoice.status = InvoiceStatus.OVERDUE.value if overdue else InvoiceStatus.SENT.value
    return invoice


# =============================================================================
# PAYMENT CREATION / REMOVAL
# =============================================================================

def add_payment(
    invoice_id: int,
    *,
    amount_cents: int,
    user_id: int,
    method=PaymentMethod.CASH,
    payment_date: date | None = None,
    reference: str | None = None,
    notes: str | None = None,
    allow_overpayment: bool | None = None,
    session=None,
) -> Payment:
    """
    Record a payment against an invoice.

    WHY: Core ledger operation. Validates the amount against the recomputed
    balance, stores the payment, and rewrites the invoice summary in the same
    transaction.

    Args:
        allow_overpayment: defaults to the ALLOW_OVERPAYMENT setting

    Raises:
        ValidationError: amount not positive, or above the remaining balance
        ConflictError: invoice cancelled or already fully paid
        NotFoundError: unknown invoice
    """
    session = get_session(session)
    method = parse_enum(PaymentMethod, method, "method")
    if allow_overpayment is None:
        allow_overpayment = bool(get_setting("ALLOW_OVERPAYMENT", False))

    def _op():
        if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
            raise ValidationError("Payment amount must be greater than zero")

        invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ConflictError(f"Cannot add a payment to cancelled invoice {invoice.code}")

        remaining = compute_remaining(invoice.total_amount_cents, sum_payments(invoice.id, session=session))
        if not allow_overpayment:
            if remaining == 0:
                raise ConflictError(f"Invoice {invoice.code} is already fully paid")
            if amount_cents > remaining:
                raise ValidationError(
                    f"Payment amount {amount_cents} exceeds remaining balance {remaining}"
                )

        when = payment_date or utctoday()
        payment = Payment(
            code=next_document_number("PAYMENT", on_date=when, session=session),
            invoice_id=invoice.id,
            payment_date=when,
            amount_cents=amount_cents,
            method=method.value,
            reference=clean_text(reference, max_length=128),
            notes=clean_text(notes),
            user_id=user_id,
        )
        session.add(payment)

        apply_payment_totals(invoice, session=session)
        invoice.updated_by_user_id = user_id

        session.commit()
        return payment

    return run_with_retry(_op, session=session)


def delete_payment(payment_id: int, *, user_id: int, session=None) -> Invoice:
    """Remove a mistaken payment and recompute the invoice it belonged to."""
    session = get_session(session)

    def _op():
        payment = session.get(Payment, payment_id)
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found")

        invoice = lock_for_update(session.query(Invoice).filter_by(id=payment.invoice_id)).first()
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ConflictError(f"Cannot change payments on cancelled invoice {invoice.code}")

        session.delete(payment)
        apply_payment_totals(invoice, session=session)
        invoice.updated_by_user_id = user_id

        session.commit()
        return invoice

    return run_with_retry(_op, session=session)


def get_invoice_payments(invoice_id: int, *, session=None) -> list[Payment]:
    session = get_session(session)
    if not session.get(Invoice, invoice_id):
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return (
        session.query(Payment)
        .filter_by(invoice_id=invoice_id)
        .order_by(Payment.payment_date.asc(), Payment.id.asc())
        .all()
    )


# =============================================================================
# VALIDATING READ / REPAIR
# =============================================================================

def get_invoice_balance(invoice_id: int, *, session=None) -> dict:
    """
    Authoritative balance for an invoice, recomputed from its payments.

    Stored values are reported alongside so callers can see drift, but the
    top-level fields are always the recomputed ones.
    """
    session = get_session(session)
    invoice = session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")

    paid = sum_payments(invoice.id, session=session)
    remaining = compute_remaining(invoice.total_amount_cents, paid)
    status = derive_payment_status(invoice.total_amount_cents, paid)

    return {
        "invoice_id": invoice.id,
        "code": invoice.code,
        "total_amount_cents": invoice.total_amount_cents,
        "paid_amount_cents": paid,
        "remaining_amount_cents": remaining,
        "payment_status": status.value,
        "stored_paid_amount_cents": invoice.paid_amount_cents,
        "stored_remaining_amount_cents": invoice.remaining_amount_cents,
        "stored_payment_status": invoice.payment_status,
        "consistent": (
            invoice.paid_amount_cents == paid
            and invoice.remaining_amount_cents == remaining
            and invoice.payment_status == status.value
        ),
    }


def recompute_invoice_balances(*, session=None) -> list[str]:
    """
    Repair every invoice whose stored balance disagrees with its payments.

    Returns:
        Codes of the invoices that were rewritten
    """
    session = get_session(session)

    def _op():
        repaired = []
        for invoice in session.query(Invoice).order_by(Invoice.id).all():
            before = (invoice.paid_amount_cents, invoice.remaining_amount_cents, invoice.payment_status, invoice.status)
            apply_payment_totals(invoice, session=session)
            after = (invoice.paid_amount_cents, invoice.remaining_amount_cents, invoice.payment_status, invoice.status)
            if before != after:
                repaired.append(invoice.code)
        session.commit()
        if repaired and has_app_context():
            current_app.logger.warning("Repaired stored balances on %s invoice(s): %s", len(repaired), ", ".join(repaired))
        return repaired

    return run_with_retry(_op, session=session)
