# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date, timedelta

from ..config import get_setting
from ..extensions import get_session
from ..models import Customer, Invoice, InvoiceItem, Order, Payment, Product
from ..statuses import (
    InvoiceStatus,
    OrderStatus,
    PaymentStatus,
    PreparationStatus,
    PurchaseOrderStatus,
    StockConfirmationStatus,
    parse_enum,
)
from ..time_utils import utctoday
from ..validation import ConflictError, NotFoundError, ValidationError, clean_text, coerce_int
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .purchase_order_service import compute_financials


def _default_due_date(invoice_date: date, payment_terms_days: int | None) -> date:
    if payment_terms_days is None:
        payment_terms_days = int(get_setting("DEFAULT_PAYMENT_TERMS_DAYS", 30))
    return invoice_date + timedelta(days=payment_terms_days)


def _build_invoice(
    session,
    *,
    customer_id: int,
    lines: list[InvoiceItem],
    user_id: int,
    invoice_date: date,
    due_date: date,
    discount_cents: int,
    tax_rate_bps: int,
    shipping_cost_cents: int,
    notes: str | None,
    order_id: int | None = None,
    purchase_order_id: int | None = None,
) -> Invoice:
    if due_date < invoice_date:
        raise ValidationError("Due date cannot be before the invoice date")

    money = compute_financials(
        sum(line.line_total_cents for line in lines),
        discount_cents,
        tax_rate_bps,
        shipping_cost_cents,
    )
    # A zero total would be fully paid and UNPAID at once.
    if money["total_cents"] <= 0:
        raise ValidationError("Invoice total must be greater than zero")
    invoice = Invoice(
        code=next_document_number("INVOICE", on_date=invoice_date, session=session),
        order_id=order_id,
        purchase_order_id=purchase_order_id,
        customer_id=customer_id,
        invoice_date=invoice_date,
        due_date=due_date,
        status=InvoiceStatus.DRAFT.value,
        payment_status=PaymentStatus.UNPAID.value,
        subtotal_cents=money["subtotal_cents"],
        discount_cents=money["discount_cents"],
        tax_rate_bps=money["tax_rate_bps"],
        tax_cents=money["tax_cents"],
        shipping_cost_cents=money["shipping_cost_cents"],
        total_amount_cents=money["total_cents"],
        paid_amount_cents=0,
        remaining_amount_cents=money["total_cents"],
        status_preparation=PreparationStatus.WAITING_PREPARATION.value,
        notes=clean_text(notes),
        created_by_user_id=user_id,
    )
    invoice.items.extend(lines)
    session.add(invoice)
    return invoice


def create_invoice_from_order(
    order_id: int,
    *,
    user_id: int,
    invoice_date: date | None = None,
    due_date: date | None = None,
    payment_terms_days: int | None = None,
    discount_cents: int | None = None,
    tax_rate_bps: int | None = None,
    shipping_cost_cents: int | None = None,
    notes: str | None = None,
    session=None,
) -> Invoice:
    """
    Invoice a completed order.

    When the order has a purchase order, its stock confirmation must be
    STOCK_AVAILABLE; the invoice takes the purchase order's discount, tax and
    shipping (unless overridden) and the purchase order becomes COMPLETED.

    Raises:
        ConflictError: order not COMPLETED, already invoiced, or its purchase
            order not confirmed as STOCK_AVAILABLE
    """
    session = get_session(session)

    def _op():
        order = lock_for_update(session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status != OrderStatus.COMPLETED.value:
            raise ConflictError(
                f"Order {order.order_number} must be COMPLETED before it can be invoiced (status {order.status})"
            )
        if session.query(Invoice.id).filter(Invoice.order_id == order.id).first():
            raise ConflictError(f"Order {order.order_number} is already invoiced")

        po = order.purchase_order
        discount, rate, shipping = 0, 0, 0
        if po is not None:
            if po.status_stock_confirmation != StockConfirmationStatus.STOCK_AVAILABLE.value:
                raise ConflictError(
                    f"Purchase order {po.code} stock is not confirmed (status {po.status_stock_confirmation})"
                )
            discount, rate, shipping = po.discount_cents, po.tax_rate_bps, po.shipping_cost_cents
            po.status = PurchaseOrderStatus.COMPLETED.value

        if discount_cents is not None:
            discount = coerce_int(discount_cents, "discount_cents", minimum=0)
        if tax_rate_bps is not None:
            rate = coerce_int(tax_rate_bps, "tax_rate_bps", minimum=0)
        if shipping_cost_cents is not None:
            shipping = coerce_int(shipping_cost_cents, "shipping_cost_cents", minimum=0)

        issued = invoice_date or utctoday()
        lines = [
            InvoiceItem(
                product_id=item.product_id,
                quantity=item.quantity,
                price_cents=item.price_cents,
                discount_cents=item.discount_cents,
                line_total_cents=item.line_total_cents,
            )
            for item in order.items
        ]
        invoice = _build_invoice(
            session,
            customer_id=order.customer_id,
            lines=lines,
            user_id=user_id,
            invoice_date=issued,
            due_date=due_date or order.due_date or order.payment_deadline or _default_due_date(issued, payment_terms_days),
            discount_cents=discount,
            tax_rate_bps=rate,
            shipping_cost_cents=shipping,
            notes=notes,
            order_id=order.id,
            purchase_order_id=po.id if po is not None else None,
        )
        session.commit()
        return invoice

    return run_with_retry(_op, session=session)


def create_invoice(
    *,
    customer_id: int,
    items: list[dict],
    user_id: int,
    invoice_date: date | None = None,
    due_date: date | None = None,
    payment_terms_days: int | None = None,
    discount_cents: int = 0,
    tax_rate_bps: int = 0,
    shipping_cost_cents: int = 0,
    notes: str | None = None,
    session=None,
) -> Invoice:
    """Standalone invoice (no order), e.g. for services billed directly."""
    session = get_session(session)

    def _op():
        if not session.get(Customer, customer_id):
            raise NotFoundError(f"Customer {customer_id} not found")
        if not items:
            raise ValidationError("Invoice must contain at least one item")

        lines = []
        for idx, raw in enumerate(items):
            product_id = coerce_int(raw.get("product_id"), f"items[{idx}].product_id")
            quantity = coerce_int(raw.get("quantity"), f"items[{idx}].quantity")
            if quantity <= 0:
                raise ValidationError(f"items[{idx}].quantity must be greater than zero")
            product = session.get(Product, product_id)
            if not product:
                raise NotFoundError(f"Product {product_id} not found")
            price = coerce_int(raw.get("price_cents"), f"items[{idx}].price_cents", minimum=0, required=False)
            if price is None:
                price = product.price_cents
            discount = coerce_int(raw.get("discount_cents"), f"items[{idx}].discount_cents", minimum=0, required=False) or 0
            if discount > quantity * price:
                raise ValidationError(f"items[{idx}].discount_cents exceeds the line amount")
            lines.append(InvoiceItem(
                product_id=product_id,
                quantity=quantity,
                price_cents=price,
                discount_cents=discount,
                line_total_cents=quantity * price - discount,
            ))

        issued = invoice_date or utctoday()
        invoice = _build_invoice(
            session,
            customer_id=customer_id,
            lines=lines,
            user_id=user_id,
            invoice_date=issued,
            due_date=due_date or _default_due_date(issued, payment_terms_days),
            discount_cents=coerce_int(discount_cents, "discount_cents", minimum=0),
            tax_rate_bps=coerce_int(tax_rate_bps, "tax_rate_bps", minimum=0),
            shipping_cost_cents=coerce_int(shipping_cost_cents, "shipping_cost_cents", minimum=0),
            notes=notes,
        )
        session.commit()
        return invoice

    return run_with_retry(_op, session=session)


def send_invoice(invoice_id: int, *, user_id: int, session=None) -> Invoice:
    """DRAFT -> SENT."""
    session = get_session(session)

    def _op():
        invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise ConflictError(f"Only DRAFT invoices can be sent (invoice {invoice.code} is {invoice.status})")
        invoice.status = InvoiceStatus.SENT.value
        invoice.updated_by_user_id = user_id
        session.commit()
        return invoice

    return run_with_retry(_op, session=session)


def cancel_invoice(invoice_id: int, *, reason: str, user_id: int, session=None) -> Invoice:
    """Cancel an invoice that has no payments; preparation is cancelled with it."""
    session = get_session(session)

    def _op():
        clean_reason = clean_text(reason, max_length=255)
        if not clean_reason:
            raise ValidationError("Cancellation reason is required")

        invoice = lock_for_update(session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ConflictError(f"Invoice {invoice.code} is already cancelled")
        if session.query(Payment.id).filter(Payment.invoice_id == invoice.id).first():
            raise ConflictError(f"Cannot cancel invoice {invoice.code} because it has payments")
        if invoice.delivery is not None:
            raise ConflictError(f"Cannot cancel invoice {invoice.code} because it has a delivery")

        invoice.status = InvoiceStatus.CANCELLED.value
        invoice.cancel_reason = clean_reason
        invoice.status_preparation = PreparationStatus.CANCELLED_PREPARATION.value
        invoice.updated_by_user_id = user_id
        session.commit()
        return invoice

    return run_with_retry(_op, session=session)


def mark_overdue_invoices(*, today: date | None = None, session=None) -> list[str]:
    """SENT invoices past their due date with money still owed become OVERDUE."""
    session = get_session(session)
    today = today or utctoday()

    def _op():
        invoices = (
            session.query(Invoice)
            .filter(
                Invoice.status == InvoiceStatus.SENT.value,
                Invoice.due_date < today,
                Invoice.payment_status.in_([PaymentStatus.UNPAID.value, PaymentStatus.PARTIALLY_PAID.value]),
            )
            .all()
        )
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE.value
        session.commit()
        return [invoice.code for invoice in invoices]

    return run_with_retry(_op, session=session)


def get_invoice(invoice_id: int, *, session=None) -> Invoice:
    session = get_session(session)
    invoice = session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    *,
    status=None,
    payment_status=None,
    customer_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
    session=None,
) -> tuple[list[Invoice], int]:
    session = get_session(session)
    query = session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == parse_enum(InvoiceStatus, status, "status").value)
    if payment_status:
        query = query.filter(
            Invoice.payment_status == parse_enum(PaymentStatus, payment_status, "payment_status").value
        )
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)

    total = query.count()
    limit = max(1, min(limit, 500))
    invoices = query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset(max(offset, 0)).limit(limit).all()
    return invoices, total
