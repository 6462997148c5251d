# Overview: Service-layer operations for receivables aging; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from ..extensions import get_session
from ..models import Invoice
from ..periods import days_overdue
from ..statuses import InvoiceStatus, PaymentStatus, ReceivableCategory, parse_enum
from ..time_utils import utctoday
from .payment_service import compute_remaining


OUTSTANDING_PAYMENT_STATUSES = (PaymentStatus.UNPAID.value, PaymentStatus.PARTIALLY_PAID.value)


def categorize_days_overdue(days: int) -> ReceivableCategory:
    if days <= 0:
        return ReceivableCategory.CURRENT
    if days <= 30:
        return ReceivableCategory.OVERDUE_1_30
    if days <= 60:
        return ReceivableCategory.OVERDUE_31_60
    return ReceivableCategory.OVERDUE_60_PLUS


def receivables_aging(
    *,
    today: date | None = None,
    category=None,
    start_date: date | None = None,
    end_date: date | None = None,
    session=None,
) -> dict:
    """
    Bucket outstanding invoices by how far past due they are.

    Remaining balances are recomputed from total - paid; a stored zero on an
    invoice that still owes money is never trusted. Days overdue are whole
    UTC calendar days.

    Args:
        today: Reference date (defaults to the current UTC date)
        category: Only return rows in this ReceivableCategory
        start_date / end_date: Optional invoice_date window

    Returns:
        {"invoices": [...], "stats": {total_receivables_cents, invoice_count,
        average_days_overdue, buckets: {CATEGORY: {count, amount_cents}}}}
    """
    session = get_session(session)
    today = today or utctoday()
    wanted = parse_enum(ReceivableCategory, category, "category") if category else None

    query = session.query(Invoice).filter(
        Invoice.payment_status.in_(OUTSTANDING_PAYMENT_STATUSES),
        Invoice.status != InvoiceStatus.CANCELLED.value,
    )
    if start_date:
        query = query.filter(Invoice.invoice_date >= start_date)
    if end_date:
        query = query.filter(Invoice.invoice_date <= end_date)

    buckets = {member.value: {"count": 0, "amount_cents": 0} for member in ReceivableCategory}
    rows = []
    overdue_days = []
    for invoice in query.all():
        remaining = compute_remaining(invoice.total_amount_cents, invoice.paid_amount_cents)
        days = days_overdue(invoice.due_date, today)
        bucket = categorize_days_overdue(days)
        if wanted is not None and bucket is not wanted:
            continue

        buckets[bucket.value]["count"] += 1
        buckets[bucket.value]["amount_cents"] += remaining
        if days > 0:
            overdue_days.append(days)

        rows.append({
            "invoice_id": invoice.id,
            "code": invoice.code,
            "customer_id": invoice.customer_id,
            "customer_name": invoice.customer.name if invoice.customer else None,
            "invoice_date": invoice.invoice_date.isoformat(),
            "due_date": invoice.due_date.isoformat(),
            "total_amount_cents": invoice.total_amount_cents,
            "paid_amount_cents": invoice.paid_amount_cents,
            "remaining_amount_cents": remaining,
            "payment_status": invoice.payment_status,
            "days_overdue": days,
            "category": bucket.value,
        })

    rows.sort(key=lambda r: (-r["days_overdue"], r["due_date"], r["invoice_id"]))

    average = round(sum(overdue_days) / len(overdue_days), 1) if overdue_days else 0.0
    return {
        "invoices": rows,
        "stats": {
            "total_receivables_cents": sum(r["remaining_amount_cents"] for r in rows),
            "invoice_count": len(rows),
            "overdue_count": len(overdue_days),
            "average_days_overdue": average,
            "buckets": buckets,
        },
    }
