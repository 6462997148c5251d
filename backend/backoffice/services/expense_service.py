# Overview: Service-layer operations for expenses; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from ..extensions import get_session
from ..models import Transaction, TransactionItem
from ..statuses import TransactionType
from ..time_utils import utctoday
from ..validation import NotFoundError, ValidationError, clean_text, coerce_int
from .concurrency import run_with_retry


def create_expense(
    *,
    user_id: int,
    amount_cents: int | None = None,
    items: list[dict] | None = None,
    transaction_date: date | None = None,
    category: str | None = None,
    description: str | None = None,
    session=None,
) -> Transaction:
    """
    Record an operating expense.

    With line items the amount is their sum; a separately supplied amount
    must agree with it.
    """
    session = get_session(session)

    def _op():
        lines = []
        for idx, raw in enumerate(items or []):
            label = clean_text(raw.get("description"), max_length=255)
            if not label:
                raise ValidationError(f"items[{idx}].description is required")
            quantity = coerce_int(raw.get("quantity", 1), f"items[{idx}].quantity", minimum=1)
            price = coerce_int(raw.get("price_cents"), f"items[{idx}].price_cents", minimum=0)
            lines.append(TransactionItem(
                description=label,
                quantity=quantity,
                price_cents=price,
                line_total_cents=quantity * price,
            ))

        total = coerce_int(amount_cents, "amount_cents", required=not lines)
        if lines:
            items_total = sum(line.line_total_cents for line in lines)
            if total is not None and total != items_total:
                raise ValidationError(f"amount_cents {total} does not match the item total {items_total}")
            total = items_total
        if total <= 0:
            raise ValidationError("Expense amount must be greater than zero")

        expense = Transaction(
            transaction_date=transaction_date or utctoday(),
            transaction_type=TransactionType.EXPENSE.value,
            amount_cents=total,
            category=clean_text(category, max_length=64),
            description=clean_text(description),
            user_id=user_id,
        )
        expense.items.extend(lines)
        session.add(expense)
        session.commit()
        return expense

    return run_with_retry(_op, session=session)


def delete_expense(expense_id: int, *, session=None) -> None:
    session = get_session(session)

    def _op():
        expense = session.get(Transaction, expense_id)
        if not expense or expense.transaction_type != TransactionType.EXPENSE.value:
            raise NotFoundError(f"Expense {expense_id} not found")
        session.delete(expense)
        session.commit()

    return run_with_retry(_op, session=session)


def list_expenses(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    category: str | None = None,
    session=None,
) -> list[Transaction]:
    session = get_session(session)
    query = session.query(Transaction).filter(Transaction.transaction_type == TransactionType.EXPENSE.value)
    if start_date:
        query = query.filter(Transaction.transaction_date >= start_date)
    if end_date:
        query = query.filter(Transaction.transaction_date <= end_date)
    if category:
        query = query.filter(Transaction.category == category)
    return query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()
