# Overview: Service-layer operations for revenue, target and profitability reporting; encapsulates business logic and database work.

"""
Revenue & Target Aggregation

Reporting views over PAID invoices, sales targets and expenses. Each call
issues a few independent read queries without a surrounding transaction;
brief staleness between them is acceptable for dashboards.

Failures here propagate: there is no meaningful partial result to return.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date

from sqlalchemy import func

from ..extensions import get_session
from ..models import Category, Invoice, InvoiceItem, Order, Product, SalesTarget, Transaction, User
from ..money import percentage
from ..periods import month_keys_between, period_date_range, period_key_for_date, time_range_bounds
from ..statuses import GroupBy, InvoiceStatus, TargetType, TimeRange, TransactionType, UserRole, parse_enum
from ..time_utils import utctoday
from ..validation import NotFoundError, ValidationError


def _check_range(start: date, end: date) -> None:
    if start is None or end is None:
        raise ValidationError("start and end dates are required")
    if start > end:
        raise ValidationError("start date must not be after end date")


# =============================================================================
# REVENUE
# =============================================================================

def get_revenue_over_time(start: date, end: date, group_by="month", *, session=None) -> list[dict]:
    """
    Revenue of PAID invoices bucketed by invoice date.

    Buckets are chronological and sparse: a period without paid invoices is
    absent, not zero. Weeks use ISO-8601 numbering ("2025-W07").

    Returns:
        [{"period", "revenue_cents", "invoice_count"}]
    """
    session = get_session(session)
    _check_range(start, end)
    group_by = parse_enum(GroupBy, group_by, "group_by")

    rows = (
        session.query(Invoice.invoice_date, Invoice.total_amount_cents)
        .filter(
            Invoice.status == InvoiceStatus.PAID.value,
            Invoice.invoice_date >= start,
            Invoice.invoice_date <= end,
        )
        .order_by(Invoice.invoice_date.asc())
        .all()
    )

    buckets: "OrderedDict[str, dict]" = OrderedDict()
    for invoice_date, total in rows:
        key = period_key_for_date(invoice_date, group_by)
        bucket = buckets.setdefault(key, {"period": key, "revenue_cents": 0, "invoice_count": 0})
        bucket["revenue_cents"] += int(total or 0)
        bucket["invoice_count"] += 1

    return [buckets[key] for key in sorted(buckets)]


def achieved_amount(user_ids, start: date, end: date, *, session=None) -> int:
    """
    Sum of PAID invoices credited to any of user_ids with invoice_date in [start, end].

    An invoice raised from an order is credited to the order's sales rep,
    whoever issued it; a standalone invoice is credited to its creator.
    """
    session = get_session(session)
    user_ids = list(user_ids)
    if not user_ids:
        return 0
    credited_to = func.coalesce(Order.sales_user_id, Invoice.created_by_user_id)
    total = (
        session.query(func.coalesce(func.sum(Invoice.total_amount_cents), 0))
        .select_from(Invoice)
        .outerjoin(Order, Order.id == Invoice.order_id)
        .filter(
            Invoice.status == InvoiceStatus.PAID.value,
            credited_to.in_(user_ids),
            Invoice.invoice_date >= start,
            Invoice.invoice_date <= end,
        )
        .scalar()
    )
    return int(total or 0)


# =============================================================================
# TARGETS
# =============================================================================

def achievement_percentage(achieved_cents: int, target_cents: int) -> float:
    """achieved / target * 100 to two places; a zero target is 0%."""
    return percentage(achieved_cents, target_cents)


def get_target_achievement(target_id: int, *, session=None) -> dict:
    session = get_session(session)
    target = session.get(SalesTarget, target_id)
    if not target:
        raise NotFoundError(f"Sales target {target_id} not found")

    start, end = period_date_range(target.target_period, target.target_type)
    achieved = achieved_amount([target.user_id], start, end, session=session)
    return {
        "target_id": target.id,
        "user_id": target.user_id,
        "target_type": target.target_type,
        "period": target.target_period,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "target_cents": target.target_amount_cents,
        "achieved_cents": achieved,
        "percentage": achievement_percentage(achieved, target.target_amount_cents),
    }


def get_targets_for_chart(*, target_type, user_id: int | None = None, session=None) -> list[dict]:
    """
    Target vs achieved per period, for one user or the whole sales team.

    Company-wide rows sum the active targets of SALES-role users per period;
    achieved counts only invoices credited to those same users, so
    standalone invoices issued by admins never inflate the team's result.

    Returns:
        [{"period", "target_cents", "achieved_cents", "percentage"}] ordered by period
    """
    session = get_session(session)
    target_type = parse_enum(TargetType, target_type, "target_type")

    query = session.query(SalesTarget).filter(
        SalesTarget.target_type == target_type.value,
        SalesTarget.is_active.is_(True),
    )
    if user_id is not None:
        query = query.filter(SalesTarget.user_id == user_id)
    else:
        query = query.join(User, User.id == SalesTarget.user_id).filter(User.role == UserRole.SALES.value)

    periods: "OrderedDict[str, dict]" = OrderedDict()
    for target in query.order_by(SalesTarget.target_period.asc()).all():
        entry = periods.setdefault(target.target_period, {"target_cents": 0, "user_ids": set()})
        entry["target_cents"] += target.target_amount_cents
        entry["user_ids"].add(target.user_id)

    results = []
    for period, entry in periods.items():
        start, end = period_date_range(period, target_type)
        achieved = achieved_amount(entry["user_ids"], start, end, session=session)
        results.append({
            "period": period,
            "target_cents": entry["target_cents"],
            "achieved_cents": achieved,
            "percentage": achievement_percentage(achieved, entry["target_cents"]),
        })
    return results


# =============================================================================
# PROFITABILITY
# =============================================================================

def _paid_lines_query(session, start: date, end: date):
    revenue = func.coalesce(func.sum(InvoiceItem.line_total_cents), 0)
    cost = func.coalesce(func.sum(InvoiceItem.quantity * Product.cost_cents), 0)
    units = func.coalesce(func.sum(InvoiceItem.quantity), 0)
    return session.query(
        revenue.label("revenue_cents"),
        cost.label("cost_cents"),
        units.label("units_sold"),
    ).join(Invoice, InvoiceItem.invoice_id == Invoice.id).join(
        Product, InvoiceItem.product_id == Product.id
    ).filter(
        Invoice.status == InvoiceStatus.PAID.value,
        Invoice.invoice_date >= start,
        Invoice.invoice_date <= end,
    )


def _profit_row(revenue: int, cost: int) -> dict:
    gross = revenue - cost
    return {
        "revenue_cents": revenue,
        "cost_cents": cost,
        "gross_profit_cents": gross,
        "margin_pct": percentage(gross, revenue),
    }


def operating_expenses(start: date, end: date, *, session=None) -> int:
    session = get_session(session)
    total = (
        session.query(func.coalesce(func.sum(Transaction.amount_cents), 0))
        .filter(
            Transaction.transaction_type == TransactionType.EXPENSE.value,
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        .scalar()
    )
    return int(total or 0)


def profitability_for_range(start: date, end: date, *, session=None) -> dict:
    """
    Gross and net profit of PAID invoices dated in [start, end].

    Line cost is the product's cost times quantity. Margin is 0% when there
    is no revenue. Net profit subtracts EXPENSE transactions in the window.
    """
    session = get_session(session)
    _check_range(start, end)

    totals = _paid_lines_query(session, start, end).one()
    revenue = int(totals.revenue_cents or 0)
    cogs = int(totals.cost_cents or 0)

    product_rows = (
        _paid_lines_query(session, start, end)
        .add_columns(Product.id.label("product_id"), Product.name.label("name"))
        .group_by(Product.id, Product.name)
        .order_by(func.sum(InvoiceItem.line_total_cents).desc())
        .all()
    )
    products = [
        {
            "product_id": row.product_id,
            "name": row.name,
            "units_sold": int(row.units_sold or 0),
            **_profit_row(int(row.revenue_cents or 0), int(row.cost_cents or 0)),
        }
        for row in product_rows
    ]

    category_rows = (
        _paid_lines_query(session, start, end)
        .outerjoin(Category, Product.category_id == Category.id)
        .add_columns(Category.id.label("category_id"), Category.name.label("name"))
        .group_by(Category.id, Category.name)
        .order_by(func.sum(InvoiceItem.line_total_cents).desc())
        .all()
    )
    categories = [
        {
            "category_id": row.category_id,
            "name": row.name or "Uncategorized",
            "units_sold": int(row.units_sold or 0),
            **_profit_row(int(row.revenue_cents or 0), int(row.cost_cents or 0)),
        }
        for row in category_rows
    ]

    expenses = operating_expenses(start, end, session=session)
    gross = revenue - cogs
    net = gross - expenses
    return {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "revenue_cents": revenue,
        "cogs_cents": cogs,
        "gross_profit_cents": gross,
        "gross_margin_pct": percentage(gross, revenue),
        "operating_expenses_cents": expenses,
        "net_profit_cents": net,
        "net_margin_pct": percentage(net, revenue),
        "products": products,
        "categories": categories,
    }


def profitability_report(time_range="month", *, today: date | None = None, session=None) -> dict:
    """Profitability for the current month, quarter or year."""
    start, end = time_range_bounds(time_range, today or utctoday())
    report = profitability_for_range(start, end, session=session)
    report["time_range"] = parse_enum(TimeRange, time_range, "time_range").value
    return report


def cost_breakdown(time_range="month", *, today: date | None = None, session=None) -> dict:
    """
    Where the money went: COGS plus expenses by category.

    Each entry's percentage is its share of total costs.
    """
    session = get_session(session)
    start, end = time_range_bounds(time_range, today or utctoday())

    cogs = int(_paid_lines_query(session, start, end).one().cost_cents or 0)
    expense_rows = (
        session.query(
            Transaction.category.label("category"),
            func.coalesce(func.sum(Transaction.amount_cents), 0).label("amount_cents"),
        )
        .filter(
            Transaction.transaction_type == TransactionType.EXPENSE.value,
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        )
        .group_by(Transaction.category)
        .order_by(func.sum(Transaction.amount_cents).desc())
        .all()
    )

    entries = [{"category": "Cost of goods sold", "amount_cents": cogs}]
    entries.extend(
        {"category": row.category or "Uncategorized", "amount_cents": int(row.amount_cents or 0)}
        for row in expense_rows
    )
    total = sum(entry["amount_cents"] for entry in entries)
    for entry in entries:
        entry["percentage"] = percentage(entry["amount_cents"], total)

    return {
        "time_range": parse_enum(TimeRange, time_range, "time_range").value,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "total_costs_cents": total,
        "entries": entries,
    }


def monthly_profit_and_loss(time_range="year", *, today: date | None = None, session=None) -> list[dict]:
    """One P&L row per calendar month of the selected range, including empty months."""
    session = get_session(session)
    start, end = time_range_bounds(time_range, today or utctoday())

    rows = []
    for key in month_keys_between(start, end):
        month_start, month_end = period_date_range(key, TargetType.MONTHLY)
        totals = _paid_lines_query(session, month_start, month_end).one()
        revenue = int(totals.revenue_cents or 0)
        cogs = int(totals.cost_cents or 0)
        expenses = operating_expenses(month_start, month_end, session=session)
        rows.append({
            "period": key,
            "revenue_cents": revenue,
            "cogs_cents": cogs,
            "gross_profit_cents": revenue - cogs,
            "operating_expenses_cents": expenses,
            "net_profit_cents": revenue - cogs - expenses,
        })
    return rows
