# Overview: Operating expense API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import expense_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_date


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")

FINANCE = (UserRole.OWNER, UserRole.ADMIN)


@expenses_bp.post("")
@require_auth
@require_role(*FINANCE)
def create_expense():
    """
    Request body:
    {
        "amount_cents": int?,     // optional when items are given
        "items": [{"description": str, "quantity": int?, "price_cents": int}]?,
        "transaction_date": "YYYY-MM-DD"?, "category": str?, "description": str?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(
            user_id=g.current_user.id,
            amount_cents=data.get("amount_cents"),
            items=data.get("items"),
            transaction_date=coerce_date(data.get("transaction_date"), "transaction_date"),
            category=data.get("category"),
            description=data.get("description"),
        )
        return action_success(expense.to_dict(), "Expense recorded", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("record expense")


@expenses_bp.get("")
@require_auth
@require_role(*FINANCE)
def list_expenses():
    try:
        expenses = expense_service.list_expenses(
            start_date=coerce_date(request.args.get("start_date"), "start_date"),
            end_date=coerce_date(request.args.get("end_date"), "end_date"),
            category=request.args.get("category") or None,
        )
        return action_success([expense.to_dict() for expense in expenses])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list expenses")


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_role(*FINANCE)
def delete_expense(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return action_success(None, "Expense deleted")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("delete expense")
