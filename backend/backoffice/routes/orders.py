# Overview: Sales order API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import order_service
from ..statuses import OrderStatus, UserRole
from ..validation import DomainError, coerce_bool, coerce_date, coerce_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

MANAGERS = (UserRole.OWNER, UserRole.ADMIN)


@orders_bp.post("")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN, UserRole.SALES)
def create_order():
    """
    Create a sales order and reserve its stock.

    Request body:
    {
        "items": [{"product_id": int, "quantity": int, "price_cents": int?, "discount_cents": int?}],
        "customer_id": int | "customer_name": str,
        "store_id": int? | "store_name": str?,
        "sales_user_id": int?,          // defaults to the caller
        "requires_confirmation": bool?,
        "notes", "delivery_address", "payment_type": str?,
        "payment_deadline", "order_date", "due_date": "YYYY-MM-DD"?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.create_order(
            sales_user_id=coerce_int(data.get("sales_user_id", g.current_user.id), "sales_user_id"),
            items=data.get("items") or [],
            customer_id=coerce_int(data.get("customer_id"), "customer_id", required=False),
            customer_name=data.get("customer_name"),
            store_id=coerce_int(data.get("store_id"), "store_id", required=False),
            store_name=data.get("store_name"),
            requires_confirmation=coerce_bool(data.get("requires_confirmation")),
            notes=data.get("notes"),
            delivery_address=data.get("delivery_address"),
            payment_type=data.get("payment_type"),
            payment_deadline=coerce_date(data.get("payment_deadline"), "payment_deadline"),
            order_date=coerce_date(data.get("order_date"), "order_date"),
            due_date=coerce_date(data.get("due_date"), "due_date"),
        )
        return action_success(order.to_dict(), "Order created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create order")


@orders_bp.get("")
@require_auth
def list_orders():
    try:
        orders, total = order_service.list_orders(
            status=request.args.get("status"),
            sales_user_id=request.args.get("sales_user_id", type=int),
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return action_success({
            "orders": [order.to_dict(include_items=False) for order in orders],
            "total": total,
        })
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list orders")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order(order_id: int):
    try:
        return action_success(order_service.get_order(order_id).to_dict())
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load order")


@orders_bp.post("/<int:order_id>/confirm")
@require_auth
@require_role(*MANAGERS)
def confirm_order(order_id: int):
    """Approve or reject an order waiting for confirmation. Body: {"approve": bool, "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.confirm_order(
            order_id,
            approve=coerce_bool(data.get("approve"), default=True),
            confirmed_by=g.current_user.id,
            notes=data.get("notes"),
        )
        return action_success(order.to_dict(), "Order rejected" if order.status == OrderStatus.CANCELED.value else "Order confirmed")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("confirm order")


@orders_bp.post("/<int:order_id>/process")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)
def start_processing(order_id: int):
    try:
        order = order_service.start_processing(order_id, user_id=g.current_user.id)
        return action_success(order.to_dict(), "Order in process")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("start processing order")


@orders_bp.post("/<int:order_id>/complete")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)
def complete_order(order_id: int):
    try:
        order = order_service.complete_order(order_id, user_id=g.current_user.id)
        return action_success(order.to_dict(), "Order completed")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("complete order")


@orders_bp.post("/<int:order_id>/cancel")
@require_auth
@require_role(*MANAGERS)
def cancel_order(order_id: int):
    """Cancel an order; reserved stock goes back to the shelf. Body: {"reason": str}"""
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.cancel_order(order_id, reason=data.get("reason"), user_id=g.current_user.id)
        return action_success(order.to_dict(), "Order canceled")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("cancel order")


@orders_bp.put("/<int:order_id>/items")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN, UserRole.SALES)
def update_order_items(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order = order_service.update_order_items(order_id, items=data.get("items") or [], user_id=g.current_user.id)
        return action_success(order.to_dict(), "Order items updated")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("update order items")
