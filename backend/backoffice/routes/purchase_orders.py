# Overview: Purchase order and warehouse stock confirmation API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import purchase_order_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_bool, coerce_date, coerce_int


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")

REVIEWERS = (UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)


@purchase_orders_bp.post("")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN, UserRole.SALES)
def create_purchase_order():
    """
    Create the purchase order for a sales order.

    Request body:
    {
        "order_id": int,
        "discount_cents": int?, "tax_rate_bps": int?, "shipping_cost_cents": int?,
        "po_date": "YYYY-MM-DD"?, "notes": str?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.create_purchase_order(
            coerce_int(data.get("order_id"), "order_id"),
            user_id=g.current_user.id,
            discount_cents=coerce_int(data.get("discount_cents", 0), "discount_cents", minimum=0),
            tax_rate_bps=coerce_int(data.get("tax_rate_bps", 0), "tax_rate_bps", minimum=0),
            shipping_cost_cents=coerce_int(data.get("shipping_cost_cents", 0), "shipping_cost_cents", minimum=0),
            po_date=coerce_date(data.get("po_date"), "po_date"),
            notes=data.get("notes"),
        )
        return action_success(po.to_dict(), "Purchase order created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create purchase order")


@purchase_orders_bp.get("/review")
@require_auth
@require_role(*REVIEWERS)
def list_for_review():
    try:
        pos = purchase_order_service.list_purchase_orders_for_review()
        return action_success([po.to_dict(include_items=False) for po in pos])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list purchase orders")


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
def get_purchase_order(po_id: int):
    try:
        return action_success(purchase_order_service.get_purchase_order(po_id).to_dict())
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load purchase order")


@purchase_orders_bp.get("/<int:po_id>/stock-check")
@require_auth
@require_role(*REVIEWERS)
def check_stock(po_id: int):
    try:
        return action_success(purchase_order_service.check_purchase_order_stock(po_id))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("check purchase order stock")


@purchase_orders_bp.post("/<int:po_id>/stock-confirmation")
@require_auth
@require_role(*REVIEWERS)
def confirm_stock(po_id: int):
    """
    Record the warehouse's stock decision.

    Request body:
    {
        "status": "STOCK_AVAILABLE" | "INSUFFICIENT_STOCK"?,   // computed when omitted
        "notes": str?,
        "item_notes": {"<item_id>": str} | [{"item_id": int, "notes": str}]?,
        "override": bool?   // claim availability the ledger cannot show; needs notes
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.confirm_purchase_order_stock(
            po_id,
            actor_id=g.current_user.id,
            status=data.get("status"),
            notes=data.get("notes"),
            item_notes=data.get("item_notes"),
            override=coerce_bool(data.get("override")),
        )
        return action_success(po.to_dict(), "Stock confirmation recorded")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("confirm purchase order stock")
