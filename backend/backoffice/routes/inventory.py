# Overview: Stock ledger API routes: production, adjustments, stock opname, movements and categories.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import category_service, stock_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_date


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

STOCK_KEEPERS = (UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)


# =============================================================================
# PRODUCTION
# =============================================================================

@inventory_bp.post("/production")
@require_auth
@require_role(*STOCK_KEEPERS)
def create_production_log():
    """Body: {"items": [{"product_id": int, "quantity": int, "notes": str?}], "production_date": date?, "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        log = stock_service.create_production_log(
            items=data.get("items") or [],
            user_id=g.current_user.id,
            production_date=coerce_date(data.get("production_date"), "production_date"),
            notes=data.get("notes"),
        )
        return action_success(log.to_dict(), "Production recorded", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("record production")


@inventory_bp.delete("/production/<int:log_id>")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def delete_production_log(log_id: int):
    try:
        log = stock_service.delete_production_log(log_id, user_id=g.current_user.id)
        return action_success(log.to_dict(), "Production log voided")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("void production log")


# =============================================================================
# ADJUSTMENTS & OPNAME
# =============================================================================

@inventory_bp.post("/adjustments")
@require_auth
@require_role(*STOCK_KEEPERS)
def create_stock_adjustment():
    """Body: {"kind": str, "items": [{"product_id", "quantity" (signed)}], "adjustment_date": date?, "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        adjustment = stock_service.create_stock_adjustment(
            kind=data.get("kind"),
            items=data.get("items") or [],
            user_id=g.current_user.id,
            adjustment_date=coerce_date(data.get("adjustment_date"), "adjustment_date"),
            notes=data.get("notes"),
        )
        return action_success(adjustment.to_dict(), "Stock adjusted", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("adjust stock")


@inventory_bp.post("/opname")
@require_auth
@require_role(*STOCK_KEEPERS)
def create_stock_opname():
    """Body: {"items": [{"product_id", "physical_stock", "notes"?}], "opname_date": date?, "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        opname = stock_service.create_stock_opname(
            items=data.get("items") or [],
            user_id=g.current_user.id,
            opname_date=coerce_date(data.get("opname_date"), "opname_date"),
            notes=data.get("notes"),
        )
        return action_success(opname.to_dict(), "Stock opname recorded", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("record stock opname")


@inventory_bp.post("/opname/<int:opname_id>/reconcile")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def reconcile_stock_opname(opname_id: int):
    try:
        opname = stock_service.reconcile_stock_opname(opname_id, user_id=g.current_user.id)
        return action_success(opname.to_dict(), "Stock opname reconciled")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("reconcile stock opname")


# =============================================================================
# QUERIES
# =============================================================================

@inventory_bp.get("/movements")
@require_auth
def stock_movements():
    try:
        movements = stock_service.get_stock_movements(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("movement_type") or None,
            order_id=request.args.get("order_id", type=int),
            limit=request.args.get("limit", 100, type=int),
        )
        return action_success([movement.to_dict() for movement in movements])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list stock movements")


@inventory_bp.get("/low-stock")
@require_auth
def low_stock():
    try:
        return action_success([product.to_dict() for product in stock_service.get_low_stock_products()])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list low stock products")


# =============================================================================
# CATEGORIES
# =============================================================================

@inventory_bp.get("/categories")
@require_auth
def list_categories():
    try:
        return action_success([category.to_dict() for category in category_service.list_categories()])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list categories")


@inventory_bp.post("/categories")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def create_category():
    data = request.get_json(silent=True) or {}
    try:
        category = category_service.create_category(name=data.get("name"), description=data.get("description"))
        return action_success(category.to_dict(), "Category created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create category")


@inventory_bp.delete("/categories/<int:category_id>")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def delete_category(category_id: int):
    try:
        category_service.delete_category(category_id)
        return action_success(None, "Category deleted")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("delete category")
