# Overview: Sales target API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..periods import generate_target_period
from ..responses import action_failure, action_success, unexpected_failure
from ..services import reporting_service, target_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_bool, coerce_int, require_fields


targets_bp = Blueprint("targets", __name__, url_prefix="/api/targets")

MANAGERS = (UserRole.OWNER, UserRole.ADMIN)


@targets_bp.post("")
@require_auth
@require_role(*MANAGERS)
def create_target():
    """
    Request body:
    {
        "user_id": int,
        "target_type": "MONTHLY" | "QUARTERLY" | "YEARLY",
        "target_period": "2025-02" | "2025-Q1" | "2025",
        "target_amount_cents": int,
        "is_active": bool?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        require_fields(data, "user_id", "target_type", "target_period", "target_amount_cents")
        target = target_service.create_sales_target(
            user_id=coerce_int(data.get("user_id"), "user_id"),
            target_type=data.get("target_type"),
            target_period=data.get("target_period"),
            target_amount_cents=data.get("target_amount_cents"),
            is_active=coerce_bool(data.get("is_active"), default=True),
        )
        return action_success(target.to_dict(), "Sales target created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create sales target")


@targets_bp.get("")
@require_auth
def list_targets():
    try:
        user_id = request.args.get("user_id", type=int)
        if g.current_user.has_role(UserRole.SALES):
            user_id = g.current_user.id
        targets = target_service.list_sales_targets(
            user_id=user_id,
            target_type=request.args.get("target_type") or None,
            active_only=coerce_bool(request.args.get("active_only")),
        )
        return action_success([target.to_dict() for target in targets])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list sales targets")


@targets_bp.put("/<int:target_id>")
@require_auth
@require_role(*MANAGERS)
def update_target(target_id: int):
    data = request.get_json(silent=True) or {}
    allowed = ("target_type", "target_period", "target_amount_cents", "is_active")
    try:
        changes = {key: data[key] for key in allowed if key in data}
        if "is_active" in changes:
            changes["is_active"] = coerce_bool(changes["is_active"])
        target = target_service.update_sales_target(target_id, **changes)
        return action_success(target.to_dict(), "Sales target updated")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("update sales target")


@targets_bp.delete("/<int:target_id>")
@require_auth
@require_role(*MANAGERS)
def delete_target(target_id: int):
    try:
        target_service.delete_sales_target(target_id)
        return action_success(None, "Sales target deleted")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("delete sales target")


@targets_bp.post("/<int:target_id>/toggle")
@require_auth
@require_role(*MANAGERS)
def toggle_target(target_id: int):
    try:
        target = target_service.toggle_sales_target(target_id)
        return action_success(target.to_dict(), "Sales target activated" if target.is_active else "Sales target deactivated")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("toggle sales target")


@targets_bp.get("/<int:target_id>/achievement")
@require_auth
def target_achievement(target_id: int):
    try:
        return action_success(reporting_service.get_target_achievement(target_id))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("compute target achievement")


@targets_bp.get("/chart")
@require_auth
def targets_chart():
    """Target vs achieved per period. Without user_id, the company-wide sales team rollup."""
    try:
        user_id = request.args.get("user_id", type=int)
        if g.current_user.has_role(UserRole.SALES):
            user_id = g.current_user.id
        rows = reporting_service.get_targets_for_chart(
            target_type=request.args.get("target_type", "MONTHLY"),
            user_id=user_id,
        )
        return action_success(rows)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load target chart")


@targets_bp.get("/current-period")
@require_auth
def current_period():
    try:
        target_type = request.args.get("target_type", "MONTHLY")
        return action_success({"target_type": target_type, "period": generate_target_period(target_type)})
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("generate target period")
