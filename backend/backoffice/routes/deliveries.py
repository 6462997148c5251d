# Overview: Delivery API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import delivery_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_date, coerce_int


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")

DISPATCHERS = (UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)


@deliveries_bp.post("")
@require_auth
@require_role(*DISPATCHERS)
def create_delivery():
    """
    Schedule delivery of a prepared invoice.

    Request body:
    {
        "invoice_id": int,
        "helper_user_id": int?, "vehicle_number": str?,
        "delivery_date": "YYYY-MM-DD"?, "notes": str?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        delivery = delivery_service.create_delivery(
            coerce_int(data.get("invoice_id"), "invoice_id"),
            user_id=g.current_user.id,
            helper_user_id=coerce_int(data.get("helper_user_id"), "helper_user_id", required=False),
            vehicle_number=data.get("vehicle_number"),
            delivery_date=coerce_date(data.get("delivery_date"), "delivery_date"),
            notes=data.get("notes"),
        )
        return action_success(delivery.to_dict(), "Delivery created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create delivery")


@deliveries_bp.get("")
@require_auth
def list_deliveries():
    try:
        deliveries = delivery_service.list_deliveries(status=request.args.get("status"))
        return action_success([delivery.to_dict() for delivery in deliveries])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list deliveries")


@deliveries_bp.get("/<int:delivery_id>")
@require_auth
def get_delivery(delivery_id: int):
    try:
        return action_success(delivery_service.get_delivery(delivery_id).to_dict())
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load delivery")


@deliveries_bp.post("/<int:delivery_id>/status")
@require_auth
@require_role(*DISPATCHERS)
def update_delivery_status(delivery_id: int):
    """Body: {"status": str, "return_reason": str? (required for RETURNED), "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        delivery = delivery_service.update_delivery_status(
            delivery_id,
            new_status=data.get("status"),
            user_id=g.current_user.id,
            return_reason=data.get("return_reason"),
            notes=data.get("notes"),
        )
        return action_success(delivery.to_dict(), "Delivery status updated")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("update delivery status")
