# Overview: Revenue, target, receivables and profitability report API routes.

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import reporting_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

VIEWERS = (UserRole.OWNER, UserRole.ADMIN)


@reports_bp.get("/revenue")
@require_auth
@require_role(*VIEWERS)
def revenue_over_time():
    try:
        rows = reporting_service.get_revenue_over_time(
            coerce_date(request.args.get("start"), "start", required=True),
            coerce_date(request.args.get("end"), "end", required=True),
            request.args.get("group_by", "month"),
        )
        return action_success(rows)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("build revenue report")


@reports_bp.get("/profitability")
@require_auth
@require_role(*VIEWERS)
def profitability():
    try:
        return action_success(reporting_service.profitability_report(request.args.get("time_range", "month")))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("build profitability report")


@reports_bp.get("/cost-breakdown")
@require_auth
@require_role(*VIEWERS)
def cost_breakdown():
    try:
        return action_success(reporting_service.cost_breakdown(request.args.get("time_range", "month")))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("build cost breakdown")


@reports_bp.get("/profit-and-loss")
@require_auth
@require_role(*VIEWERS)
def profit_and_loss():
    try:
        return action_success(reporting_service.monthly_profit_and_loss(request.args.get("time_range", "year")))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("build profit and loss report")
