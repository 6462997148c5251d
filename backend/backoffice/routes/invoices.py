# Overview: Invoice, payment, preparation and receivables API routes.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_role
from ..responses import action_failure, action_success, unexpected_failure
from ..services import invoice_service, payment_service, preparation_service, receivables_service
from ..statuses import UserRole
from ..validation import DomainError, coerce_date, coerce_int


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")

FINANCE = (UserRole.OWNER, UserRole.ADMIN)
WAREHOUSE = (UserRole.OWNER, UserRole.ADMIN, UserRole.WAREHOUSE)


def _optional_int(data: dict, field: str):
    return coerce_int(data.get(field), field, minimum=0, required=False)


# =============================================================================
# INVOICES
# =============================================================================

@invoices_bp.post("/from-order/<int:order_id>")
@require_auth
@require_role(*FINANCE)
def create_invoice_from_order(order_id: int):
    """
    Invoice a completed order.

    Request body (all optional; purchase order financials are used by default):
    {
        "invoice_date", "due_date": "YYYY-MM-DD",
        "payment_terms_days", "discount_cents", "tax_rate_bps", "shipping_cost_cents": int,
        "notes": str
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.create_invoice_from_order(
            order_id,
            user_id=g.current_user.id,
            invoice_date=coerce_date(data.get("invoice_date"), "invoice_date"),
            due_date=coerce_date(data.get("due_date"), "due_date"),
            payment_terms_days=_optional_int(data, "payment_terms_days"),
            discount_cents=_optional_int(data, "discount_cents"),
            tax_rate_bps=_optional_int(data, "tax_rate_bps"),
            shipping_cost_cents=_optional_int(data, "shipping_cost_cents"),
            notes=data.get("notes"),
        )
        return action_success(invoice.to_dict(), "Invoice created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create invoice")


@invoices_bp.post("")
@require_auth
@require_role(*FINANCE)
def create_invoice():
    """Stand-alone invoice for a customer. Body: {"customer_id", "items": [{product_id, quantity, price_cents}], ...}"""
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.create_invoice(
            customer_id=coerce_int(data.get("customer_id"), "customer_id"),
            items=data.get("items") or [],
            user_id=g.current_user.id,
            invoice_date=coerce_date(data.get("invoice_date"), "invoice_date"),
            due_date=coerce_date(data.get("due_date"), "due_date"),
            payment_terms_days=_optional_int(data, "payment_terms_days"),
            discount_cents=_optional_int(data, "discount_cents") or 0,
            tax_rate_bps=_optional_int(data, "tax_rate_bps") or 0,
            shipping_cost_cents=_optional_int(data, "shipping_cost_cents") or 0,
            notes=data.get("notes"),
        )
        return action_success(invoice.to_dict(), "Invoice created", 201)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("create invoice")


@invoices_bp.get("")
@require_auth
def list_invoices():
    try:
        invoices, total = invoice_service.list_invoices(
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            customer_id=request.args.get("customer_id", type=int),
            limit=request.args.get("limit", 100, type=int),
            offset=request.args.get("offset", 0, type=int),
        )
        return action_success({
            "invoices": [invoice.to_dict(include_items=False) for invoice in invoices],
            "total": total,
        })
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list invoices")


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice(invoice_id: int):
    try:
        return action_success(invoice_service.get_invoice(invoice_id).to_dict())
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load invoice")


@invoices_bp.post("/<int:invoice_id>/send")
@require_auth
@require_role(*FINANCE)
def send_invoice(invoice_id: int):
    try:
        invoice = invoice_service.send_invoice(invoice_id, user_id=g.current_user.id)
        return action_success(invoice.to_dict(), "Invoice sent")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("send invoice")


@invoices_bp.post("/<int:invoice_id>/cancel")
@require_auth
@require_role(*FINANCE)
def cancel_invoice(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.cancel_invoice(invoice_id, reason=data.get("reason"), user_id=g.current_user.id)
        return action_success(invoice.to_dict(), "Invoice cancelled")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("cancel invoice")


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/payments")
@require_auth
@require_role(*FINANCE)
def add_payment(invoice_id: int):
    """
    Record a payment against an invoice.

    Request body:
    {
        "amount_cents": int,
        "method": "CASH" | "BANK_TRANSFER" | "CHECK" | "GIRO"?,
        "payment_date": "YYYY-MM-DD"?, "reference": str?, "notes": str?
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        payment = payment_service.add_payment(
            invoice_id,
            amount_cents=coerce_int(data.get("amount_cents"), "amount_cents"),
            user_id=g.current_user.id,
            method=data.get("method") or "CASH",
            payment_date=coerce_date(data.get("payment_date"), "payment_date"),
            reference=data.get("reference"),
            notes=data.get("notes"),
        )
        invoice = invoice_service.get_invoice(invoice_id)
        return action_success(
            {"payment": payment.to_dict(), "invoice": invoice.to_dict(include_items=False)},
            "Payment recorded",
            201,
        )
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("record payment")


@invoices_bp.get("/<int:invoice_id>/payments")
@require_auth
def list_payments(invoice_id: int):
    try:
        payments = payment_service.get_invoice_payments(invoice_id)
        return action_success([payment.to_dict() for payment in payments])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("list payments")


@invoices_bp.delete("/payments/<int:payment_id>")
@require_auth
@require_role(*FINANCE)
def delete_payment(payment_id: int):
    try:
        invoice = payment_service.delete_payment(payment_id, user_id=g.current_user.id)
        return action_success(invoice.to_dict(include_items=False), "Payment deleted")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("delete payment")


@invoices_bp.get("/<int:invoice_id>/balance")
@require_auth
def get_balance(invoice_id: int):
    try:
        return action_success(payment_service.get_invoice_balance(invoice_id))
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("compute invoice balance")


# =============================================================================
# PREPARATION
# =============================================================================

@invoices_bp.get("/preparation-queue")
@require_auth
@require_role(*WAREHOUSE)
def preparation_queue():
    try:
        invoices = preparation_service.get_preparation_queue()
        return action_success([invoice.to_dict() for invoice in invoices])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load preparation queue")


@invoices_bp.get("/ready-for-delivery")
@require_auth
@require_role(*WAREHOUSE)
def ready_for_delivery():
    try:
        invoices = preparation_service.get_ready_for_delivery()
        return action_success([invoice.to_dict() for invoice in invoices])
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load invoices ready for delivery")


@invoices_bp.post("/<int:invoice_id>/preparation")
@require_auth
@require_role(*WAREHOUSE)
def confirm_preparation(invoice_id: int):
    """Body: {"status": "PREPARING" | "READY_FOR_DELIVERY" | "CANCELLED_PREPARATION", "notes": str?}"""
    data = request.get_json(silent=True) or {}
    try:
        invoice = preparation_service.confirm_preparation(
            invoice_id,
            new_status=data.get("status"),
            actor_id=g.current_user.id,
            notes=data.get("notes"),
        )
        return action_success(invoice.to_dict(), "Preparation status updated")
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("update preparation status")


# =============================================================================
# RECEIVABLES
# =============================================================================

@invoices_bp.get("/receivables")
@require_auth
@require_role(*FINANCE)
def receivables():
    try:
        report = receivables_service.receivables_aging(
            category=request.args.get("category"),
            start_date=coerce_date(request.args.get("start_date"), "start_date"),
            end_date=coerce_date(request.args.get("end_date"), "end_date"),
        )
        return action_success(report)
    except DomainError as exc:
        return action_failure(exc)
    except Exception:
        return unexpected_failure("load receivables")
