# Overview: Health check API route.
"""
System health endpoint.

Checks the database and whether the back office has been bootstrapped with
staff accounts.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Invoice, Order, Product, User
from ..statuses import UserRole
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Check database connectivity with a few cheap counts."""
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
            "invoices": db.session.query(Invoice).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_staff_health() -> dict:
    """An installation without an active owner or admin can't confirm anything."""
    start_time = time.time()
    try:
        managers = (
            db.session.query(User)
            .filter(User.is_active.is_(True), User.role.in_([UserRole.OWNER.value, UserRole.ADMIN.value]))
            .count()
        )
        elapsed_ms = (time.time() - start_time) * 1000
        if not managers:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "No active OWNER or ADMIN user; run `flask system seed`",
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": {"managers": managers}}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Staff health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "User table error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: a dependency is unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    staff_health = check_staff_health()

    all_checks = [database_health, staff_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "staff": staff_health,
        },
    }
    return response, http_status
