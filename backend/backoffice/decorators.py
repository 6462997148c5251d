# Overview: Request and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .extensions import db
from .models import User


def _is_authenticated() -> bool:
    return hasattr(g, "current_user")


def require_auth(f):
    """
    Load the acting user into flask.g.

    Authentication happens upstream; the gateway forwards the user id in the
    X-User-Id header. Sets g.current_user.

    Returns 401 if the header is missing or malformed, or the user does not
    exist or is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw.isdigit():
            return jsonify({"success": False, "error": "Authentication required"}), 401

        user = db.session.get(User, int(raw))
        if not user or not user.is_active:
            return jsonify({"success": False, "error": "Invalid or inactive user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the authenticated user to hold one of the given roles.

    Usage:
        @require_auth
        @require_role(UserRole.OWNER, UserRole.ADMIN)
        def view(): ...
    """
    wanted = [getattr(role, "value", role) for role in roles]

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "error": "Authentication required"}), 401

            if not g.current_user.has_role(*wanted):
                return jsonify({
                    "success": False,
                    "error": f"Requires one of roles: {', '.join(wanted)}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
