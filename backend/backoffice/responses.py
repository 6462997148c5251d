# Overview: JSON result envelope shared by every API route.

from flask import current_app, jsonify

from .validation import DomainError


def action_success(data=None, message=None, status: int = 200):
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return jsonify(body), status


def action_failure(error, status: int | None = None):
    """
    Failure envelope.

    A DomainError carries its own HTTP status; anything else must come with
    an explicit one (default 400).
    """
    if isinstance(error, DomainError):
        return jsonify({"success": False, "error": str(error)}), status or error.http_status
    return jsonify({"success": False, "error": str(error)}), status or 400


def unexpected_failure(action: str):
    """Log the active exception and return a generic 500 envelope."""
    current_app.logger.exception("Unexpected error while trying to %s", action)
    return jsonify({"success": False, "error": f"Failed to {action}"}), 500
