# backend/backoffice/config.py
from __future__ import annotations
import os

from flask import current_app, has_app_context


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().upper() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Front-end origins allowed to call the API from a browser
    CORS_ALLOWED_ORIGINS = tuple(
        part.strip()
        for part in os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if part.strip()
    )

    # Payment statuses that let an invoice move through warehouse preparation.
    # Add PARTIALLY_PAID here to let partially paid invoices be picked.
    PREPARATION_ELIGIBLE_PAYMENT_STATUSES = _csv(
        os.environ.get("PREPARATION_ELIGIBLE_PAYMENT_STATUSES", "PAID")
    )

    # When false a payment larger than the remaining balance is rejected
    ALLOW_OVERPAYMENT = os.environ.get("ALLOW_OVERPAYMENT", "false").lower() in ("1", "true", "yes")

    DEFAULT_PAYMENT_TERMS_DAYS = int(os.environ.get("DEFAULT_PAYMENT_TERMS_DAYS", "30"))


def get_setting(name: str, default=None):
    """Read a setting from the active app, falling back to the Config defaults."""
    if has_app_context():
        return current_app.config.get(name, getattr(Config, name, default))
    return getattr(Config, name, default)
