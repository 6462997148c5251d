# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/backoffice/cli.py
# Usage, from the backend directory with FLASK_APP="backoffice:create_app":
#   python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   Development only: drop every table and create the schema again.
# - python -m flask system seed
#   Idempotently create one user per role (owner, admin, sales, warehouse).
#
# Invoice maintenance:
# - python -m flask invoices recompute-balances
#   Rewrite stored paid/remaining/payment status from the payment rows.
# - python -m flask invoices mark-overdue [--as-of 2025-03-01]
#   Move SENT invoices past due with money owed to OVERDUE.
#
# Targets:
# - python -m flask targets current-period --type QUARTERLY
#   Print the period key that contains today.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .periods import generate_target_period
from .services import invoice_service, payment_service
from .statuses import TargetType, UserRole
from .validation import DomainError


DEFAULT_USERS = [
    ("owner", "Owner", UserRole.OWNER),
    ("admin", "Administrator", UserRole.ADMIN),
    ("sales", "Sales Representative", UserRole.SALES),
    ("warehouse", "Warehouse Staff", UserRole.WAREHOUSE),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create every table that does not exist yet."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    Drop and recreate every table.

    Orders, invoices, payments, stock history and staff accounts are all lost.
    """
    if not yes:
        click.confirm("WARN This deletes every order, invoice and stock movement. Continue?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to add users.")


@system_group.command('seed')
@with_appcontext
def seed_users():
    """Create one active user per role; existing usernames are left alone."""
    for username, name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        db.session.add(User(username=username, name=name, role=role.value, is_active=True))
        db.session.commit()
        click.echo(f"PASS Created user: {username} with role '{role.value}'")


@click.group('invoices')
def invoices_group():
    """Invoice ledger maintenance."""


@invoices_group.command('recompute-balances')
@with_appcontext
def recompute_balances():
    """Repair stored invoice balances that disagree with their payments."""
    repaired = payment_service.recompute_invoice_balances()
    if not repaired:
        click.echo("PASS All invoice balances consistent")
        return
    click.echo(f"FIXED {len(repaired)} invoice(s): {', '.join(repaired)}")


@invoices_group.command('mark-overdue')
@click.option('--as-of', 'as_of', type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help='Reference date (defaults to today, UTC)')
@with_appcontext
def mark_overdue(as_of):
    """Flag SENT invoices past their due date as OVERDUE."""
    codes = invoice_service.mark_overdue_invoices(today=as_of.date() if as_of else None)
    click.echo(f"PASS {len(codes)} invoice(s) marked overdue" + (f": {', '.join(codes)}" if codes else ""))


@click.group('targets')
def targets_group():
    """Sales target helpers."""


@targets_group.command('current-period')
@click.option('--type', 'target_type', type=click.Choice([t.value for t in TargetType], case_sensitive=False),
              default=TargetType.MONTHLY.value, show_default=True)
def current_period(target_type):
    """Print the period key containing today."""
    try:
        click.echo(generate_target_period(target_type.upper()))
    except DomainError as exc:
        raise click.ClickException(str(exc))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(targets_group)
