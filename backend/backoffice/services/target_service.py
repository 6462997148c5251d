# Overview: Service-layer operations for sales targets; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import get_session
from ..models import SalesTarget, User
from ..periods import validate_period_format
from ..statuses import TargetType, parse_enum
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_int
from .concurrency import run_with_retry


def _check_duplicate(session, user_id: int, target_type: TargetType, period: str, exclude_id: int | None = None) -> None:
    query = session.query(SalesTarget).filter(
        SalesTarget.user_id == user_id,
        SalesTarget.target_type == target_type.value,
        SalesTarget.target_period == period,
    )
    if exclude_id is not None:
        query = query.filter(SalesTarget.id != exclude_id)
    if query.first():
        raise ConflictError(f"A {target_type.value} target for {period} already exists for this user")


def create_sales_target(
    *,
    user_id: int,
    target_type,
    target_period: str,
    target_amount_cents: int,
    is_active: bool = True,
    session=None,
) -> SalesTarget:
    """
    Set a revenue goal for a user and period.

    Raises:
        ValidationError: period does not match the type's format, amount not positive
        ConflictError: (user, type, period) already has a target
    """
    session = get_session(session)
    target_type = parse_enum(TargetType, target_type, "target_type")

    def _op():
        if not session.get(User, user_id):
            raise NotFoundError(f"User {user_id} not found")
        validate_period_format(target_period, target_type)
        amount = coerce_int(target_amount_cents, "target_amount_cents")
        if amount <= 0:
            raise ValidationError("Target amount must be greater than zero")
        _check_duplicate(session, user_id, target_type, target_period)

        target = SalesTarget(
            user_id=user_id,
            target_type=target_type.value,
            target_period=target_period,
            target_amount_cents=amount,
            is_active=bool(is_active),
        )
        session.add(target)
        session.commit()
        return target

    return run_with_retry(_op, session=session)


def update_sales_target(target_id: int, *, session=None, **changes) -> SalesTarget:
    """Change type, period, amount or active flag; the result is revalidated as a whole."""
    session = get_session(session)

    def _op():
        target = session.get(SalesTarget, target_id)
        if not target:
            raise NotFoundError(f"Sales target {target_id} not found")

        target_type = parse_enum(TargetType, changes.get("target_type", target.target_type), "target_type")
        period = changes.get("target_period", target.target_period)
        validate_period_format(period, target_type)

        if "target_amount_cents" in changes:
            amount = coerce_int(changes["target_amount_cents"], "target_amount_cents")
            if amount <= 0:
                raise ValidationError("Target amount must be greater than zero")
            target.target_amount_cents = amount

        _check_duplicate(session, target.user_id, target_type, period, exclude_id=target.id)
        target.target_type = target_type.value
        target.target_period = period
        if "is_active" in changes:
            target.is_active = bool(changes["is_active"])

        session.commit()
        return target

    return run_with_retry(_op, session=session)


def delete_sales_target(target_id: int, *, session=None) -> None:
    session = get_session(session)

    def _op():
        target = session.get(SalesTarget, target_id)
        if not target:
            raise NotFoundError(f"Sales target {target_id} not found")
        session.delete(target)
        session.commit()

    return run_with_retry(_op, session=session)


def toggle_sales_target(target_id: int, *, session=None) -> SalesTarget:
    session = get_session(session)

    def _op():
        target = session.get(SalesTarget, target_id)
        if not target:
            raise NotFoundError(f"Sales target {target_id} not found")
        target.is_active = not target.is_active
        session.commit()
        return target

    return run_with_retry(_op, session=session)


def list_sales_targets(
    *,
    user_id: int | None = None,
    target_type=None,
    active_only: bool = False,
    session=None,
) -> list[SalesTarget]:
    session = get_session(session)
    query = session.query(SalesTarget)
    if user_id is not None:
        query = query.filter(SalesTarget.user_id == user_id)
    if target_type:
        query = query.filter(SalesTarget.target_type == parse_enum(TargetType, target_type, "target_type").value)
    if active_only:
        query = query.filter(SalesTarget.is_active.is_(True))
    return query.order_by(SalesTarget.target_period.asc(), SalesTarget.user_id.asc()).all()
