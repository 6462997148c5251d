# Overview: Service-layer operations for customers and stores; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import get_session
from ..models import Customer, Store
from ..validation import NotFoundError, ValidationError


def _name_key(name: str) -> str:
    return " ".join(name.split()).casefold()


def _resolve_or_create(model, label: str, *, record_id=None, name=None, session=None, **attrs):
    """
    Find a record by id, or by case-insensitive name, creating it when missing.

    Two requests resolving the same new name may both miss the lookup; the
    unique name_key constraint rejects the second insert inside a savepoint
    and the winner's row is returned instead. Runs inside the caller's
    transaction and does not commit.
    """
    session = get_session(session)

    if record_id is not None:
        record = session.get(model, record_id)
        if not record:
            raise NotFoundError(f"{label} {record_id} not found")
        return record

    display = " ".join((name or "").split())
    if not display:
        raise ValidationError(f"{label} id or name is required")
    key = _name_key(display)

    record = session.query(model).filter_by(name_key=key).first()
    if record:
        return record

    try:
        with session.begin_nested():
            record = model(name=display, name_key=key, **attrs)
            session.add(record)
    except IntegrityError:
        record = session.query(model).filter_by(name_key=key).one()
    return record


def resolve_or_create_customer(*, customer_id=None, name=None, session=None, **attrs) -> Customer:
    return _resolve_or_create(Customer, "Customer", record_id=customer_id, name=name, session=session, **attrs)


def resolve_or_create_store(*, store_id=None, name=None, session=None, **attrs) -> Store:
    return _resolve_or_create(Store, "Store", record_id=store_id, name=name, session=session, **attrs)
