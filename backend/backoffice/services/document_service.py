# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import get_session
from ..models import DocumentSequence
from ..time_utils import utctoday
from ..validation import ValidationError


# Document type -> (prefix, zero padding)
DOCUMENT_FORMATS = {
    "ORDER": ("ORD", 3),
    "PURCHASE_ORDER": ("PO", 3),
    "INVOICE": ("INV", 4),
    "PAYMENT": ("PAY", 4),
    "DELIVERY": ("DLV", 3),
    "PRODUCTION": ("PRD", 3),
    "ADJUSTMENT": ("ADJ", 3),
    "OPNAME": ("OPN", 3),
}


def _allocate(session, document_type: str, period_key: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period_key == period_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = session.execute(stmt)
    if result.rowcount:
        current = (
            session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, period_key=period_key)
            .scalar()
        )
        return current - 1
    return None


def next_document_number(document_type: str, *, on_date: date | None = None, session=None) -> str:
    """
    Atomically allocate the next number for a document type within its month.

    Numbers look like ORD-202502-001 or INV-202502-0001 and restart every
    month. Runs inside the caller's transaction; a concurrent first insert of
    the same (type, month) row is resolved through a savepoint and a retry
    of the increment.
    """
    session = get_session(session)
    if document_type not in DOCUMENT_FORMATS:
        raise ValidationError(f"Unknown document type: {document_type}")

    prefix, pad = DOCUMENT_FORMATS[document_type]
    on_date = on_date or utctoday()
    period_key = f"{on_date.year}{on_date.month:02d}"

    next_num = _allocate(session, document_type, period_key)
    if next_num is None:
        try:
            with session.begin_nested():
                session.add(DocumentSequence(document_type=document_type, period_key=period_key, next_number=2))
            next_num = 1
        except IntegrityError:
            next_num = _allocate(session, document_type, period_key)
            if next_num is None:
                raise

    return f"{prefix}-{period_key}-{next_num:0{pad}d}"
