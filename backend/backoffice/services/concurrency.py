# Overview: Transaction wrapper shared by every mutating service: row locks, retry on lock conflicts, rollback on failure.

from __future__ import annotations

import time

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import get_session
from ..validation import DataIntegrityError


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the stock, invoice or order rows a mutation reads.

    A no-op on SQLite, where the single writer lock already serializes writes.
    """
    return query.with_for_update()


def _integrity_message(exc: IntegrityError) -> str:
    text = str(exc.orig).lower()
    if "unique" in text or "duplicate" in text:
        return "A record with the same unique value already exists"
    if "foreign key" in text:
        return "A referenced record does not exist or is still in use"
    if "check" in text:
        return "The change would break a data rule (e.g. negative stock)"
    return "The change conflicts with existing data"


def run_with_retry(func, *, session=None, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one unit of work, committing inside func, as a single transaction.

    Lock timeouts and deadlocks (OperationalError) and stale version rows
    (StaleDataError) are retried with exponential backoff. Any other failure rolls the whole
    transaction back before propagating, so a half-applied mutation is
    never left pending in the session. Constraint violations surface as
    DataIntegrityError with a message that hides the raw driver text.
    """
    session = get_session(session)
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            session.rollback()
            if attempt >= attempts - 1:
                raise
            if has_app_context():
                current_app.logger.warning("Retrying after concurrency conflict (attempt %s)", attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            session.rollback()
            raise DataIntegrityError(_integrity_message(exc)) from exc
        except Exception:
            session.rollback()
            raise
