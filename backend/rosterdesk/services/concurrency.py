# Overview: Row locking and commit helpers shared by the roster services.

from __future__ import annotations

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to a query (registration moves, credit use).

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but PostgreSQL honors it.
    """
    return query.with_for_update()


def commit_or_rollback():
    """
    Commit the current session, rolling back if the commit fails.

    A failed commit is never retried here: the rollback discards the pending
    writes, so a second commit would succeed with nothing in it. Callers
    surface the error and the operator re-triggers the action.
    """
    try:
        db.session.commit()
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
