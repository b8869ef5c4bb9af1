"""
Commit helper: a refused commit is rolled back and surfaced, never re-committed.
"""

import pytest
from sqlalchemy.exc import OperationalError

from rosterdesk.models import Order
from rosterdesk.services.concurrency import commit_or_rollback


def test_commit_persists(db_session):
    db_session.add(Order(order_id=700, order_number="700", status="processing"))

    commit_or_rollback()

    assert db_session.query(Order).filter_by(order_id=700).count() == 1


def test_refused_commit_raises_and_discards_pending_writes(db_session, locked_commit):
    db_session.add(Order(order_id=700, order_number="700", status="processing"))
    locked_commit()

    with pytest.raises(OperationalError):
        commit_or_rollback()

    assert locked_commit.failures == 1
    assert not db_session.new
    assert db_session.query(Order).count() == 0
