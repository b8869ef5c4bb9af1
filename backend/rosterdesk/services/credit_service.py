# backend/rosterdesk/services/credit_service.py
"""
Customer credits: store credit owed to a player.

LIFECYCLE: active -> used, once. A used credit cannot be re-used or
reactivated; deleting a credit requires the operator's sign-off name.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..models import Credit, CreditStatus
from ..time_utils import utcnow
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, require_fields, validate_payload
from .concurrency import lock_for_update


CREDIT_POLICY = ModelValidationPolicy(
    writable_fields={"player_name", "player_email", "amount", "reason", "created_by"},
    required_on_create={"player_name", "amount", "reason", "created_by"},
)


class CreditError(ConflictError):
    pass


def _get_credit(credit_id: int, *, lock: bool = False) -> Credit:
    query = db.session.query(Credit).filter_by(id=credit_id)
    if lock:
        query = lock_for_update(query)
    credit = query.first()
    if credit is None:
        raise NotFoundError(f"Credit {credit_id} not found")
    return credit


def list_credits(search: str | None = None, status: str | None = None) -> list[Credit]:
    query = db.session.query(Credit)
    if status:
        try:
            query = query.filter(Credit.status == CreditStatus(status))
        except ValueError:
            raise ValidationError("status must be one of: active, used")
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Credit.player_name.ilike(like), Credit.player_email.ilike(like)))
    return query.order_by(Credit.created_at.desc(), Credit.id.desc()).all()


def credit_summary(credits: list[Credit]) -> dict:
    active = [c for c in credits if c.status == CreditStatus.ACTIVE]
    total = sum((c.amount for c in active), Decimal("0.00"))
    return {
        "active_count": len(active),
        "used_count": len(credits) - len(active),
        "active_total": f"{total:.2f}",
    }


def create_credit(payload: dict) -> Credit:
    patch = validate_payload(model=Credit, payload=payload, policy=CREDIT_POLICY, partial=False)
    if patch["amount"] <= 0:
        raise ValidationError("amount must be greater than 0")

    credit = Credit(status=CreditStatus.ACTIVE, **patch)
    db.session.add(credit)
    db.session.flush()
    return credit


def mark_credit_used(
    credit_id: int,
    *,
    used_by: str | None,
    used_on_program: str | None = None,
    notes: str | None = None,
) -> Credit:
    """
    Redeem a credit (active -> used).

    Raises:
        ValidationError: used_by missing
        CreditError: credit already used
    """
    require_fields({"used_by": used_by}, ["used_by"])
    credit = _get_credit(credit_id, lock=True)
    if credit.status != CreditStatus.ACTIVE:
        raise CreditError(f"Credit {credit_id} was already used")

    credit.status = CreditStatus.USED
    credit.used_by = used_by.strip()
    credit.used_at = utcnow()
    credit.used_on_program = (used_on_program or "").strip() or None
    credit.notes = (notes or "").strip() or None
    db.session.flush()
    return credit


def delete_credit(credit_id: int, *, signed_off_by: str | None) -> None:
    require_fields({"signed_off_by": signed_off_by}, ["signed_off_by"])
    credit = _get_credit(credit_id)
    current_app.logger.info(
        "Credit %s for %s (%s) deleted, signed off by %s",
        credit.id, credit.player_name, credit.amount, signed_off_by.strip(),
    )
    db.session.delete(credit)
    db.session.flush()
