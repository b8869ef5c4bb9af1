# backend/rosterdesk/services/installment_service.py
"""
Order installments.

INVARIANT: Order.has_installments is true iff at least one installment row
exists for the order. It is a stored flag (order lists never count rows);
save_installment() and delete_installment() update it in the same
transaction as the row they add or remove.
"""
from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Installment, InstallmentStatus, Order
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import lock_for_update


INSTALLMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "order_id",
        "installment_number",
        "amount_due",
        "amount_paid",
        "due_date",
        "paid_date",
        "status",
        "notes",
    },
    required_on_create={"order_id", "installment_number", "amount_due"},
)


class InstallmentError(NotFoundError):
    pass


def list_installments(order_id: int) -> list[Installment]:
    return (
        db.session.query(Installment)
        .filter_by(order_id=order_id)
        .order_by(Installment.installment_number.asc(), Installment.id.asc())
        .all()
    )


def _get_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(order_id=order_id)).first()
    if order is None:
        raise InstallmentError(f"Order {order_id} not found")
    return order


def _refresh_flag(order_id: int) -> None:
    order = _get_order(order_id)
    remaining = db.session.query(Installment.id).filter_by(order_id=order_id).first()
    order.has_installments = remaining is not None


def save_installment(payload: dict) -> Installment:
    """
    Create an installment, or update one when payload carries "id".

    Raises:
        ValidationError: missing order_id/installment_number/amount_due or bad values
        InstallmentError: unknown order or installment
    """
    payload = dict(payload or {})
    installment_id = payload.pop("id", None)
    # Blank amount_paid/status mean "nothing paid yet"
    if payload.get("amount_paid") in (None, ""):
        payload["amount_paid"] = 0
    if not payload.get("status"):
        payload["status"] = InstallmentStatus.PENDING.value

    if installment_id:
        installment = db.session.query(Installment).filter_by(id=installment_id).first()
        if installment is None:
            raise InstallmentError(f"Installment {installment_id} not found")
        patch = validate_payload(model=Installment, payload=payload, policy=INSTALLMENT_POLICY, partial=False)
        old_order_id = installment.order_id
        for key, value in patch.items():
            setattr(installment, key, value)
        db.session.flush()
        if installment.order_id != old_order_id:
            _refresh_flag(old_order_id)
            _refresh_flag(installment.order_id)
        return installment

    patch = validate_payload(model=Installment, payload=payload, policy=INSTALLMENT_POLICY, partial=False)
    order = _get_order(patch["order_id"])

    installment = Installment(**patch)
    db.session.add(installment)
    order.has_installments = True
    db.session.flush()
    return installment


def delete_installment(installment_id: int) -> int:
    """
    Delete an installment; clears the order flag when it was the last one.

    Returns:
        The order_id the installment belonged to.
    """
    installment = db.session.query(Installment).filter_by(id=installment_id).first()
    if installment is None:
        raise InstallmentError(f"Installment {installment_id} not found")

    order_id = installment.order_id
    db.session.delete(installment)
    db.session.flush()
    _refresh_flag(order_id)
    db.session.flush()
    return order_id
