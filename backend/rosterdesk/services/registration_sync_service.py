# backend/rosterdesk/services/registration_sync_service.py
"""
Registration Derivation Engine: synced orders -> program registrations.

For every order line item whose normalized name is an actual program, one
candidate registration (source=order) is built. Candidates whose
(order_id, program_name) pair already exists among order-linked
registrations are dropped, whatever the existing row's status. A run
therefore only ever adds rows for line items it has not seen before:
running it twice on unchanged orders inserts nothing the second time, and
removed/transferred registrations are never resurrected.

An order whose line items cannot be read is skipped with a warning; the
rest of the batch continues.
"""
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import DataShapeError, PersistenceError
from ..extensions import db
from ..models import Order, Registration, RegistrationSource, RegistrationStatus, PaymentStatus
from .concurrency import commit_or_rollback
from .program_identity import is_actual_program, normalize_program_name


# payment_method recorded on every order-derived registration
ORDER_PAYMENT_METHOD = "woocommerce"


class RegistrationSyncError(PersistenceError):
    pass


def parse_line_items(order: Order) -> list[dict]:
    """
    The order's line items as a list of dicts.

    Raises:
        DataShapeError: payload is not JSON / not a list
    """
    items = order.products
    if items is None:
        return []
    if isinstance(items, (str, bytes)):
        try:
            items = json.loads(items)
        except ValueError as e:
            raise DataShapeError(f"Line items of order {order.order_id} are not valid JSON", str(e))
    if not isinstance(items, list):
        raise DataShapeError(
            f"Line items of order {order.order_id} are not a list",
            type(items).__name__,
        )
    return [item for item in items if isinstance(item, dict)]


def _amount(line_total, order_total) -> Decimal | None:
    for value in (line_total, order_total):
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        try:
            return Decimal(str(value)).quantize(Decimal("0.01"))
        except InvalidOperation:
            continue
    return None


def candidate_registrations(order: Order) -> list[dict]:
    """Registration rows an order's program line items would produce."""
    candidates = []
    for item in parse_line_items(order):
        program_name = normalize_program_name(item.get("name"))
        if not program_name or not is_actual_program(program_name):
            continue
        candidates.append({
            "program_name": program_name,
            "player_name": order.customer_name,
            "player_email": order.customer_email,
            "player_phone": order.customer_phone,
            "order_id": order.order_id,
            "source": RegistrationSource.ORDER,
            "payment_method": ORDER_PAYMENT_METHOD,
            "amount": _amount(item.get("total"), order.total),
            "payment_status": order.payment_status or PaymentStatus.PAID,
            "status": RegistrationStatus.ACTIVE,
            "notes": f"Order #{order.order_number}",
        })
    return candidates


def existing_registration_keys() -> set[tuple[int, str]]:
    rows = (
        db.session.query(Registration.order_id, Registration.program_name)
        .filter(Registration.order_id.isnot(None))
        .all()
    )
    return {(order_id, program_name) for order_id, program_name in rows}


def sync_registrations() -> int:
    """
    Derive registrations from every synced order.

    Returns:
        Number of registrations inserted (0 is a normal outcome).

    Raises:
        RegistrationSyncError: reading or writing the database failed;
            nothing from the run is committed.
    """
    try:
        orders = (
            db.session.query(Order)
            .order_by(Order.date_created.desc(), Order.order_id.desc())
            .all()
        )
        seen = existing_registration_keys()

        new_rows = []
        for order in orders:
            try:
                candidates = candidate_registrations(order)
            except DataShapeError as e:
                current_app.logger.warning("Skipping order %s: %s", order.order_id, e.message)
                continue
            for row in candidates:
                key = (row["order_id"], row["program_name"])
                if key in seen:
                    continue
                seen.add(key)
                new_rows.append(Registration(**row))

        if not new_rows:
            return 0

        db.session.add_all(new_rows)
        commit_or_rollback()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Registration sync failed")
        raise RegistrationSyncError("Failed to sync registrations", str(e.__cause__ or e))

    current_app.logger.info("Synced %d registrations", len(new_rows))
    return len(new_rows)
