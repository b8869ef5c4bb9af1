# backend/rosterdesk/services/order_service.py
"""
Orders screen: filtered order listing, course picker, payment status.

Course names are always compared in normalized form, so an order for
"Power Skating 1.0 - 60% FULL" matches the course "Power Skating 1.0".
"""
from __future__ import annotations

from datetime import date, datetime, time

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import Order, PaymentStatus, Product, ProgramSetting, ProgramStatus, Registration
from ..validation import ValidationError
from .order_feed import VISIBLE_ORDER_STATUSES
from .program_identity import ProgramCategory, classify_program, normalize_program_name, published_program_names


def order_program_names(order: Order) -> list[str]:
    items = order.products if isinstance(order.products, list) else []
    return [normalize_program_name(item.get("name")) for item in items if isinstance(item, dict)]


def _matches_search(order: Order, term: str) -> bool:
    term = term.lower()
    fields = (order.customer_first_name, order.customer_last_name, order.customer_email, order.order_number)
    return any(term in (value or "").lower() for value in fields)


def list_orders(
    *,
    search: str | None = None,
    status: str | None = None,
    courses: list[str] | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    per_page: int | None = None,
) -> dict:
    """
    Newest-first order listing with the orders-screen filters.

    Without an explicit status, only VISIBLE_ORDER_STATUSES are listed.
    date_from/date_to are inclusive calendar days.
    """
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    else:
        query = query.filter(Order.status.in_(VISIBLE_ORDER_STATUSES))
    if date_from:
        query = query.filter(Order.date_created >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(Order.date_created <= datetime.combine(date_to, time.max))
    orders = query.order_by(Order.date_created.desc(), Order.order_id.desc()).all()

    if search:
        orders = [o for o in orders if _matches_search(o, search)]
    if courses:
        wanted = {normalize_program_name(c) for c in courses}
        orders = [o for o in orders if wanted.intersection(order_program_names(o))]

    per_page = per_page or int(current_app.config.get("ORDERS_PER_PAGE", 100))
    page = max(page, 1)
    total = len(orders)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    items = orders[(page - 1) * per_page: page * per_page]

    return {
        "items": [o.to_dict() for o in items],
        "count": len(items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def courses_by_category(active_only: bool = True) -> dict:
    """
    Normalized course names from all order line items, grouped by category.

    A course is active when its product is published; programs an operator
    has moved past open_registration are left out of the picker.
    """
    published = published_program_names(db.session.query(Product).all())
    closed = {
        name for (name,) in db.session.query(ProgramSetting.program_name)
        .filter(ProgramSetting.status != ProgramStatus.OPEN_REGISTRATION)
        .all()
    }

    all_courses = {category: set() for category in ProgramCategory}
    active_courses = {category: set() for category in ProgramCategory}
    for order in db.session.query(Order).all():
        for name in order_program_names(order):
            if not name:
                continue
            category = classify_program(name)
            all_courses[category].add(name)
            if name in published and name not in closed:
                active_courses[category].add(name)

    result = {}
    for category in ProgramCategory:
        shown = active_courses[category] if active_only else all_courses[category]
        result[category.value] = {
            "courses": sorted(shown),
            "active_count": len(active_courses[category]),
            "total_count": len(all_courses[category]),
        }
    return result


def set_order_payment_status(order_id: int, payment_status: str) -> Order:
    """
    Operator marks an order paid/unpaid; its registrations follow.

    Raises:
        ValidationError: status other than paid/unpaid
        NotFoundError: unknown order
    """
    try:
        status = PaymentStatus(payment_status)
    except ValueError:
        raise ValidationError('payment_status must be "paid" or "unpaid"')

    order = db.session.query(Order).filter_by(order_id=order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")

    order.payment_status = status
    (
        db.session.query(Registration)
        .filter(Registration.order_id == order_id)
        .update({Registration.payment_status: status}, synchronize_session="fetch")
    )
    db.session.flush()
    return order
