# Overview: Flask API routes for orders and installments; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import installment_service, order_service
from ..services.concurrency import commit_or_rollback
from ..time_utils import parse_iso_date
from ..validation import ValidationError


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")


@orders_bp.get("/orders")
def list_orders_route():
    """
    Query params:
    - search: name / e-mail / order number substring
    - status: one order status (default: all visible statuses)
    - course: normalized course name, repeatable
    - date_from, date_to: YYYY-MM-DD, inclusive
    - page: int (1-indexed)
    """
    try:
        result = order_service.list_orders(
            search=request.args.get("search") or None,
            status=request.args.get("status") or None,
            courses=request.args.getlist("course"),
            date_from=_date_arg("date_from"),
            date_to=_date_arg("date_to"),
            page=request.args.get("page", 1, type=int),
        )
    except ServiceError as e:
        return e.to_dict(), e.http_status
    return result, 200


@orders_bp.get("/orders/courses")
def courses_route():
    active_only = request.args.get("filter", "active") != "all"
    return order_service.courses_by_category(active_only=active_only), 200


@orders_bp.patch("/orders/<int:order_id>/payment-status")
def update_payment_status_route(order_id: int):
    """
    Request body: {"payment_status": "paid" | "unpaid"}

    The order's registrations are updated too.
    """
    data = request.get_json(silent=True) or {}
    if not data.get("payment_status"):
        return {"error": "payment_status is required"}, 400

    try:
        order = order_service.set_order_payment_status(order_id, data["payment_status"])
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update payment status")
        return {"error": "Internal server error"}, 500

    return {
        "success": True,
        "message": f"Order and registrations marked as {data['payment_status']}",
        "order": order.to_dict(),
    }, 200


# =============================================================================
# INSTALLMENTS
# =============================================================================

@orders_bp.get("/installments")
def list_installments_route():
    order_id = request.args.get("order_id", type=int)
    if not order_id:
        return {"error": "order_id required"}, 400
    installments = installment_service.list_installments(order_id)
    return {"installments": [i.to_dict() for i in installments]}, 200


@orders_bp.post("/installments")
def save_installment_route():
    """
    Create an installment, or update it when "id" is present.

    Request body:
    {
        "id": int (optional),
        "order_id": int,
        "installment_number": int,
        "amount_due": "150.00",
        "amount_paid": "0" (optional),
        "due_date": "YYYY-MM-DD" (optional),
        "paid_date": "YYYY-MM-DD" (optional),
        "status": "pending" | "paid" (optional),
        "notes": str (optional)
    }
    """
    payload = request.get_json(silent=True) or {}
    created = not (isinstance(payload, dict) and payload.get("id"))
    try:
        installment = installment_service.save_installment(payload)
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to save installment")
        return {"error": "Internal server error"}, 500

    return {"success": True, "installment": installment.to_dict()}, 201 if created else 200


@orders_bp.delete("/installments/<int:installment_id>")
def delete_installment_route(installment_id: int):
    try:
        installment_service.delete_installment(installment_id)
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete installment")
        return {"error": "Internal server error"}, 500

    return {"success": True}, 200
