# Overview: Flask API routes for customer credits; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..errors import ServiceError
from ..extensions import db
from ..services import credit_service
from ..services.concurrency import commit_or_rollback


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.get("")
def list_credits_route():
    """Query params: search (name/e-mail), status (active|used)."""
    try:
        credits = credit_service.list_credits(
            search=request.args.get("search") or None,
            status=request.args.get("status") or None,
        )
    except ServiceError as e:
        return e.to_dict(), e.http_status
    return {
        "credits": [c.to_dict() for c in credits],
        "summary": credit_service.credit_summary(credits),
    }, 200


@credits_bp.post("")
def create_credit_route():
    """
    Request body:
    {
        "player_name": str,
        "player_email": str (optional),
        "amount": "25.00",
        "reason": str,
        "created_by": str
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        credit = credit_service.create_credit(payload)
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to add credit")
        return {"error": "Internal server error"}, 500
    return {"success": True, "credit": credit.to_dict()}, 201


@credits_bp.post("/<int:credit_id>/use")
def use_credit_route(credit_id: int):
    """Request body: {"used_by": str, "used_on_program": str (optional), "notes": str (optional)}"""
    data = request.get_json(silent=True) or {}
    try:
        credit = credit_service.mark_credit_used(
            credit_id,
            used_by=data.get("used_by"),
            used_on_program=data.get("used_on_program"),
            notes=data.get("notes"),
        )
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to mark credit used")
        return {"error": "Internal server error"}, 500
    return {"success": True, "credit": credit.to_dict()}, 200


@credits_bp.delete("/<int:credit_id>")
def delete_credit_route(credit_id: int):
    """Request body (or ?signed_off_by=): {"signed_off_by": str}"""
    data = request.get_json(silent=True) or {}
    signed_off_by = data.get("signed_off_by") or request.args.get("signed_off_by")
    try:
        credit_service.delete_credit(credit_id, signed_off_by=signed_off_by)
        commit_or_rollback()
    except ServiceError as e:
        db.session.rollback()
        return e.to_dict(), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete credit")
        return {"error": "Internal server error"}, 500
    return {"success": True}, 200
